"""
User Data Access Object.

WHY: UserDAO provides database operations for User model, following
the DAO pattern for separation of concerns and testability.
"""

from typing import Optional, List
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from helpdesk.dao.base import BaseDAO
from helpdesk.models.user import User, UserRole
from helpdesk.core.auth import hash_password
from helpdesk.core.exceptions import ConflictError


class UserDAO(BaseDAO[User]):
    """Data Access Object for User model."""

    def __init__(self, session: AsyncSession):
        super().__init__(User, session)

    async def get_by_email(self, email: str) -> Optional[User]:
        """
        Retrieve user by email address.

        Case-insensitive, so USER@example.com and user@example.com are the
        same account.
        """
        result = await self.session.execute(
            select(User).where(func.lower(User.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def get_with_company(self, user_id: int) -> Optional[User]:
        result = await self.session.execute(
            select(User)
            .where(User.id == user_id)
            .options(selectinload(User.company))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def email_exists(self, email: str, exclude_id: Optional[int] = None) -> bool:
        """Check whether another account already uses this email."""
        query = select(User.id).where(func.lower(User.email) == email.lower())
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    async def create_user(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        roles: List[UserRole],
        company_id: Optional[int] = None,
        is_active: bool = True,
    ) -> User:
        """
        Create an account with a hashed password.

        Raises:
            ConflictError: If the email is already registered
        """
        if await self.email_exists(email):
            raise ConflictError(message="Email already registered", email=email)

        async with self.unique_guard("Email already registered", email=email):
            return await self.create(
                email=email.lower(),
                hashed_password=hash_password(password),
                first_name=first_name,
                last_name=last_name,
                roles=[role.value for role in roles],
                company_id=company_id,
                is_active=is_active,
            )

    async def set_password(self, user: User, password: str) -> User:
        return await self.update(user, hashed_password=hash_password(password))

    async def list_active_with_roles(
        self,
        roles: frozenset[UserRole],
        company_id: Optional[int],
        include_platform: bool = True,
    ) -> List[User]:
        """
        Active accounts holding any of ``roles`` in a company.

        Roles are stored as a JSON list, so the role match happens in
        Python over the company's active accounts.

        Args:
            roles: Roles to match
            company_id: Tenant whose accounts are wanted
            include_platform: Also include accounts without a company
        """
        query = select(User).where(User.is_active.is_(True))
        if include_platform:
            query = query.where(
                (User.company_id == company_id) | (User.company_id.is_(None))
            )
        else:
            query = query.where(User.company_id == company_id)

        result = await self.session.execute(query.order_by(User.id))
        return [user for user in result.scalars().all() if user.role_set & roles]
