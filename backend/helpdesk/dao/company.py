"""
Company Data Access Object.

WHAT: Creation, uniqueness checks and the ticket/user counters shown on
company listings and detail pages.
"""

from typing import Optional, Dict, Iterable
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.dao.base import BaseDAO
from helpdesk.models.company import Company
from helpdesk.models.ticket import Ticket, TicketStatus
from helpdesk.models.user import User
from helpdesk.core.exceptions import ConflictError


class CompanyDAO(BaseDAO[Company]):
    """Data Access Object for Company model."""

    def __init__(self, session: AsyncSession):
        super().__init__(Company, session)

    async def database_name_exists(self, database_name: str, exclude_id: Optional[int] = None) -> bool:
        query = select(Company.id).where(Company.database_name == database_name)
        if exclude_id is not None:
            query = query.where(Company.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    async def create_company(self, **fields) -> Company:
        """
        Create a company.

        Raises:
            ConflictError: If the database name is already taken
        """
        message = "Database name already in use"
        if await self.database_name_exists(fields["database_name"]):
            raise ConflictError(message=message, database_name=fields["database_name"])
        async with self.unique_guard(message, database_name=fields["database_name"]):
            return await self.create(**fields)

    async def user_counts(self, company_ids: Iterable[int]) -> Dict[int, int]:
        """Active account count per company."""
        ids = list(company_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(User.company_id, func.count(User.id))
            .where(User.company_id.in_(ids), User.is_active.is_(True))
            .group_by(User.company_id)
        )
        return {company_id: count for company_id, count in result.all()}

    async def ticket_counts(
        self,
        company_ids: Iterable[int],
        status: Optional[TicketStatus] = None,
    ) -> Dict[int, int]:
        """Ticket count per company, optionally for one status."""
        ids = list(company_ids)
        if not ids:
            return {}
        query = (
            select(Ticket.company_id, func.count(Ticket.id))
            .where(Ticket.company_id.in_(ids))
            .group_by(Ticket.company_id)
        )
        if status is not None:
            query = query.where(Ticket.status == status)
        result = await self.session.execute(query)
        return {company_id: count for company_id, count in result.all()}
