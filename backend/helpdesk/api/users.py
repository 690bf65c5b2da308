"""
User (account) management API endpoints.

WHAT: List, read, create, update, deactivate accounts and set passwords.

WHY: Accounts are provisioned by administrators. Support staff can look
accounts up within their own company (for assignment); only admins write.

HOW:
- Reads go through TenantScopedRepository, so Support sees its tenant only.
  Writes load the account with ``get_for_update``.
- A non-super admin may not create accounts in another company, grant the
  SuperAdmin role or modify a SuperAdmin account.
- Delete is a soft delete (``is_active = False``).
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from helpdesk.core.config import settings
from helpdesk.core.deps import require_operation
from helpdesk.core.exceptions import AuthorizationError, ConflictError, ValidationError
from helpdesk.core.policy import Operation, RequestContext, ResourceKind
from helpdesk.db.session import get_db
from helpdesk.dao.company import CompanyDAO
from helpdesk.dao.tenant_scope import TenantScopedRepository
from helpdesk.dao.user import UserDAO
from helpdesk.models.user import User, UserRole
from helpdesk.schemas.common import MessageResponse, PaginatedResponse, paginated
from helpdesk.schemas.user import (
    PasswordChangeRequest,
    UserCreate,
    UserMutationResponse,
    UserResponse,
    UserUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

USER_OPTIONS = (selectinload(User.company),)


def user_to_response(user: User) -> UserResponse:
    """Convert a User (with company loaded) to its response schema."""
    return UserResponse(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        full_name=user.full_name,
        email=user.email,
        company_id=user.company_id,
        company_name=user.company.name if user.company else None,
        roles=user.role_names,
        is_active=user.is_active,
        created_at=user.created_at,
    )


async def _check_company(db: AsyncSession, company_id: Optional[int]) -> None:
    if company_id is None:
        return
    company = await CompanyDAO(db).get_by_id(company_id)
    if company is None or not company.is_active:
        raise ValidationError(message="Invalid company", company_id=company_id)


def _check_grant(ctx: RequestContext, roles: Optional[List[UserRole]], company_id: Optional[int]) -> None:
    """
    Raises:
        AuthorizationError: If a non-super admin grants SuperAdmin or
            provisions into a company other than its own
    """
    if ctx.is_super:
        return
    if roles and UserRole.SUPER_ADMIN in roles:
        raise AuthorizationError(message="Only a SuperAdmin can grant the SuperAdmin role")
    if ctx.tenant_id is not None and company_id != ctx.tenant_id:
        raise AuthorizationError(message="You can only manage users of your own company")


def _check_target(ctx: RequestContext, user: User) -> None:
    if not ctx.is_super and UserRole.SUPER_ADMIN in user.role_set:
        raise AuthorizationError(message="Only a SuperAdmin can modify a SuperAdmin account")


@router.get(
    "",
    response_model=PaginatedResponse[UserResponse],
    summary="List users",
)
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, alias="pageSize"),
    company_id: Optional[int] = Query(None, alias="companyId"),
    include_inactive: bool = Query(False, alias="includeInactive"),
    ctx: RequestContext = Depends(require_operation(Operation.USER_READ)),
    db: AsyncSession = Depends(get_db),
) -> dict:
    filters = [User.company_id == company_id] if company_id is not None else []
    users, total = await TenantScopedRepository(db).list(
        ResourceKind.USER,
        ctx,
        page=page,
        page_size=page_size,
        include_inactive=include_inactive,
        filters=filters,
        options=USER_OPTIONS,
    )
    return paginated([user_to_response(u) for u in users], total, page, page_size)


@router.get(
    "/roles",
    response_model=List[str],
    summary="List role names",
)
async def list_roles(
    ctx: RequestContext = Depends(require_operation(Operation.USER_READ)),
) -> List[str]:
    return [role.value for role in UserRole]


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    summary="Get user",
)
async def get_user(
    user_id: int,
    ctx: RequestContext = Depends(require_operation(Operation.USER_READ)),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    user = await TenantScopedRepository(db).get(ResourceKind.USER, ctx, user_id, options=USER_OPTIONS)
    return user_to_response(user)


@router.post(
    "",
    response_model=UserMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create user",
)
async def create_user(
    data: UserCreate,
    ctx: RequestContext = Depends(require_operation(Operation.USER_WRITE)),
    db: AsyncSession = Depends(get_db),
) -> UserMutationResponse:
    """
    Create an account.

    Raises:
        AuthorizationError (403): On a grant outside the caller's reach
        ValidationError (400): If the company does not exist
        ConflictError (409): If the email is already registered
    """
    _check_grant(ctx, data.roles, data.company_id)
    await _check_company(db, data.company_id)

    dao = UserDAO(db)
    user = await dao.create_user(
        email=data.email,
        password=data.password,
        first_name=data.first_name,
        last_name=data.last_name,
        roles=data.roles,
        company_id=data.company_id,
        is_active=data.is_active,
    )
    logger.info(f"User {user.id} created by user {ctx.account_id}")

    user = await dao.get_with_company(user.id)
    return UserMutationResponse(message="User created successfully", user=user_to_response(user))


@router.put(
    "/{user_id}",
    response_model=UserMutationResponse,
    summary="Update user",
)
async def update_user(
    user_id: int,
    data: UserUpdate,
    ctx: RequestContext = Depends(require_operation(Operation.USER_WRITE)),
    db: AsyncSession = Depends(get_db),
) -> UserMutationResponse:
    repo = TenantScopedRepository(db)
    user = await repo.get_for_update(ResourceKind.USER, ctx, user_id, include_inactive=True, options=USER_OPTIONS)
    _check_target(ctx, user)

    changes = data.model_dump(exclude_unset=True)

    if "roles" in changes or "company_id" in changes:
        _check_grant(
            ctx,
            data.roles if "roles" in changes else None,
            changes.get("company_id", user.company_id),
        )
    if "company_id" in changes:
        await _check_company(db, changes["company_id"])

    dao = UserDAO(db)
    if "email" in changes:
        if await dao.email_exists(changes["email"], exclude_id=user.id):
            raise ConflictError(message="Email already registered", email=changes["email"])
        changes["email"] = changes["email"].lower()
    if "roles" in changes:
        changes["roles"] = [role.value for role in data.roles]

    async with dao.unique_guard("Email already registered", email=changes.get("email")):
        await dao.update(user, **changes)
    logger.info(f"User {user.id} updated by user {ctx.account_id}")

    user = await dao.get_with_company(user.id)
    return UserMutationResponse(message="User updated successfully", user=user_to_response(user))


@router.delete(
    "/{user_id}",
    response_model=MessageResponse,
    summary="Deactivate user",
)
async def delete_user(
    user_id: int,
    ctx: RequestContext = Depends(require_operation(Operation.USER_WRITE)),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    user = await TenantScopedRepository(db).get_for_update(ResourceKind.USER, ctx, user_id)
    _check_target(ctx, user)

    await UserDAO(db).update(user, is_active=False)
    logger.info(f"User {user.id} deactivated by user {ctx.account_id}")
    return MessageResponse(message="User deactivated")


@router.put(
    "/{user_id}/password",
    response_model=MessageResponse,
    summary="Set user password",
)
async def change_password(
    user_id: int,
    data: PasswordChangeRequest,
    ctx: RequestContext = Depends(require_operation(Operation.USER_WRITE)),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    user = await TenantScopedRepository(db).get_for_update(ResourceKind.USER, ctx, user_id)
    _check_target(ctx, user)

    await UserDAO(db).set_password(user, data.new_password)
    logger.info(f"Password of user {user.id} changed by user {ctx.account_id}")
    return MessageResponse(message="Password changed successfully")
