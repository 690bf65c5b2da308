"""
Company (tenant) management API endpoints.

WHAT: CRUD over companies plus ticket credit adjustment and per-company
user/ticket listings.

WHY: Companies are the tenant boundary. A SuperAdmin manages all of them;
an Admin sees and edits only its own company, and only its contact
details. Plan, credits, limits and the active flag stay with the
SuperAdmin.
"""

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from helpdesk.core.config import settings
from helpdesk.core.deps import require_operation
from helpdesk.core.exceptions import ConflictError, ValidationError
from helpdesk.core.policy import Operation, RequestContext, ResourceKind
from helpdesk.db.session import get_db
from helpdesk.dao.company import CompanyDAO
from helpdesk.dao.tenant_scope import TenantScopedRepository
from helpdesk.models.company import Company
from helpdesk.models.ticket import TicketStatus
from helpdesk.models.user import User
from helpdesk.schemas.common import MessageResponse, PaginatedResponse, paginated
from helpdesk.schemas.company import (
    CompanyCreate,
    CompanyCreditsRequest,
    CompanyCreditsResponse,
    CompanyDetailResponse,
    CompanyMutationResponse,
    CompanyResponse,
    CompanyUpdate,
)
from helpdesk.schemas.ticket import TicketListItem
from helpdesk.schemas.user import UserResponse
from helpdesk.services.ticket_service import TicketService
from helpdesk.api.tickets import ticket_to_list_item
from helpdesk.api.users import user_to_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/companies", tags=["companies"])

# Fields only the SuperAdmin may change
RESTRICTED_FIELDS = frozenset({"database_name", "plan_type", "ticket_credits", "monthly_ticket_limit", "is_active"})


def _company_to_response(company: Company, users: Dict[int, int], tickets: Dict[int, int]) -> CompanyResponse:
    response = CompanyResponse.model_validate(company)
    response.user_count = users.get(company.id, 0)
    response.ticket_count = tickets.get(company.id, 0)
    return response


async def _detail(db: AsyncSession, company: Company) -> CompanyDetailResponse:
    dao = CompanyDAO(db)
    ids = [company.id]
    users = await dao.user_counts(ids)
    tickets = await dao.ticket_counts(ids)
    open_tickets = await dao.ticket_counts(ids, TicketStatus.OPEN)
    resolved = await dao.ticket_counts(ids, TicketStatus.RESOLVED)

    detail = CompanyDetailResponse.model_validate(company)
    detail.user_count = users.get(company.id, 0)
    detail.ticket_count = tickets.get(company.id, 0)
    detail.open_ticket_count = open_tickets.get(company.id, 0)
    detail.resolved_ticket_count = resolved.get(company.id, 0)
    return detail


@router.get(
    "",
    response_model=PaginatedResponse[CompanyResponse],
    summary="List companies",
    description="Active companies by name; SuperAdmin may include inactive ones",
)
async def list_companies(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, alias="pageSize"),
    include_inactive: bool = Query(False, alias="includeInactive"),
    ctx: RequestContext = Depends(require_operation(Operation.COMPANY_READ)),
    db: AsyncSession = Depends(get_db),
) -> dict:
    companies, total = await TenantScopedRepository(db).list(
        ResourceKind.COMPANY,
        ctx,
        page=page,
        page_size=page_size,
        include_inactive=include_inactive,
    )
    dao = CompanyDAO(db)
    ids = [c.id for c in companies]
    users = await dao.user_counts(ids)
    tickets = await dao.ticket_counts(ids)
    return paginated([_company_to_response(c, users, tickets) for c in companies], total, page, page_size)


@router.get(
    "/{company_id}",
    response_model=CompanyDetailResponse,
    summary="Get company",
)
async def get_company(
    company_id: int,
    ctx: RequestContext = Depends(require_operation(Operation.COMPANY_READ)),
    db: AsyncSession = Depends(get_db),
) -> CompanyDetailResponse:
    company = await TenantScopedRepository(db).get(
        ResourceKind.COMPANY, ctx, company_id, include_inactive=True
    )
    return await _detail(db, company)


@router.post(
    "",
    response_model=CompanyMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create company",
)
async def create_company(
    data: CompanyCreate,
    ctx: RequestContext = Depends(require_operation(Operation.COMPANY_CREATE)),
    db: AsyncSession = Depends(get_db),
) -> CompanyMutationResponse:
    """
    Raises:
        ConflictError (409): If the database name is already in use
    """
    company = await CompanyDAO(db).create_company(**data.model_dump())
    logger.info(f"Company {company.id} ({company.name}) created by user {ctx.account_id}")
    return CompanyMutationResponse(
        message="Company created successfully",
        company=_company_to_response(company, {}, {}),
    )


@router.put(
    "/{company_id}",
    response_model=CompanyMutationResponse,
    summary="Update company",
)
async def update_company(
    company_id: int,
    data: CompanyUpdate,
    ctx: RequestContext = Depends(require_operation(Operation.COMPANY_UPDATE)),
    db: AsyncSession = Depends(get_db),
) -> CompanyMutationResponse:
    company = await TenantScopedRepository(db).get_for_update(
        ResourceKind.COMPANY, ctx, company_id, include_inactive=True
    )

    changes = data.model_dump(exclude_unset=True)
    if not ctx.is_super:
        ignored = sorted(RESTRICTED_FIELDS & changes.keys())
        if ignored:
            logger.info(f"Ignoring restricted company fields {ignored} from user {ctx.account_id}")
        changes = {k: v for k, v in changes.items() if k not in RESTRICTED_FIELDS}

    dao = CompanyDAO(db)
    if "database_name" in changes and await dao.database_name_exists(changes["database_name"], exclude_id=company.id):
        raise ConflictError(message="Database name already in use", database_name=changes["database_name"])

    async with dao.unique_guard("Database name already in use", database_name=changes.get("database_name")):
        company = await dao.update(company, **changes)
    logger.info(f"Company {company.id} updated by user {ctx.account_id}")
    return CompanyMutationResponse(
        message="Company updated successfully",
        company=_company_to_response(company, await dao.user_counts([company.id]), await dao.ticket_counts([company.id])),
    )


@router.delete(
    "/{company_id}",
    response_model=MessageResponse,
    summary="Deactivate company",
)
async def delete_company(
    company_id: int,
    ctx: RequestContext = Depends(require_operation(Operation.COMPANY_DELETE)),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    company = await TenantScopedRepository(db).get_for_update(ResourceKind.COMPANY, ctx, company_id)
    await CompanyDAO(db).update(company, is_active=False)
    logger.info(f"Company {company.id} deactivated by user {ctx.account_id}")
    return MessageResponse(message="Company deactivated")


@router.put(
    "/{company_id}/credits",
    response_model=CompanyCreditsResponse,
    summary="Adjust ticket credits",
)
async def add_credits(
    company_id: int,
    data: CompanyCreditsRequest,
    ctx: RequestContext = Depends(require_operation(Operation.COMPANY_CREDITS)),
    db: AsyncSession = Depends(get_db),
) -> CompanyCreditsResponse:
    """
    Add a signed number of credits.

    Raises:
        ValidationError (400): If the balance would drop below zero
    """
    company = await TenantScopedRepository(db).get_for_update(ResourceKind.COMPANY, ctx, company_id)

    total = company.ticket_credits + data.credits
    if total < 0:
        raise ValidationError(
            message="Ticket credits cannot be negative",
            current_credits=company.ticket_credits,
            requested=data.credits,
        )

    company = await CompanyDAO(db).update(company, ticket_credits=total)
    logger.info(f"Company {company.id} credits {data.credits:+d} -> {total} by user {ctx.account_id}")
    return CompanyCreditsResponse(
        message="Ticket credits updated",
        company_id=company.id,
        total_credits=company.ticket_credits,
    )


@router.get(
    "/{company_id}/users",
    response_model=PaginatedResponse[UserResponse],
    summary="List users of a company",
)
async def list_company_users(
    company_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, alias="pageSize"),
    ctx: RequestContext = Depends(require_operation(Operation.COMPANY_READ)),
    db: AsyncSession = Depends(get_db),
) -> dict:
    repo = TenantScopedRepository(db)
    await repo.get(ResourceKind.COMPANY, ctx, company_id, include_inactive=True)

    users, total = await repo.list(
        ResourceKind.USER,
        ctx,
        page=page,
        page_size=page_size,
        filters=[User.company_id == company_id],
        options=(selectinload(User.company),),
    )
    return paginated([user_to_response(u) for u in users], total, page, page_size)


@router.get(
    "/{company_id}/tickets",
    response_model=PaginatedResponse[TicketListItem],
    summary="List tickets of a company",
)
async def list_company_tickets(
    company_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, alias="pageSize"),
    status_filter: Optional[str] = Query(None, alias="status"),
    ctx: RequestContext = Depends(require_operation(Operation.COMPANY_READ)),
    db: AsyncSession = Depends(get_db),
) -> dict:
    await TenantScopedRepository(db).get(ResourceKind.COMPANY, ctx, company_id, include_inactive=True)

    tickets, total = await TicketService(db).list_tickets(
        ctx, page=page, page_size=page_size, status=status_filter, company_id=company_id
    )
    return paginated([ticket_to_list_item(t) for t in tickets], total, page, page_size)
