"""
Tenant-scoped repository access.

WHAT: Wraps list / get / get-for-update of tenant-partitioned entities
(tickets, users, companies) so that every query carries the caller's
tenant filter unless the policy grants full access.

WHY: Tenant filtering lives at a single call site. Handlers ask for
"tickets visible to this context" and never build the predicate
themselves, so a forgotten ``where company_id == ...`` cannot leak data.

HOW:
- The policy decision for the resource kind picks the filter.
- Lookups that miss inside the caller's scope raise NotFound, whether the
  row is absent or belongs to another tenant.
- ``get_for_update`` locks the row and re-checks the tenant on the loaded
  row, not just on the query predicate.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple, List, Type

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from helpdesk.core.exceptions import AuthorizationError, ResourceNotFoundError
from helpdesk.core.policy import (
    AccessDecision,
    RequestContext,
    ResourceKind,
    decide_for,
)
from helpdesk.dao.base import BaseDAO
from helpdesk.models.base import Base
from helpdesk.models.company import Company
from helpdesk.models.ticket import Ticket
from helpdesk.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScopeSpec:
    """How one resource kind is stored and ordered."""

    model: Type[Base]
    tenant_column: str
    order_by: tuple
    soft_delete: bool


SCOPES: dict[ResourceKind, ScopeSpec] = {
    ResourceKind.TICKET: ScopeSpec(
        model=Ticket,
        tenant_column="company_id",
        order_by=(Ticket.created_at.desc(), Ticket.id.desc()),
        soft_delete=False,
    ),
    ResourceKind.USER: ScopeSpec(
        model=User,
        tenant_column="company_id",
        order_by=(User.first_name.asc(), User.last_name.asc(), User.id.asc()),
        soft_delete=True,
    ),
    ResourceKind.COMPANY: ScopeSpec(
        model=Company,
        tenant_column="id",
        order_by=(Company.name.asc(), Company.id.asc()),
        soft_delete=True,
    ),
}


class TenantScopedRepository:
    """
    Tenant-filtered reads over tickets, users and companies.

    Example:
        >>> repo = TenantScopedRepository(session)
        >>> tickets, total = await repo.list(ResourceKind.TICKET, ctx, page=1)
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def _spec(self, kind: ResourceKind) -> ScopeSpec:
        try:
            return SCOPES[kind]
        except KeyError:
            raise ValueError(f"{kind.value} is not a tenant-scoped resource")

    def _scope(self, kind: ResourceKind, ctx: RequestContext) -> AccessDecision:
        decision = decide_for(ctx, kind)
        if decision == AccessDecision.DENIED:
            raise AuthorizationError(
                user_id=ctx.account_id,
                resource=kind.value,
            )
        return decision

    def scoped_query(
        self,
        kind: ResourceKind,
        ctx: RequestContext,
        include_inactive: bool = False,
    ) -> Select:
        """
        Build ``select(model)`` filtered to what ``ctx`` may see.

        Raises:
            AuthorizationError: If the caller may not access this kind at all
        """
        spec = self._spec(kind)
        decision = self._scope(kind, ctx)

        query = select(spec.model)
        if decision == AccessDecision.TENANT_SCOPED:
            query = query.where(getattr(spec.model, spec.tenant_column) == ctx.tenant_id)

        # Only the super-role can opt in to soft-deleted rows
        if spec.soft_delete and not (include_inactive and ctx.is_super):
            query = query.where(spec.model.is_active.is_(True))

        return query

    async def list(
        self,
        kind: ResourceKind,
        ctx: RequestContext,
        page: int = 1,
        page_size: int = 10,
        include_inactive: bool = False,
        filters: Sequence[Any] = (),
        options: Sequence[Any] = (),
    ) -> Tuple[List[Any], int]:
        """
        List rows of ``kind`` visible to the caller.

        Args:
            kind: Tenant-scoped resource kind
            ctx: Caller context
            page: 1-based page number
            page_size: Rows per page
            include_inactive: Include soft-deleted rows (super-role only)
            filters: Extra SQL criteria
            options: Loader options (selectinload, ...)

        Returns:
            Tuple of (items, total count)
        """
        spec = self._spec(kind)
        query = self.scoped_query(kind, ctx, include_inactive)
        for criterion in filters:
            query = query.where(criterion)
        query = query.options(*options).order_by(*spec.order_by)

        return await BaseDAO(spec.model, self.session).paginate(query, page, page_size)

    async def get(
        self,
        kind: ResourceKind,
        ctx: RequestContext,
        id: int,
        include_inactive: bool = False,
        options: Sequence[Any] = (),
    ) -> Any:
        """
        Load one row visible to the caller.

        Raises:
            AuthorizationError: If the caller may not access this kind at all
            ResourceNotFoundError: If the row is absent or outside the scope
        """
        spec = self._spec(kind)
        query = (
            self.scoped_query(kind, ctx, include_inactive)
            .where(spec.model.id == id)
            .options(*options)
        )
        result = await self.session.execute(query)
        instance = result.scalar_one_or_none()
        if instance is None:
            raise ResourceNotFoundError(
                message=f"{kind.value} not found",
                resource_id=id,
            )
        return instance

    async def get_for_update(
        self,
        kind: ResourceKind,
        ctx: RequestContext,
        id: int,
        include_inactive: bool = False,
        options: Sequence[Any] = (),
    ) -> Any:
        """
        Load and row-lock one row the caller may modify.

        The tenant is checked again on the locked row. A row that moved to
        another tenant between query build and load is reported as absent.

        Raises:
            AuthorizationError: If the caller may not access this kind at all
            ResourceNotFoundError: If the row is absent or outside the scope
        """
        spec = self._spec(kind)
        query = (
            self.scoped_query(kind, ctx, include_inactive)
            .where(spec.model.id == id)
            .options(*options)
            .with_for_update()
        )
        result = await self.session.execute(query)
        instance = result.scalar_one_or_none()

        if instance is not None:
            row_tenant: Optional[int] = getattr(instance, spec.tenant_column)
            if decide_for(ctx, kind, row_tenant) == AccessDecision.DENIED:
                logger.warning(
                    f"Tenant mismatch on locked {kind.value} {id}: "
                    f"caller tenant {ctx.tenant_id}, row tenant {row_tenant}"
                )
                instance = None

        if instance is None:
            raise ResourceNotFoundError(
                message=f"{kind.value} not found",
                resource_id=id,
            )
        return instance
