"""
Authorization policy.

WHAT: Pure decision functions over an explicit RequestContext.

WHY: Route handlers and DAOs never read ambient identity. The bearer token
is turned into a RequestContext once (core/deps.py) and passed down, so
every decision here is testable without a web host or a database.

HOW:
- ``decide()`` answers *how far* a caller reaches into a resource kind:
  everything (FULL_ACCESS), their own tenant (TENANT_SCOPED), or nothing.
- ``OPERATION_ROLES`` answers *whether* a caller's role may run an
  operation at all.
- An account with several roles is judged by its highest one.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from helpdesk.models.user import UserRole


class AccessDecision(str, Enum):
    FULL_ACCESS = "FullAccess"
    TENANT_SCOPED = "TenantScoped"
    DENIED = "Denied"


class ResourceKind(str, Enum):
    TICKET = "Ticket"
    USER = "User"
    COMPANY = "Company"
    SETTING = "Setting"
    CATALOG = "Catalog"
    FILE = "File"


# Highest privilege first
ROLE_PRECEDENCE: tuple[UserRole, ...] = tuple(UserRole)

STAFF_ROLES = frozenset({UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.SUPPORT})
ALL_ROLES = frozenset(UserRole)


@dataclass(frozen=True)
class RequestContext:
    """Identity of the caller for one request."""

    account_id: int
    tenant_id: Optional[int]
    roles: frozenset[UserRole] = field(default_factory=frozenset)
    email: str = ""
    name: str = ""

    @property
    def primary_role(self) -> Optional[UserRole]:
        return primary_role(self.roles)

    @property
    def is_super(self) -> bool:
        return self.primary_role == UserRole.SUPER_ADMIN

    @property
    def is_staff(self) -> bool:
        return self.primary_role in STAFF_ROLES


def primary_role(roles: Iterable[UserRole]) -> Optional[UserRole]:
    """Return the highest-privilege role in ``roles``, or None if empty."""
    held = set(roles)
    for role in ROLE_PRECEDENCE:
        if role in held:
            return role
    return None


# ============================================================================
# Tenant scope
# ============================================================================


def _scope_for(role: UserRole, kind: ResourceKind) -> AccessDecision:
    if role == UserRole.SUPER_ADMIN:
        return AccessDecision.FULL_ACCESS

    if kind in (ResourceKind.CATALOG, ResourceKind.FILE):
        # Global, not partitioned by tenant
        return AccessDecision.FULL_ACCESS

    if role == UserRole.ADMIN:
        if kind == ResourceKind.COMPANY:
            return AccessDecision.TENANT_SCOPED
        return AccessDecision.FULL_ACCESS

    if role == UserRole.SUPPORT:
        if kind in (ResourceKind.TICKET, ResourceKind.USER):
            return AccessDecision.TENANT_SCOPED
        return AccessDecision.DENIED

    # Customer and User
    if kind == ResourceKind.TICKET:
        return AccessDecision.TENANT_SCOPED
    return AccessDecision.DENIED


def decide(
    role: Optional[UserRole],
    caller_tenant_id: Optional[int],
    kind: ResourceKind,
    resource_tenant_id: Optional[int] = None,
) -> AccessDecision:
    """
    Decide how far a caller reaches into a resource kind.

    Args:
        role: Caller's highest role (None for an account without roles)
        caller_tenant_id: Caller's company id, None for platform accounts
        kind: Kind of resource being accessed
        resource_tenant_id: Company of a specific row, when one is loaded

    Returns:
        FULL_ACCESS, TENANT_SCOPED or DENIED. TENANT_SCOPED is only returned
        when the caller has a tenant and, if a row is given, it belongs to
        that tenant.
    """
    if role is None:
        return AccessDecision.DENIED

    decision = _scope_for(role, kind)
    if decision != AccessDecision.TENANT_SCOPED:
        return decision

    if caller_tenant_id is None:
        return AccessDecision.DENIED
    if resource_tenant_id is not None and resource_tenant_id != caller_tenant_id:
        return AccessDecision.DENIED
    return decision


def decide_for(
    ctx: RequestContext,
    kind: ResourceKind,
    resource_tenant_id: Optional[int] = None,
) -> AccessDecision:
    return decide(ctx.primary_role, ctx.tenant_id, kind, resource_tenant_id)


# ============================================================================
# Role-gated operations
# ============================================================================


class Operation(str, Enum):
    TICKET_READ = "ticket:read"
    TICKET_CREATE = "ticket:create"
    TICKET_COMMENT = "ticket:comment"
    TICKET_TRANSITION = "ticket:transition"
    TICKET_ATTACH = "ticket:attach"

    COMPANY_READ = "company:read"
    COMPANY_CREATE = "company:create"
    COMPANY_UPDATE = "company:update"
    COMPANY_DELETE = "company:delete"
    COMPANY_CREDITS = "company:credits"

    USER_READ = "user:read"
    USER_WRITE = "user:write"

    CATALOG_READ = "catalog:read"
    CATALOG_WRITE = "catalog:write"

    SETTING_READ = "setting:read"
    SETTING_WRITE = "setting:write"

    FILE_ACCESS = "file:access"


_SUPER = frozenset({UserRole.SUPER_ADMIN})
_ADMINS = frozenset({UserRole.SUPER_ADMIN, UserRole.ADMIN})

OPERATION_ROLES: dict[Operation, frozenset[UserRole]] = {
    Operation.TICKET_READ: ALL_ROLES,
    Operation.TICKET_CREATE: ALL_ROLES,
    Operation.TICKET_COMMENT: ALL_ROLES,
    Operation.TICKET_TRANSITION: STAFF_ROLES,
    Operation.TICKET_ATTACH: ALL_ROLES,
    Operation.COMPANY_READ: _ADMINS,
    Operation.COMPANY_CREATE: _SUPER,
    Operation.COMPANY_UPDATE: _ADMINS,
    Operation.COMPANY_DELETE: _SUPER,
    Operation.COMPANY_CREDITS: _SUPER,
    Operation.USER_READ: STAFF_ROLES,
    Operation.USER_WRITE: _ADMINS,
    Operation.CATALOG_READ: ALL_ROLES,
    Operation.CATALOG_WRITE: _ADMINS,
    Operation.SETTING_READ: _ADMINS,
    Operation.SETTING_WRITE: _SUPER,
    Operation.FILE_ACCESS: ALL_ROLES,
}


def is_allowed(ctx: RequestContext, operation: Operation) -> bool:
    role = ctx.primary_role
    return role is not None and role in OPERATION_ROLES[operation]


# ============================================================================
# Ticket-specific rules
# ============================================================================


def can_transition_tickets(ctx: RequestContext) -> bool:
    """Only staff may change a ticket's status or assignee."""
    return is_allowed(ctx, Operation.TICKET_TRANSITION)


def can_author_internal(ctx: RequestContext) -> bool:
    """Customer and User accounts never write internal comments."""
    return ctx.is_staff


def can_view_internal(ctx: RequestContext) -> bool:
    return ctx.is_staff
