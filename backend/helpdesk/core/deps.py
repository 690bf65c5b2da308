"""
FastAPI dependencies for authentication and authorization.

WHY: Dependencies turn the bearer token into an explicit RequestContext
once per request and gate routes on role-based operations, so handlers
receive a ready-made context instead of reading identity themselves.
"""

from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.auth import verify_token
from helpdesk.core.exceptions import AuthenticationError, AuthorizationError
from helpdesk.core.policy import Operation, RequestContext, is_allowed
from helpdesk.db.session import get_db
from helpdesk.dao.user import UserDAO


# HTTP Bearer token security scheme
# auto_error=False so a missing header goes through our 401 instead of
# Starlette's default response
security = HTTPBearer(auto_error=False)


async def get_request_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> RequestContext:
    """
    Build the caller's RequestContext from the bearer token.

    The account is reloaded on every request: a token stays valid until
    expiry, but a deactivated account must lose access immediately, and
    role or company changes take effect without re-login.

    Raises:
        AuthenticationError: If the token is missing, invalid, expired, or
            the account no longer exists or is inactive
    """
    if credentials is None:
        raise AuthenticationError(message="Not authenticated")

    payload = verify_token(credentials.credentials)

    subject = payload.get("sub")
    try:
        account_id = int(subject)
    except (TypeError, ValueError):
        raise AuthenticationError(message="Invalid token: missing subject")

    user = await UserDAO(db).get_by_id(account_id)
    if not user:
        raise AuthenticationError(message="User not found", user_id=account_id)
    if not user.is_active:
        raise AuthenticationError(message="User account is inactive", user_id=account_id)

    return RequestContext(
        account_id=user.id,
        tenant_id=user.company_id,
        roles=user.role_set,
        email=user.email,
        name=user.full_name,
    )


def require_operation(operation: Operation):
    """
    Factory for a dependency that requires the caller's role to allow an
    operation.

    Usage:
        @router.post("/companies")
        async def create_company(ctx = Depends(require_operation(Operation.COMPANY_CREATE))):
            ...
    """

    async def operation_checker(
        ctx: RequestContext = Depends(get_request_context),
    ) -> RequestContext:
        if not is_allowed(ctx, operation):
            raise AuthorizationError(
                user_id=ctx.account_id,
                user_role=ctx.primary_role.value if ctx.primary_role else None,
                operation=operation.value,
            )
        return ctx

    return operation_checker
