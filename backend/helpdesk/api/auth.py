"""
Authentication API endpoints.

WHY: These endpoints provide the authentication flow:
1. Login - Authenticate an account and return a bearer token
2. Me - Get the caller's profile

Accounts are created by administrators; self-registration is closed.

Security:
- Passwords are compared using constant-time comparison (bcrypt)
- Generic error messages prevent account enumeration
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.auth import create_account_token, verify_password
from helpdesk.core.config import settings
from helpdesk.core.deps import get_request_context
from helpdesk.core.exceptions import AuthenticationError, AuthorizationError
from helpdesk.core.policy import RequestContext
from helpdesk.db.session import get_db
from helpdesk.dao.user import UserDAO
from helpdesk.schemas.auth import LoginRequest, LoginResponse, LoginUser
from helpdesk.schemas.user import UserResponse
from helpdesk.api.users import user_to_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="Login",
    description="Authenticate with email and password, returns a bearer token",
)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """
    Authenticate an account and return a bearer token.

    Unknown email, wrong password and inactive account all produce the same
    401 message so callers cannot probe which accounts exist.

    Raises:
        AuthenticationError (401): If credentials are invalid
    """
    user = await UserDAO(db).get_by_email(credentials.email)

    if not user or not verify_password(credentials.password, user.hashed_password):
        logger.warning(f"Failed login for {credentials.email}")
        raise AuthenticationError(message="Invalid email or password")

    if not user.is_active:
        logger.warning(f"Login attempt on inactive account {user.id}")
        raise AuthenticationError(message="Invalid email or password")

    roles = user.role_names
    token = create_account_token(
        account_id=user.id,
        email=user.email,
        name=user.full_name,
        company_id=user.company_id,
        roles=roles,
    )
    logger.info(f"User {user.id} logged in")

    return LoginResponse(
        message="Login successful",
        token=token,
        token_type="bearer",
        expires_in=settings.JWT_EXPIRATION_MINUTES * 60,
        user=LoginUser(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            company_id=user.company_id,
            roles=roles,
        ),
    )


@router.post(
    "/register",
    status_code=status.HTTP_403_FORBIDDEN,
    summary="Register (disabled)",
    description="Self-registration is closed; accounts are created by administrators",
)
async def register() -> None:
    raise AuthorizationError(message="Registration is disabled. Contact your administrator.")


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Current account",
)
async def me(
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    user = await UserDAO(db).get_with_company(ctx.account_id)
    return user_to_response(user)
