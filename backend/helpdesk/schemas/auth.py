"""
Pydantic schemas for authentication endpoints.
"""

from typing import List, Optional

from pydantic import EmailStr, Field

from helpdesk.schemas.common import CamelModel


class LoginRequest(CamelModel):
    """Login credentials."""

    email: EmailStr = Field(..., description="Account email address")
    password: str = Field(..., min_length=1, max_length=100, description="Account password")

    model_config = CamelModel.model_config | {
        "json_schema_extra": {
            "example": {
                "email": "support@acme.example",
                "password": "SecurePassword123!",
            }
        }
    }


class LoginUser(CamelModel):
    """Profile returned alongside the token."""

    id: int
    email: str
    first_name: str
    last_name: str
    company_id: Optional[int] = None
    roles: List[str] = Field(default_factory=list)


class LoginResponse(CamelModel):
    message: str
    token: str = Field(..., description="Bearer token for the Authorization header")
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")
    user: LoginUser
