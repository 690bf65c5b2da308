"""
Pydantic schemas for user (account) endpoints.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import EmailStr, Field

from helpdesk.models.user import UserRole
from helpdesk.schemas.common import CamelModel


class UserCreate(CamelModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    company_id: Optional[int] = None
    roles: List[UserRole] = Field(default_factory=lambda: [UserRole.CUSTOMER], min_length=1)
    is_active: bool = True


class UserUpdate(CamelModel):
    """Partial update; ``roles`` replaces the whole role set when given."""

    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    company_id: Optional[int] = None
    roles: Optional[List[UserRole]] = Field(None, min_length=1)
    is_active: Optional[bool] = None


class PasswordChangeRequest(CamelModel):
    new_password: str = Field(..., min_length=8, max_length=100)


class UserResponse(CamelModel):
    id: int
    first_name: str
    last_name: str
    full_name: str
    email: str
    company_id: Optional[int] = None
    company_name: Optional[str] = None
    roles: List[str]
    is_active: bool
    created_at: datetime


class UserMutationResponse(CamelModel):
    message: str
    user: UserResponse
