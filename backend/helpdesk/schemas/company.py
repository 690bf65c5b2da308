"""
Pydantic schemas for company (tenant) endpoints.
"""

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from helpdesk.models.company import PlanType
from helpdesk.schemas.common import CamelModel


class CompanyBase(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    address: Optional[str] = Field(None, max_length=500)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    contact_person: Optional[str] = Field(None, max_length=100)


class CompanyCreate(CompanyBase):
    """Company creation request (super-role only)."""

    database_name: str = Field(..., min_length=1, max_length=50, pattern=r"^[A-Za-z0-9_]+$")
    plan_type: PlanType = PlanType.BASIC
    ticket_credits: int = Field(100, ge=0)
    monthly_ticket_limit: int = Field(50, ge=1, le=10000)


class CompanyUpdate(CamelModel):
    """
    Company update request.

    Plan, credits, limit and active flag are applied for the super-role
    only; other callers may change contact details.
    """

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    address: Optional[str] = Field(None, max_length=500)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    contact_person: Optional[str] = Field(None, max_length=100)
    database_name: Optional[str] = Field(None, min_length=1, max_length=50, pattern=r"^[A-Za-z0-9_]+$")
    plan_type: Optional[PlanType] = None
    ticket_credits: Optional[int] = Field(None, ge=0)
    monthly_ticket_limit: Optional[int] = Field(None, ge=1, le=10000)
    is_active: Optional[bool] = None


class CompanyCreditsRequest(CamelModel):
    credits: int = Field(..., description="Credits to add; negative to deduct")


class CompanyResponse(CompanyBase):
    id: int
    database_name: str
    plan_type: PlanType
    ticket_credits: int
    monthly_ticket_limit: int
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None
    user_count: int = 0
    ticket_count: int = 0


class CompanyDetailResponse(CompanyResponse):
    open_ticket_count: int = 0
    resolved_ticket_count: int = 0


class CompanyMutationResponse(CamelModel):
    message: str
    company: CompanyResponse


class CompanyCreditsResponse(CamelModel):
    message: str
    company_id: int
    total_credits: int
