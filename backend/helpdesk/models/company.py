"""
Company (tenant) model.

WHY: A company is the unit of data isolation. Tickets and accounts carry a
company id and every tenant-scoped query filters on it.
"""

import enum
from sqlalchemy import Column, Integer, String, Text, Boolean, Enum, CheckConstraint
from sqlalchemy.orm import relationship

from helpdesk.models.base import Base, TimestampMixin, PrimaryKeyMixin


class PlanType(str, enum.Enum):
    """Subscription tier of a company."""

    FREE = "FREE"
    BASIC = "BASIC"
    PREMIUM = "PREMIUM"
    ENTERPRISE = "ENTERPRISE"


class Company(Base, PrimaryKeyMixin, TimestampMixin):
    """
    Tenant record.

    Deactivated companies stay in the table (soft delete) and are hidden
    from normal listings; the super-role can still see them.
    """

    __tablename__ = "companies"

    name = Column(String(100), nullable=False, index=True)
    # Legacy per-tenant database identifier, kept unique across tenants
    database_name = Column(String(50), unique=True, nullable=False)
    address = Column(Text, nullable=True)
    phone = Column(String(20), nullable=True)
    email = Column(String(100), nullable=True)
    contact_person = Column(String(100), nullable=True)

    plan_type = Column(Enum(PlanType, name="plantype"), nullable=False, default=PlanType.BASIC)
    ticket_credits = Column(Integer, nullable=False, default=100)
    monthly_ticket_limit = Column(Integer, nullable=False, default=50)

    is_active = Column(Boolean, default=True, nullable=False)

    users = relationship("User", back_populates="company")
    tickets = relationship("Ticket", back_populates="company")

    __table_args__ = (
        CheckConstraint("ticket_credits >= 0", name="ck_companies_ticket_credits_non_negative"),
        CheckConstraint(
            "monthly_ticket_limit >= 1 AND monthly_ticket_limit <= 10000",
            name="ck_companies_monthly_ticket_limit_range",
        ),
    )

    def __repr__(self) -> str:
        return f"<Company(id={self.id}, name={self.name}, plan={self.plan_type})>"
