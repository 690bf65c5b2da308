"""
User (account) model.

WHY: Accounts carry the tenant reference and role set that the
authorization policy reads. Platform-level staff have no company.
"""

import enum
from sqlalchemy import Column, Integer, String, ForeignKey, Boolean, JSON
from sqlalchemy.orm import relationship

from helpdesk.models.base import Base, TimestampMixin, PrimaryKeyMixin


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Declaration order is privilege order, highest first; an account with
    several roles is judged by the first one it holds.
    """

    SUPER_ADMIN = "SuperAdmin"  # Platform operator, not tenant-scoped
    ADMIN = "Admin"
    SUPPORT = "Support"
    CUSTOMER = "Customer"
    USER = "User"


class User(Base, PrimaryKeyMixin, TimestampMixin):
    """Account that can log in and act on tickets."""

    __tablename__ = "users"

    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)

    # Role names as a JSON list, e.g. ["Admin"]
    roles = Column(JSON, nullable=False, default=list)

    # Null only for platform-level accounts
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True, index=True)

    is_active = Column(Boolean, default=True, nullable=False)

    company = relationship("Company", back_populates="users")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def role_set(self) -> frozenset[UserRole]:
        """Known roles of this account; unknown names are ignored."""
        known = {role.value for role in UserRole}
        return frozenset(UserRole(name) for name in (self.roles or []) if name in known)

    @property
    def role_names(self) -> list[str]:
        """Known role names, highest privilege first."""
        held = self.role_set
        return [role.value for role in UserRole if role in held]

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, roles={self.roles})>"
