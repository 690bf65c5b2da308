"""
Ticket models for the helpdesk.

WHAT: SQLAlchemy models for tickets, comments, attachments and the values
entered into a ticket type's dynamic form fields.

WHY: Tickets are the tenant-scoped core of the system:
1. Unique, immutable human-readable number (TK-YYYY-MM-NNN)
2. Status lifecycle Open -> InProgress -> Resolved -> Closed
3. Comments with staff-only internal notes
4. File attachments stored outside the database

HOW: Uses SQLAlchemy 2.0 with:
- Enums for status and priority fields
- A unique constraint on ticket_number, which the numbering retry loop relies on
- version_id_col so concurrent writers to the same ticket cannot overwrite
  each other silently
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List, TYPE_CHECKING

from sqlalchemy import (
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    ForeignKey,
    Enum as SQLEnum,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from helpdesk.models.base import Base

if TYPE_CHECKING:
    from helpdesk.models.catalog import TicketCategory, TicketFormField, TicketModule, TicketType
    from helpdesk.models.company import Company
    from helpdesk.models.user import User


# ============================================================================
# Enums
# ============================================================================


class TicketStatus(str, Enum):
    """
    Ticket status values.

    - OPEN: New ticket, nobody working on it yet
    - IN_PROGRESS: Picked up by support
    - RESOLVED: Fix delivered, waiting to be closed
    - CLOSED: Terminal, no further transitions
    """

    OPEN = "Open"
    IN_PROGRESS = "InProgress"
    RESOLVED = "Resolved"
    CLOSED = "Closed"


class TicketPriority(str, Enum):
    """Ticket priority levels."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


# ============================================================================
# Ticket Model
# ============================================================================


class Ticket(Base):
    """
    Support ticket raised by a member of a company.

    Security: Tenant-scoped. ``company_id`` always equals the creator's
    company; only the super-role and Admin see tickets across companies.
    """

    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_number: Mapped[str] = mapped_column(String(20), nullable=False)

    company_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("companies.id"), nullable=False
    )
    created_by_user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    assigned_to_user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )

    # Classification
    ticket_type_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("ticket_types.id"), nullable=False
    )
    category_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("ticket_categories.id"), nullable=True
    )
    module_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("ticket_modules.id"), nullable=True
    )

    # Ticket details
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[TicketStatus] = mapped_column(
        SQLEnum(TicketStatus, name="ticketstatus"),
        default=TicketStatus.OPEN,
        nullable=False,
    )
    priority: Mapped[TicketPriority] = mapped_column(
        SQLEnum(TicketPriority, name="ticketpriority"),
        default=TicketPriority.MEDIUM,
        nullable=False,
    )

    # Status timestamps
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, onupdate=datetime.utcnow, nullable=True
    )

    # Optimistic lock counter, bumped by the ORM on every UPDATE
    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Relationships
    company: Mapped["Company"] = relationship("Company", back_populates="tickets")
    created_by: Mapped["User"] = relationship(
        "User", foreign_keys=[created_by_user_id]
    )
    assigned_to: Mapped[Optional["User"]] = relationship(
        "User", foreign_keys=[assigned_to_user_id]
    )
    ticket_type: Mapped["TicketType"] = relationship("TicketType")
    category: Mapped[Optional["TicketCategory"]] = relationship("TicketCategory")
    module: Mapped[Optional["TicketModule"]] = relationship("TicketModule")
    comments: Mapped[List["TicketComment"]] = relationship(
        "TicketComment",
        back_populates="ticket",
        cascade="all, delete-orphan",
        order_by="TicketComment.created_at",
    )
    attachments: Mapped[List["TicketAttachment"]] = relationship(
        "TicketAttachment", back_populates="ticket", cascade="all, delete-orphan"
    )
    form_data: Mapped[List["TicketFormData"]] = relationship(
        "TicketFormData", back_populates="ticket", cascade="all, delete-orphan"
    )

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        UniqueConstraint("ticket_number", name="uq_tickets_ticket_number"),
        Index("ix_tickets_company_id", "company_id"),
        Index("ix_tickets_status", "status"),
        Index("ix_tickets_assigned_to", "assigned_to_user_id"),
        Index("ix_tickets_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id}, number={self.ticket_number}, status={self.status.value})>"


# ============================================================================
# TicketComment Model
# ============================================================================


class TicketComment(Base):
    """
    Comment on a ticket.

    Internal comments are visible to staff only. System messages are
    written by the service itself (status changes) and are always internal.
    """

    __tablename__ = "ticket_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    comment: Mapped[str] = mapped_column(Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_system_message: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    ticket: Mapped["Ticket"] = relationship("Ticket", back_populates="comments")
    user: Mapped["User"] = relationship("User")

    __table_args__ = (Index("ix_ticket_comments_ticket_id", "ticket_id"),)


# ============================================================================
# TicketAttachment Model
# ============================================================================


class TicketAttachment(Base):
    """
    File attached to a ticket.

    ``storage_path`` is the handle returned by the file store, relative to
    the upload root.
    """

    __tablename__ = "ticket_attachments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
    )
    uploaded_by_user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_path: Mapped[str] = mapped_column(String(500), nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    ticket: Mapped["Ticket"] = relationship("Ticket", back_populates="attachments")
    uploaded_by: Mapped["User"] = relationship("User")

    __table_args__ = (Index("ix_ticket_attachments_ticket_id", "ticket_id"),)


# ============================================================================
# TicketFormData Model
# ============================================================================


class TicketFormData(Base):
    """Value entered for one dynamic form field when the ticket was created."""

    __tablename__ = "ticket_form_data"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
    )
    form_field_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("ticket_form_fields.id"), nullable=False
    )
    field_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    ticket: Mapped["Ticket"] = relationship("Ticket", back_populates="form_data")
    form_field: Mapped["TicketFormField"] = relationship("TicketFormField")
