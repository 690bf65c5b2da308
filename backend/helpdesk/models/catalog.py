"""
Ticket catalog models.

WHAT: Ticket types, categories, modules and the dynamic form fields a
ticket type asks for.

WHY: The catalog is shared by every tenant. It classifies tickets and lets
administrators add input fields to a ticket type without a deploy.
"""

import enum
from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey, Enum
from sqlalchemy.orm import relationship

from helpdesk.models.base import Base, TimestampMixin, PrimaryKeyMixin


class FormFieldType(str, enum.Enum):
    """Input widget kinds a form field can render as."""

    TEXT = "text"
    TEXTAREA = "textarea"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    EMAIL = "email"
    NUMBER = "number"
    DATE = "date"
    FILE = "file"


class TicketType(Base, PrimaryKeyMixin, TimestampMixin):
    """Top-level classification of a ticket (incident, request, ...)."""

    __tablename__ = "ticket_types"

    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    icon = Column(String(50), nullable=False, default="📋")
    color = Column(String(20), nullable=False, default="#6366f1")
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)

    form_fields = relationship(
        "TicketFormField",
        back_populates="ticket_type",
        order_by="TicketFormField.sort_order",
    )


class TicketCategory(Base, PrimaryKeyMixin, TimestampMixin):
    """Product area a ticket is about."""

    __tablename__ = "ticket_categories"

    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    icon = Column(String(50), nullable=True)
    color = Column(String(20), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)

    modules = relationship("TicketModule", back_populates="category")


class TicketModule(Base, PrimaryKeyMixin, TimestampMixin):
    """Sub-area of a category."""

    __tablename__ = "ticket_modules"

    category_id = Column(Integer, ForeignKey("ticket_categories.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    icon = Column(String(50), nullable=True)
    color = Column(String(20), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)

    category = relationship("TicketCategory", back_populates="modules")


class TicketFormField(Base, PrimaryKeyMixin, TimestampMixin):
    """
    Dynamic input field attached to a ticket type.

    validation_rules and options hold JSON text as entered by the
    administrator; they are rendered by the front-end, not interpreted here.
    """

    __tablename__ = "ticket_form_fields"

    ticket_type_id = Column(Integer, ForeignKey("ticket_types.id"), nullable=False, index=True)
    field_name = Column(String(100), nullable=False)
    display_name = Column(String(200), nullable=False)
    field_type = Column(Enum(FormFieldType, name="formfieldtype"), nullable=False, default=FormFieldType.TEXT)
    default_value = Column(String(500), nullable=True)
    placeholder_text = Column(String(200), nullable=True)
    help_text = Column(String(500), nullable=True)
    is_required = Column(Boolean, default=False, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    min_length = Column(Integer, nullable=True)
    max_length = Column(Integer, nullable=True)
    validation_rules = Column(Text, nullable=True)
    options = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    ticket_type = relationship("TicketType", back_populates="form_fields")
