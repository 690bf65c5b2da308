"""
Database models package.

WHY: Centralizing model imports ensures Alembic can discover all models
for migration generation and makes it easier to import models elsewhere.
"""

from helpdesk.models.base import Base, TimestampMixin, PrimaryKeyMixin
from helpdesk.models.company import Company, PlanType
from helpdesk.models.user import User, UserRole
from helpdesk.models.catalog import (
    TicketType,
    TicketCategory,
    TicketModule,
    TicketFormField,
    FormFieldType,
)
from helpdesk.models.ticket import (
    Ticket,
    TicketStatus,
    TicketPriority,
    TicketComment,
    TicketAttachment,
    TicketFormData,
)
from helpdesk.models.system_setting import SystemSetting, SettingDataType

__all__ = [
    "Base",
    "TimestampMixin",
    "PrimaryKeyMixin",
    "Company",
    "PlanType",
    "User",
    "UserRole",
    "TicketType",
    "TicketCategory",
    "TicketModule",
    "TicketFormField",
    "FormFieldType",
    "Ticket",
    "TicketStatus",
    "TicketPriority",
    "TicketComment",
    "TicketAttachment",
    "TicketFormData",
    "SystemSetting",
    "SettingDataType",
]
