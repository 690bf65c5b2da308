"""
Data Access Object (DAO) package.

WHY: DAOs provide a clean separation between database operations and business logic,
making the codebase more testable and maintainable.
"""

from helpdesk.dao.base import BaseDAO
from helpdesk.dao.user import UserDAO
from helpdesk.dao.company import CompanyDAO
from helpdesk.dao.ticket import TicketDAO
from helpdesk.dao.catalog import TicketTypeDAO, TicketCategoryDAO, TicketModuleDAO, FormFieldDAO
from helpdesk.dao.system_setting import SystemSettingDAO
from helpdesk.dao.tenant_scope import TenantScopedRepository

__all__ = [
    "BaseDAO",
    "UserDAO",
    "CompanyDAO",
    "TicketDAO",
    "TicketTypeDAO",
    "TicketCategoryDAO",
    "TicketModuleDAO",
    "FormFieldDAO",
    "SystemSettingDAO",
    "TenantScopedRepository",
]
