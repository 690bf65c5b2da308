"""
Test factories for creating test data.

WHY: Factories provide a consistent, reusable way to create test objects,
reducing duplication and making tests more maintainable. Using factories
instead of manual object creation ensures tests stay consistent when models change.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.auth import hash_password
from helpdesk.models.company import Company, PlanType
from helpdesk.models.user import User, UserRole
from helpdesk.models.catalog import (
    FormFieldType,
    TicketCategory,
    TicketFormField,
    TicketModule,
    TicketType,
)
from helpdesk.models.ticket import (
    Ticket,
    TicketComment,
    TicketPriority,
    TicketStatus,
)
from helpdesk.models.system_setting import SettingDataType, SystemSetting

DEFAULT_PASSWORD = "TestPassword123!"


class CompanyFactory:
    """
    Factory for creating Company (tenant) test instances.

    WHY: Nearly every test needs at least one tenant to scope data to.
    """

    _counter = 0

    @staticmethod
    async def create(
        session: AsyncSession,
        name: str = "Test Company",
        database_name: Optional[str] = None,
        plan_type: PlanType = PlanType.BASIC,
        ticket_credits: int = 100,
        monthly_ticket_limit: int = 50,
        is_active: bool = True,
    ) -> Company:
        """
        Create a company for testing.

        Args:
            session: Database session
            name: Company name
            database_name: Unique legacy database name (generated if omitted)
            plan_type: Subscription tier
            ticket_credits: Starting credit balance
            monthly_ticket_limit: Monthly ticket cap
            is_active: Whether the company is active

        Returns:
            Created Company instance
        """
        CompanyFactory._counter += 1
        company = Company(
            name=name,
            database_name=database_name or f"test_db_{CompanyFactory._counter}",
            plan_type=plan_type,
            ticket_credits=ticket_credits,
            monthly_ticket_limit=monthly_ticket_limit,
            is_active=is_active,
        )
        session.add(company)
        await session.commit()
        await session.refresh(company)
        return company


class UserFactory:
    """
    Factory for creating User test instances.

    WHY: Provides consistent account creation with proper password hashing
    and role lists for testing authentication and authorization.
    """

    _counter = 0

    @staticmethod
    async def create(
        session: AsyncSession,
        email: Optional[str] = None,
        password: str = DEFAULT_PASSWORD,
        first_name: str = "Test",
        last_name: str = "User",
        roles: Optional[List[UserRole]] = None,
        company: Optional[Company] = None,
        is_active: bool = True,
    ) -> User:
        """
        Create an account for testing.

        Args:
            session: Database session
            email: Unique email (generated if omitted)
            password: Plain text password (will be hashed)
            first_name: Given name
            last_name: Family name
            roles: Roles held (defaults to Customer)
            company: Tenant; None makes a platform-level account
            is_active: Whether the account may log in

        Returns:
            Created User instance
        """
        UserFactory._counter += 1
        user = User(
            email=email or f"user{UserFactory._counter}@example.com",
            hashed_password=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            roles=[role.value for role in (roles or [UserRole.CUSTOMER])],
            company_id=company.id if company else None,
            is_active=is_active,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user

    @staticmethod
    async def create_super_admin(session: AsyncSession, **kwargs) -> User:
        kwargs.setdefault("first_name", "Super")
        kwargs.setdefault("last_name", "Admin")
        return await UserFactory.create(session, roles=[UserRole.SUPER_ADMIN], **kwargs)

    @staticmethod
    async def create_admin(session: AsyncSession, company: Company, **kwargs) -> User:
        kwargs.setdefault("first_name", "Company")
        kwargs.setdefault("last_name", "Admin")
        return await UserFactory.create(session, roles=[UserRole.ADMIN], company=company, **kwargs)

    @staticmethod
    async def create_support(session: AsyncSession, company: Optional[Company], **kwargs) -> User:
        kwargs.setdefault("first_name", "Support")
        kwargs.setdefault("last_name", "Agent")
        return await UserFactory.create(session, roles=[UserRole.SUPPORT], company=company, **kwargs)

    @staticmethod
    async def create_customer(session: AsyncSession, company: Company, **kwargs) -> User:
        kwargs.setdefault("first_name", "Customer")
        kwargs.setdefault("last_name", "Person")
        return await UserFactory.create(session, roles=[UserRole.CUSTOMER], company=company, **kwargs)


class CatalogFactory:
    """
    Factory for ticket types, categories, modules and form fields.

    WHY: Every ticket references a ticket type, and most creation tests
    need a category/module pair to exercise the catalog checks.
    """

    @staticmethod
    async def create_ticket_type(
        session: AsyncSession,
        name: str = "Incident",
        is_active: bool = True,
        sort_order: int = 0,
    ) -> TicketType:
        ticket_type = TicketType(name=name, is_active=is_active, sort_order=sort_order)
        session.add(ticket_type)
        await session.commit()
        await session.refresh(ticket_type)
        return ticket_type

    @staticmethod
    async def create_category(
        session: AsyncSession,
        name: str = "Billing",
        is_active: bool = True,
    ) -> TicketCategory:
        category = TicketCategory(name=name, is_active=is_active)
        session.add(category)
        await session.commit()
        await session.refresh(category)
        return category

    @staticmethod
    async def create_module(
        session: AsyncSession,
        category: TicketCategory,
        name: str = "Invoices",
        is_active: bool = True,
    ) -> TicketModule:
        module = TicketModule(category_id=category.id, name=name, is_active=is_active)
        session.add(module)
        await session.commit()
        await session.refresh(module)
        return module

    @staticmethod
    async def create_form_field(
        session: AsyncSession,
        ticket_type: TicketType,
        field_name: str = "order_number",
        display_name: str = "Order number",
        field_type: FormFieldType = FormFieldType.TEXT,
        is_required: bool = False,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
        sort_order: int = 0,
        is_active: bool = True,
    ) -> TicketFormField:
        field = TicketFormField(
            ticket_type_id=ticket_type.id,
            field_name=field_name,
            display_name=display_name,
            field_type=field_type,
            is_required=is_required,
            min_length=min_length,
            max_length=max_length,
            sort_order=sort_order,
            is_active=is_active,
        )
        session.add(field)
        await session.commit()
        await session.refresh(field)
        return field


class TicketFactory:
    """
    Factory for creating Ticket test instances directly in the database.

    WHY: Lets tests set up tickets in any status (and any month) without
    walking the API lifecycle first.
    """

    _counter = 0

    @staticmethod
    async def create(
        session: AsyncSession,
        company: Company,
        created_by: User,
        ticket_type: TicketType,
        title: str = "Cannot print invoice",
        description: str = "The print button does nothing.",
        status: TicketStatus = TicketStatus.OPEN,
        priority: TicketPriority = TicketPriority.MEDIUM,
        assigned_to: Optional[User] = None,
        ticket_number: Optional[str] = None,
        resolved_at: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
    ) -> Ticket:
        """
        Create a ticket for testing.

        Ticket numbers default to a fixed past month so they never collide
        with numbers allocated by the service during the test.
        """
        TicketFactory._counter += 1
        ticket = Ticket(
            ticket_number=ticket_number or f"TK-2000-01-{TicketFactory._counter:03d}",
            company_id=company.id,
            created_by_user_id=created_by.id,
            assigned_to_user_id=assigned_to.id if assigned_to else None,
            ticket_type_id=ticket_type.id,
            title=title,
            description=description,
            status=status,
            priority=priority,
            resolved_at=resolved_at,
            created_at=created_at or datetime.utcnow(),
        )
        session.add(ticket)
        await session.commit()
        await session.refresh(ticket)
        return ticket

    @staticmethod
    async def add_comment(
        session: AsyncSession,
        ticket: Ticket,
        user: User,
        comment: str = "Any update?",
        is_internal: bool = False,
    ) -> TicketComment:
        entry = TicketComment(
            ticket_id=ticket.id,
            user_id=user.id,
            comment=comment,
            is_internal=is_internal,
            created_at=datetime.utcnow(),
        )
        session.add(entry)
        await session.commit()
        await session.refresh(entry)
        return entry


class SettingFactory:
    """Factory for SystemSetting rows."""

    @staticmethod
    async def create(
        session: AsyncSession,
        setting_key: str = "support.email",
        setting_value: str = "support@example.com",
        data_type: SettingDataType = SettingDataType.STRING,
        category: str = "General",
        is_system_setting: bool = False,
        is_visible: bool = True,
        default_value: Optional[str] = None,
    ) -> SystemSetting:
        setting = SystemSetting(
            setting_key=setting_key,
            setting_value=setting_value,
            data_type=data_type,
            category=category,
            is_system_setting=is_system_setting,
            is_visible=is_visible,
            default_value=default_value,
        )
        session.add(setting)
        await session.commit()
        await session.refresh(setting)
        return setting
