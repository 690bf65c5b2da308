"""
Ticket Data Access Object.

WHAT: DAO for ticket rows and their comments, attachments and form data.

WHY: Keeps SQL out of the ticket service. Tenant filtering of reads is done
by TenantScopedRepository; this DAO covers the writes and the few
unscoped queries the service needs (number allocation, auto-close).

HOW: Uses SQLAlchemy 2.0 async; every write only flushes.
"""

from datetime import datetime
from typing import Optional, List, Dict

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from helpdesk.models.ticket import (
    Ticket,
    TicketStatus,
    TicketPriority,
    TicketComment,
    TicketAttachment,
    TicketFormData,
)


# Loader options for list rows and detail views
LIST_OPTIONS = (
    selectinload(Ticket.company),
    selectinload(Ticket.created_by),
    selectinload(Ticket.assigned_to),
    selectinload(Ticket.ticket_type),
    selectinload(Ticket.category),
    selectinload(Ticket.module),
)

DETAIL_OPTIONS = LIST_OPTIONS + (
    selectinload(Ticket.comments).selectinload(TicketComment.user),
    selectinload(Ticket.attachments),
    selectinload(Ticket.form_data).selectinload(TicketFormData.form_field),
)


class TicketDAO:
    """
    Data Access Object for Ticket operations.

    HOW: All methods are async and use session for transactions.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize TicketDAO with database session.

        Args:
            session: AsyncSession for database operations
        """
        self.session = session

    async def count_numbers_with_prefix(self, prefix: str) -> int:
        """
        Count tickets whose number starts with ``prefix`` (one year+month).

        WHY: The monthly sequence is derived from this count. The result can
        go stale before the insert commits; the unique constraint on
        ticket_number is what actually guarantees uniqueness.
        """
        result = await self.session.execute(
            select(func.count(Ticket.id)).where(Ticket.ticket_number.like(f"{prefix}%"))
        )
        return result.scalar_one()

    async def insert(
        self,
        ticket_number: str,
        company_id: int,
        created_by_user_id: int,
        ticket_type_id: int,
        title: str,
        description: str,
        priority: TicketPriority = TicketPriority.MEDIUM,
        category_id: Optional[int] = None,
        module_id: Optional[int] = None,
    ) -> Ticket:
        """
        Insert a new ticket in status OPEN.

        Raises:
            IntegrityError: If ticket_number is already taken
        """
        ticket = Ticket(
            ticket_number=ticket_number,
            company_id=company_id,
            created_by_user_id=created_by_user_id,
            ticket_type_id=ticket_type_id,
            category_id=category_id,
            module_id=module_id,
            title=title,
            description=description,
            status=TicketStatus.OPEN,
            priority=priority,
            created_at=datetime.utcnow(),
        )
        self.session.add(ticket)
        await self.session.flush()
        return ticket

    async def get_with_relations(self, ticket_id: int) -> Optional[Ticket]:
        """
        Get ticket by ID with detail relations loaded, bypassing any cache
        of already-loaded instances.
        """
        result = await self.session.execute(
            select(Ticket)
            .options(*DETAIL_OPTIONS)
            .where(Ticket.id == ticket_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_resolved_before(self, cutoff: datetime) -> List[Ticket]:
        """Tickets in RESOLVED whose resolution is older than ``cutoff``."""
        result = await self.session.execute(
            select(Ticket)
            .options(*LIST_OPTIONS)
            .where(
                Ticket.status == TicketStatus.RESOLVED,
                Ticket.resolved_at.is_not(None),
                Ticket.resolved_at < cutoff,
            )
            .order_by(Ticket.id)
        )
        return list(result.scalars().all())

    # =========================================================================
    # Comments, attachments, form data
    # =========================================================================

    async def add_comment(
        self,
        ticket_id: int,
        user_id: int,
        comment: str,
        is_internal: bool = False,
        is_system_message: bool = False,
    ) -> TicketComment:
        entry = TicketComment(
            ticket_id=ticket_id,
            user_id=user_id,
            comment=comment,
            is_internal=is_internal,
            is_system_message=is_system_message,
            created_at=datetime.utcnow(),
        )
        self.session.add(entry)
        await self.session.flush()
        await self.session.refresh(entry, attribute_names=["user"])
        return entry

    async def add_attachment(
        self,
        ticket_id: int,
        uploaded_by_user_id: int,
        file_name: str,
        storage_path: str,
        content_type: str,
        file_size: int,
    ) -> TicketAttachment:
        attachment = TicketAttachment(
            ticket_id=ticket_id,
            uploaded_by_user_id=uploaded_by_user_id,
            file_name=file_name,
            storage_path=storage_path,
            content_type=content_type,
            file_size=file_size,
            created_at=datetime.utcnow(),
        )
        self.session.add(attachment)
        await self.session.flush()
        return attachment

    async def add_form_values(self, ticket_id: int, values: Dict[int, Optional[str]]) -> None:
        for form_field_id, value in values.items():
            self.session.add(
                TicketFormData(
                    ticket_id=ticket_id,
                    form_field_id=form_field_id,
                    field_value=value,
                )
            )
        await self.session.flush()
