"""
Ticket service.

WHAT: Business operations on tickets: creation with number allocation,
status/assignee changes, comments, attachments and auto-close.

WHY: Every operation is the same shape (authorize, load through the
tenant-scoped repository, validate, write, notify) and this module is the
one place that shape is spelled out. Handlers stay thin.

HOW:
- Number allocation computes ``count(this month) + 1`` and inserts inside a
  SAVEPOINT. The unique constraint on ticket_number rejects a candidate a
  concurrent writer already took; the savepoint is rolled back and the
  number recomputed, up to TICKET_NUMBER_MAX_RETRIES times.
- Writes to an existing ticket go through ``get_for_update`` (row lock and
  tenant re-check) and the ticket's version counter.
- Notifications are best-effort and run once the write is committed, so
  no email announces a change that was rolled back.
- A stored attachment file is committed together with its row.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from helpdesk.core.config import settings
from helpdesk.core.exceptions import (
    AuthorizationError,
    ConflictError,
    FileStorageError,
    MissingTenantError,
    ResourceNotFoundError,
    TicketNotFoundError,
    TicketNumberConflictError,
    ValidationError,
)
from helpdesk.core.policy import (
    RequestContext,
    ResourceKind,
    STAFF_ROLES,
    can_author_internal,
    can_transition_tickets,
    can_view_internal,
)
from helpdesk.dao.catalog import FormFieldDAO, TicketCategoryDAO, TicketModuleDAO, TicketTypeDAO
from helpdesk.dao.tenant_scope import TenantScopedRepository
from helpdesk.dao.ticket import DETAIL_OPTIONS, LIST_OPTIONS, TicketDAO
from helpdesk.dao.user import UserDAO
from helpdesk.models.ticket import (
    Ticket,
    TicketAttachment,
    TicketComment,
    TicketPriority,
    TicketStatus,
)
from helpdesk.services.file_storage import (
    FileStorageService,
    UploadedFile,
    get_file_storage,
    ticket_folder,
)
from helpdesk.services.notification_service import NotificationService
from helpdesk.services.ticket_lifecycle import (
    format_ticket_number,
    number_prefix,
    parse_status,
    validate_transition,
)

logger = logging.getLogger(__name__)


class TicketService:
    """
    Ticket operations for one request.

    Attributes:
        session: Request-scoped database session
        notifications: Best-effort notification hooks
        storage: File store for attachments
        max_retries: Attempts at allocating a unique ticket number
    """

    def __init__(
        self,
        session: AsyncSession,
        notifications: Optional[NotificationService] = None,
        storage: Optional[FileStorageService] = None,
        max_retries: Optional[int] = None,
    ):
        self.session = session
        self.dao = TicketDAO(session)
        self.repo = TenantScopedRepository(session)
        self.notifications = notifications or NotificationService(session)
        self.storage = storage or get_file_storage()
        self.max_retries = max_retries or settings.TICKET_NUMBER_MAX_RETRIES

    # =========================================================================
    # Reads
    # =========================================================================

    async def list_tickets(
        self,
        ctx: RequestContext,
        page: int = 1,
        page_size: int = 10,
        status: Optional[str] = None,
        company_id: Optional[int] = None,
    ) -> Tuple[List[Ticket], int]:
        filters = []
        if status is not None:
            filters.append(Ticket.status == parse_status(status))
        if company_id is not None:
            filters.append(Ticket.company_id == company_id)
        return await self.repo.list(
            ResourceKind.TICKET,
            ctx,
            page=page,
            page_size=page_size,
            filters=filters,
            options=LIST_OPTIONS,
        )

    async def get_ticket(self, ctx: RequestContext, ticket_id: int) -> Ticket:
        try:
            return await self.repo.get(ResourceKind.TICKET, ctx, ticket_id, options=DETAIL_OPTIONS)
        except ResourceNotFoundError:
            raise TicketNotFoundError(ticket_id=ticket_id)

    @staticmethod
    def visible_comments(ctx: RequestContext, ticket: Ticket) -> List[TicketComment]:
        """Comments of ``ticket`` the caller may read; internal ones are staff-only."""
        if can_view_internal(ctx):
            return list(ticket.comments)
        return [comment for comment in ticket.comments if not comment.is_internal]

    # =========================================================================
    # Creation
    # =========================================================================

    async def _validate_catalog(
        self,
        ticket_type_id: int,
        category_id: Optional[int],
        module_id: Optional[int],
    ) -> None:
        if not await TicketTypeDAO(self.session).get_active(ticket_type_id):
            raise ValidationError(message="Unknown ticket type", ticket_type_id=ticket_type_id)

        if category_id is not None and not await TicketCategoryDAO(self.session).get_active(category_id):
            raise ValidationError(message="Unknown category", category_id=category_id)

        if module_id is not None:
            module = await TicketModuleDAO(self.session).get_active(module_id)
            if module is None:
                raise ValidationError(message="Unknown module", module_id=module_id)
            if category_id is None or module.category_id != category_id:
                raise ValidationError(
                    message="Module does not belong to the selected category",
                    module_id=module_id,
                    category_id=category_id,
                )

    async def _validate_form_values(
        self,
        ticket_type_id: int,
        values: Dict[int, Optional[str]],
    ) -> Dict[int, Optional[str]]:
        """
        Check dynamic form values against the ticket type's active fields.

        Raises:
            ValidationError: On unknown fields, missing required values or
                length violations
        """
        fields = {f.id: f for f in await FormFieldDAO(self.session).list_active_for_type(ticket_type_id)}

        unknown = sorted(set(values) - set(fields))
        if unknown:
            raise ValidationError(message="Unknown form fields for this ticket type", form_field_ids=unknown)

        for field in fields.values():
            value = values.get(field.id)
            if not value or not value.strip():
                if field.is_required:
                    raise ValidationError(message=f"{field.display_name} is required", form_field_id=field.id)
                continue
            if field.min_length is not None and len(value) < field.min_length:
                raise ValidationError(
                    message=f"{field.display_name} must be at least {field.min_length} characters",
                    form_field_id=field.id,
                )
            if field.max_length is not None and len(value) > field.max_length:
                raise ValidationError(
                    message=f"{field.display_name} must be at most {field.max_length} characters",
                    form_field_id=field.id,
                )

        return {field_id: value for field_id, value in values.items() if value is not None}

    async def _insert_with_number(self, now: datetime, **fields) -> Ticket:
        """
        Allocate the next ticket number for ``now``'s month and insert.

        Raises:
            TicketNumberConflictError: If every attempt collided
        """
        prefix = number_prefix(now)

        for attempt in range(1, self.max_retries + 1):
            sequence = await self.dao.count_numbers_with_prefix(prefix) + 1
            candidate = format_ticket_number(now, sequence)
            try:
                async with self.session.begin_nested():
                    return await self.dao.insert(ticket_number=candidate, **fields)
            except IntegrityError:
                logger.warning(
                    f"Ticket number {candidate} already taken "
                    f"(attempt {attempt}/{self.max_retries})"
                )

        logger.error(f"Gave up allocating a ticket number for {prefix} after {self.max_retries} attempts")
        raise TicketNumberConflictError(attempts=self.max_retries)

    async def create_ticket(
        self,
        ctx: RequestContext,
        title: str,
        description: str,
        ticket_type_id: int,
        category_id: Optional[int] = None,
        module_id: Optional[int] = None,
        priority: Optional[TicketPriority] = None,
        form_values: Optional[Dict[int, Optional[str]]] = None,
        attachments: Sequence[UploadedFile] = (),
        now: Optional[datetime] = None,
    ) -> Ticket:
        """
        Create a ticket in the caller's company.

        Attachments are validated up front but stored only after the ticket
        is committed. If storing one fails, the ticket and the attachments
        stored before it stay, staff are still notified, and the failure is
        raised as FileStorageError carrying the ticket number.

        Raises:
            MissingTenantError: If the caller belongs to no company
            ValidationError: On bad catalog references, form values or files
            TicketNumberConflictError: If no unique number could be allocated
            FileStorageError: If an attachment could not be stored
        """
        if ctx.tenant_id is None:
            raise MissingTenantError(user_id=ctx.account_id)

        await self._validate_catalog(ticket_type_id, category_id, module_id)
        values = await self._validate_form_values(ticket_type_id, form_values or {})
        for upload in attachments:
            self.storage.check_upload(upload)

        ticket = await self._insert_with_number(
            now or datetime.utcnow(),
            company_id=ctx.tenant_id,
            created_by_user_id=ctx.account_id,
            ticket_type_id=ticket_type_id,
            category_id=category_id,
            module_id=module_id,
            title=title,
            description=description,
            priority=priority or TicketPriority.MEDIUM,
        )
        if values:
            await self.dao.add_form_values(ticket.id, values)

        logger.info(f"Ticket {ticket.ticket_number} created by user {ctx.account_id} in company {ctx.tenant_id}")

        await self.session.commit()
        try:
            for upload in attachments:
                await self._store_attachment(ctx, ticket, upload)
        except FileStorageError:
            await self._announce_created(ticket.id)
            raise

        return await self._announce_created(ticket.id)

    async def _announce_created(self, ticket_id: int) -> Ticket:
        ticket = await self.dao.get_with_relations(ticket_id)
        await self._notify(self.notifications.notify_ticket_created(ticket))
        return ticket

    # =========================================================================
    # Status and assignment
    # =========================================================================

    async def _validate_assignee(self, ticket: Ticket, user_id: int) -> None:
        user = await UserDAO(self.session).get_by_id(user_id)
        if user is None or not user.is_active:
            raise ValidationError(message="Assignee not found", assigned_to_user_id=user_id)

        same_tenant = user.company_id == ticket.company_id
        platform_staff = user.company_id is None and bool(user.role_set & STAFF_ROLES)
        if not (same_tenant or platform_staff):
            raise ValidationError(
                message="Assignee must belong to the ticket's company",
                assigned_to_user_id=user_id,
            )

    async def change_status(
        self,
        ctx: RequestContext,
        ticket_id: int,
        status: str,
        assigned_to_user_id: Optional[int] = None,
    ) -> Ticket:
        """
        Move a ticket to ``status`` and optionally set its assignee.

        Raises:
            AuthorizationError: If the caller is not staff
            InvalidStateTransitionError: On unknown status or illegal move
            TicketNotFoundError: If the ticket is not visible to the caller
            ConflictError: If another writer updated the ticket concurrently
        """
        if not can_transition_tickets(ctx):
            raise AuthorizationError(
                message="Only support staff can change ticket status",
                user_id=ctx.account_id,
            )

        target = parse_status(status)

        try:
            ticket = await self.repo.get_for_update(ResourceKind.TICKET, ctx, ticket_id)
        except ResourceNotFoundError:
            raise TicketNotFoundError(ticket_id=ticket_id)

        old_status = ticket.status
        validate_transition(old_status, target)

        if assigned_to_user_id is not None:
            await self._validate_assignee(ticket, assigned_to_user_id)
            ticket.assigned_to_user_id = assigned_to_user_id

        if target != old_status:
            ticket.status = target
            if target == TicketStatus.RESOLVED:
                ticket.resolved_at = datetime.utcnow()
            elif target == TicketStatus.CLOSED:
                ticket.closed_at = datetime.utcnow()

        try:
            await self.session.flush()
        except StaleDataError:
            raise ConflictError(
                message="Ticket was modified by someone else, reload and retry",
                ticket_id=ticket_id,
            )

        if target != old_status:
            await self.dao.add_comment(
                ticket_id=ticket.id,
                user_id=ctx.account_id,
                comment=f"Status changed: {old_status.value} -> {target.value}",
                is_internal=True,
                is_system_message=True,
            )
            logger.info(
                f"Ticket {ticket.ticket_number} moved {old_status.value} -> {target.value} "
                f"by user {ctx.account_id}"
            )

        await self.session.commit()
        ticket = await self.dao.get_with_relations(ticket.id)
        if target != old_status:
            await self._notify(self.notifications.notify_status_changed(ticket, old_status, target))
        return ticket

    # =========================================================================
    # Comments and attachments
    # =========================================================================

    async def add_comment(
        self,
        ctx: RequestContext,
        ticket_id: int,
        text: str,
        is_internal: bool = False,
    ) -> TicketComment:
        """
        Add a comment to a ticket the caller can see.

        ``is_internal`` is forced to False for Customer and User accounts,
        whatever the request says.
        """
        ticket = await self.get_ticket(ctx, ticket_id)

        internal = bool(is_internal) and can_author_internal(ctx)
        if is_internal and not internal:
            logger.info(f"Dropped internal flag on comment by non-staff user {ctx.account_id}")

        comment = await self.dao.add_comment(
            ticket_id=ticket.id,
            user_id=ctx.account_id,
            comment=text,
            is_internal=internal,
        )
        # Reloaded on the next scoped read of this ticket
        self.session.expire(ticket, ["comments"])
        await self.session.commit()
        await self._notify(self.notifications.notify_comment_added(ticket, comment))
        return comment

    async def _store_attachment(
        self,
        ctx: RequestContext,
        ticket: Ticket,
        upload: UploadedFile,
    ) -> TicketAttachment:
        try:
            handle = await self.storage.store(upload, folder=ticket_folder(ticket.id))
        except FileStorageError as e:
            e.context.update(ticket_id=ticket.id, ticket_number=ticket.ticket_number)
            raise
        try:
            attachment = await self.dao.add_attachment(
                ticket_id=ticket.id,
                uploaded_by_user_id=ctx.account_id,
                file_name=upload.filename,
                storage_path=handle,
                content_type=upload.content_type or "application/octet-stream",
                file_size=upload.size,
            )
            await self.session.commit()
        except Exception:
            # Drop the file when its row did not commit
            await self.storage.delete(handle)
            raise
        self.session.expire(ticket, ["attachments"])
        return attachment

    async def add_attachment(
        self,
        ctx: RequestContext,
        ticket_id: int,
        upload: UploadedFile,
    ) -> TicketAttachment:
        ticket = await self.get_ticket(ctx, ticket_id)
        return await self._store_attachment(ctx, ticket, upload)

    # =========================================================================
    # Maintenance
    # =========================================================================

    async def auto_close_resolved(
        self,
        older_than_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Close tickets that have sat in RESOLVED longer than the threshold.

        The closes are committed, then the creator and assignee of each
        ticket get the usual status change notification.

        Returns:
            Number of tickets closed
        """
        days = older_than_days if older_than_days is not None else settings.AUTO_CLOSE_RESOLVED_AFTER_DAYS
        current = now or datetime.utcnow()
        tickets = await self.dao.list_resolved_before(current - timedelta(days=days))
        if not tickets:
            return 0

        for ticket in tickets:
            ticket.status = TicketStatus.CLOSED
            ticket.closed_at = current
        await self.session.commit()
        logger.info(f"Auto-closed {len(tickets)} tickets resolved more than {days} days ago")
        for ticket in tickets:
            await self._notify(
                self.notifications.notify_status_changed(ticket, TicketStatus.RESOLVED, TicketStatus.CLOSED)
            )
        return len(tickets)

    @staticmethod
    async def _notify(hook) -> None:
        """Await a notification hook; failures are logged, never raised."""
        try:
            await hook
        except Exception as e:
            logger.error(f"Notification hook failed: {e}")
