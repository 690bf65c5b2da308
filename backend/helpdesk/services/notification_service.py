"""
Notification Service for ticket events.

WHAT: Sends email notifications when a ticket is created, changes status
or receives a comment.

WHY: Notifications are supplementary. A slow or failing mail transport must
never fail or stall the ticket operation that triggered it, so every hook
is bounded by a timeout and reports success as a bool instead of raising.

HOW: Recipient lists are computed from the ticket (and, for staff
audiences, from the tenant's accounts) before any network I/O. Only the
sends run under ``asyncio.wait_for``; a timeout or provider error is
logged and swallowed.
"""

import asyncio
import logging
from typing import Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.config import settings
from helpdesk.core.policy import STAFF_ROLES
from helpdesk.dao.user import UserDAO
from helpdesk.models.ticket import Ticket, TicketComment, TicketStatus
from helpdesk.models.user import User, UserRole
from helpdesk.services.email import EmailService, get_email_service

logger = logging.getLogger(__name__)

# Staff who receive internal comments of their tenant
INTERNAL_AUDIENCE = frozenset({UserRole.ADMIN, UserRole.SUPPORT})


def dedupe_addresses(addresses: Iterable[Optional[str]], exclude: Iterable[Optional[str]] = ()) -> List[str]:
    """
    Unique, non-empty addresses in first-seen order, compared case-insensitively.
    """
    excluded = {a.lower() for a in exclude if a}
    seen: set[str] = set()
    result = []
    for address in addresses:
        if not address:
            continue
        key = address.lower()
        if key in seen or key in excluded:
            continue
        seen.add(key)
        result.append(address)
    return result


def comment_recipients(
    ticket: Ticket,
    author: User,
    is_internal: bool,
    staff: Iterable[User] = (),
) -> List[str]:
    """
    Who hears about a comment.

    Internal comments go to the tenant's Admin/Support accounts only.
    Public comments go to the ticket's creator and assignee. The author is
    never notified about their own comment.

    Args:
        ticket: Ticket with created_by and assigned_to loaded
        author: Account that wrote the comment
        is_internal: Whether the stored comment is internal
        staff: Active Admin/Support accounts of the ticket's tenant
    """
    if is_internal:
        candidates = [user.email for user in staff]
    else:
        candidates = [
            ticket.created_by.email if ticket.created_by else None,
            ticket.assigned_to.email if ticket.assigned_to else None,
        ]
    return dedupe_addresses(candidates, exclude=[author.email])


def status_recipients(ticket: Ticket) -> List[str]:
    return dedupe_addresses(
        [
            ticket.created_by.email if ticket.created_by else None,
            ticket.assigned_to.email if ticket.assigned_to else None,
        ]
    )


class NotificationService:
    """
    Sends ticket notifications through the email service.

    Attributes:
        session: Used to look up staff recipients
        email_service: Transport for the messages
        timeout: Ceiling in seconds for all sends of one hook
    """

    def __init__(
        self,
        session: AsyncSession,
        email_service: Optional[EmailService] = None,
        timeout: Optional[float] = None,
    ):
        self.session = session
        self.email_service = email_service or get_email_service()
        self.timeout = timeout if timeout is not None else settings.COLLABORATOR_TIMEOUT_SECONDS

    async def _deliver(self, event: str, ticket: Ticket, sends: list) -> bool:
        """
        Run the given send coroutines under the timeout.

        Returns:
            True if every send succeeded, False on any failure or timeout
        """
        if not sends:
            return True

        try:
            results = await asyncio.wait_for(asyncio.gather(*sends), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"{event} notification for {ticket.ticket_number} timed out after {self.timeout}s"
            )
            return False
        except Exception as e:
            logger.error(f"{event} notification for {ticket.ticket_number} failed: {e}")
            return False

        return all(result.success for result in results)

    async def notify_ticket_created(self, ticket: Ticket) -> bool:
        """
        Tell the tenant's staff and platform staff about a new ticket.

        Args:
            ticket: Created ticket with company and created_by loaded
        """
        logger.info(f"Sending ticket created notification for {ticket.ticket_number}")

        staff = await UserDAO(self.session).list_active_with_roles(
            STAFF_ROLES, ticket.company_id, include_platform=True
        )
        recipients = dedupe_addresses(
            [user.email for user in staff],
            exclude=[ticket.created_by.email if ticket.created_by else None],
        )

        sends = [
            self.email_service.send_ticket_created_email(
                to_email=address,
                ticket_number=ticket.ticket_number,
                title=ticket.title,
                company_name=ticket.company.name if ticket.company else "",
                created_by=ticket.created_by.full_name if ticket.created_by else "",
                priority=ticket.priority.value,
            )
            for address in recipients
        ]
        return await self._deliver("Ticket created", ticket, sends)

    async def notify_status_changed(
        self,
        ticket: Ticket,
        old_status: TicketStatus,
        new_status: TicketStatus,
    ) -> bool:
        """Tell the ticket's creator and assignee about a status change."""
        logger.info(
            f"Sending status change notification for {ticket.ticket_number}: "
            f"{old_status.value} -> {new_status.value}"
        )

        sends = [
            self.email_service.send_ticket_status_email(
                to_email=address,
                ticket_number=ticket.ticket_number,
                title=ticket.title,
                old_status=old_status.value,
                new_status=new_status.value,
            )
            for address in status_recipients(ticket)
        ]
        return await self._deliver("Status change", ticket, sends)

    async def notify_comment_added(self, ticket: Ticket, comment: TicketComment) -> bool:
        """
        Tell the comment's audience about it.

        Args:
            ticket: Ticket with created_by and assigned_to loaded
            comment: Stored comment with user loaded
        """
        logger.info(f"Sending comment notification for {ticket.ticket_number}")

        staff: List[User] = []
        if comment.is_internal:
            staff = await UserDAO(self.session).list_active_with_roles(
                INTERNAL_AUDIENCE, ticket.company_id, include_platform=False
            )

        sends = [
            self.email_service.send_ticket_comment_email(
                to_email=address,
                ticket_number=ticket.ticket_number,
                title=ticket.title,
                comment_author=comment.user.full_name,
                comment_text=comment.comment,
                is_internal=comment.is_internal,
            )
            for address in comment_recipients(ticket, comment.user, comment.is_internal, staff)
        ]
        return await self._deliver("Comment", ticket, sends)
