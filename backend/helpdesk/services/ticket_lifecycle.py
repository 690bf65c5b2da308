"""
Ticket numbering and status machine.

Pure functions, no I/O. Ticket numbers look like ``TK-2026-03-007``: the
year and month of creation plus a per-month sequence. Allocation against
the database (count, insert, retry on collision) lives in ticket_service.
"""

from datetime import datetime
from typing import Union

from helpdesk.core.exceptions import InvalidStateTransitionError
from helpdesk.models.ticket import TicketStatus

# Closed is terminal; any other state may jump straight to Closed
ALLOWED_TRANSITIONS: dict[TicketStatus, frozenset[TicketStatus]] = {
    TicketStatus.OPEN: frozenset({TicketStatus.IN_PROGRESS, TicketStatus.CLOSED}),
    TicketStatus.IN_PROGRESS: frozenset({TicketStatus.RESOLVED, TicketStatus.CLOSED}),
    TicketStatus.RESOLVED: frozenset({TicketStatus.CLOSED}),
    TicketStatus.CLOSED: frozenset(),
}


def number_prefix(when: datetime) -> str:
    """Prefix shared by every ticket number of ``when``'s year and month."""
    return f"TK-{when.year}-{when.month:02d}-"


def format_ticket_number(when: datetime, sequence: int) -> str:
    """
    Example:
        >>> format_ticket_number(datetime(2026, 3, 1), 7)
        'TK-2026-03-007'
    """
    if sequence < 1:
        raise ValueError("sequence starts at 1")
    return f"{number_prefix(when)}{sequence:03d}"


def parse_status(value: Union[str, TicketStatus]) -> TicketStatus:
    """
    Map a client-supplied status name to a TicketStatus.

    Accepts the enum value (``InProgress``) or name (``IN_PROGRESS``).

    Raises:
        InvalidStateTransitionError: If the status is unknown
    """
    if isinstance(value, TicketStatus):
        return value
    for status in TicketStatus:
        if value in (status.value, status.name):
            return status
    raise InvalidStateTransitionError(
        message=f"Unknown ticket status: {value}",
        status=value,
    )


def is_transition_allowed(current: TicketStatus, target: TicketStatus) -> bool:
    """
    Whether a ticket may move from ``current`` to ``target``.

    Keeping the current status is allowed (an assignee-only update) except
    on a closed ticket.
    """
    if current == TicketStatus.CLOSED:
        return False
    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS[current]


def validate_transition(current: TicketStatus, target: TicketStatus) -> None:
    """
    Raises:
        InvalidStateTransitionError: If the move is not allowed
    """
    if not is_transition_allowed(current, target):
        raise InvalidStateTransitionError(
            message=f"Cannot change status from {current.value} to {target.value}",
            current_status=current.value,
            target_status=target.value,
        )
