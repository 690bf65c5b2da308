"""
Tests for ticket numbering and the status machine.

WHY: Ticket numbers are shown to customers and quoted in emails, and the
status machine decides which moves staff may make. Both are pure, so they
are tested without a database.
"""

import pytest
from datetime import datetime

from helpdesk.core.exceptions import InvalidStateTransitionError
from helpdesk.models.ticket import TicketStatus
from helpdesk.services.ticket_lifecycle import (
    format_ticket_number,
    is_transition_allowed,
    number_prefix,
    parse_status,
    validate_transition,
)


class TestTicketNumbers:
    def test_format_pads_month_and_sequence(self):
        assert format_ticket_number(datetime(2026, 3, 14), 7) == "TK-2026-03-007"

    def test_sequence_beyond_three_digits(self):
        """
        WHY: A busy month must not wrap around to 000.
        """
        assert format_ticket_number(datetime(2026, 12, 1), 1234) == "TK-2026-12-1234"

    def test_sequence_starts_at_one(self):
        with pytest.raises(ValueError):
            format_ticket_number(datetime(2026, 1, 1), 0)

    def test_prefix(self):
        assert number_prefix(datetime(2025, 11, 30)) == "TK-2025-11-"


class TestParseStatus:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("Open", TicketStatus.OPEN),
            ("InProgress", TicketStatus.IN_PROGRESS),
            ("IN_PROGRESS", TicketStatus.IN_PROGRESS),
            ("Resolved", TicketStatus.RESOLVED),
            ("CLOSED", TicketStatus.CLOSED),
            (TicketStatus.OPEN, TicketStatus.OPEN),
        ],
    )
    def test_known(self, value, expected):
        assert parse_status(value) == expected

    def test_unknown_is_invalid_state(self):
        with pytest.raises(InvalidStateTransitionError):
            parse_status("Pending")


class TestTransitions:
    @pytest.mark.parametrize(
        "current, target",
        [
            (TicketStatus.OPEN, TicketStatus.IN_PROGRESS),
            (TicketStatus.OPEN, TicketStatus.CLOSED),
            (TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED),
            (TicketStatus.IN_PROGRESS, TicketStatus.CLOSED),
            (TicketStatus.RESOLVED, TicketStatus.CLOSED),
        ],
    )
    def test_allowed(self, current, target):
        assert is_transition_allowed(current, target)
        validate_transition(current, target)

    @pytest.mark.parametrize(
        "current, target",
        [
            (TicketStatus.OPEN, TicketStatus.RESOLVED),
            (TicketStatus.RESOLVED, TicketStatus.OPEN),
            (TicketStatus.RESOLVED, TicketStatus.IN_PROGRESS),
            (TicketStatus.IN_PROGRESS, TicketStatus.OPEN),
        ],
    )
    def test_disallowed(self, current, target):
        assert not is_transition_allowed(current, target)
        with pytest.raises(InvalidStateTransitionError):
            validate_transition(current, target)

    @pytest.mark.parametrize("target", list(TicketStatus))
    def test_closed_is_terminal(self, target):
        with pytest.raises(InvalidStateTransitionError):
            validate_transition(TicketStatus.CLOSED, target)

    @pytest.mark.parametrize("status", [TicketStatus.OPEN, TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED])
    def test_same_status_is_allowed(self, status):
        """
        WHY: Staff reassign a ticket by sending its current status with a
        new assignee.
        """
        assert is_transition_allowed(status, status)
