# tests/unit/test_state_machine.py

from datetime import datetime, timedelta, timezone
from enum import Enum

import pytest

from cinema_engine.domain.state_machine import (
    BookingStateMachine,
    BookingStatus,
    ScreeningStateMachine,
    ScreeningStatus,
    StateMachine,
    TicketStateMachine,
    TicketStatus,
    effective_ticket_status,
)
from cinema_engine.domain.exceptions import ErrorKind, InvalidStateTransitionError


NOW = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)


# ---------------------
# VALID TRANSITIONS
# ---------------------

def test_valid_ticket_paths():
    assert TicketStateMachine.can_transition(TicketStatus.HELD, TicketStatus.PAID)
    assert TicketStateMachine.can_transition(TicketStatus.HELD, TicketStatus.EXPIRED)
    assert TicketStateMachine.can_transition(TicketStatus.HELD, TicketStatus.CANCELLED)


def test_valid_booking_paths():
    assert BookingStateMachine.can_transition(BookingStatus.PENDING, BookingStatus.PAID)
    assert BookingStateMachine.can_transition(BookingStatus.PENDING, BookingStatus.CANCELLED)


def test_screening_can_be_cancelled_or_finished():
    assert ScreeningStateMachine.get_allowed_transitions(ScreeningStatus.SCHEDULED) == {
        ScreeningStatus.CANCELLED,
        ScreeningStatus.FINISHED,
    }


# ---------------------
# INVALID TRANSITIONS
# ---------------------

def test_paid_ticket_cannot_expire():
    with pytest.raises(InvalidStateTransitionError) as exc_info:
        TicketStateMachine.validate_transition(TicketStatus.PAID, TicketStatus.EXPIRED)

    assert exc_info.value.from_state == "PAID"
    assert exc_info.value.to_state == "EXPIRED"
    assert exc_info.value.kind is ErrorKind.INVALID_REFERENCE


def test_terminal_booking_states():
    assert BookingStateMachine.is_terminal(BookingStatus.PAID)
    assert BookingStateMachine.is_terminal(BookingStatus.CANCELLED)

    with pytest.raises(InvalidStateTransitionError):
        BookingStateMachine.validate_transition(BookingStatus.CANCELLED, BookingStatus.PAID)


def test_cancelled_screening_cannot_be_rescheduled():
    with pytest.raises(InvalidStateTransitionError):
        ScreeningStateMachine.validate_transition(
            ScreeningStatus.CANCELLED,
            ScreeningStatus.SCHEDULED,
        )


def test_invalid_type_guard():
    with pytest.raises(TypeError):
        BookingStateMachine.validate_transition(
            "PENDING",  # invalid type
            BookingStatus.PAID,
        )


def test_every_status_needs_transitions():
    class Light(str, Enum):
        ON = "ON"
        OFF = "OFF"

    with pytest.raises(TypeError, match="OFF"):
        class LightMachine(StateMachine):
            status_type = Light
            _ALLOWED_TRANSITIONS = {Light.ON: set()}


# ---------------------
# EFFECTIVE STATUS
# ---------------------

def test_lapsed_hold_reads_as_expired():
    assert effective_ticket_status(TicketStatus.HELD, NOW, NOW) is TicketStatus.EXPIRED
    assert effective_ticket_status(
        TicketStatus.HELD, NOW + timedelta(seconds=1), NOW
    ) is TicketStatus.HELD


def test_hold_without_expiry_never_lapses():
    assert effective_ticket_status(TicketStatus.HELD, None, NOW) is TicketStatus.HELD


def test_settled_tickets_keep_their_status():
    assert effective_ticket_status(TicketStatus.PAID, None, NOW) is TicketStatus.PAID
    assert effective_ticket_status(
        TicketStatus.CANCELLED, NOW - timedelta(minutes=1), NOW
    ) is TicketStatus.CANCELLED
