# cinema_engine/domain/state_machine.py

from datetime import datetime
from enum import Enum
from typing import ClassVar, Dict, Set, Type

from cinema_engine.domain.exceptions import InvalidStateTransitionError


class TicketStatus(str, Enum):
    HELD = "HELD"
    PAID = "PAID"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class ScreeningStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    CANCELLED = "CANCELLED"
    FINISHED = "FINISHED"


ACTIVE_TICKET_STATUSES = frozenset({TicketStatus.HELD, TicketStatus.PAID})


class StateMachine:
    """
    Lifecycle controller over a closed status enum.

    Subclasses declare ``status_type`` and ``_ALLOWED_TRANSITIONS``;
    the table must name every member of the enum, so adding a status
    without deciding its transitions fails at import time.
    """

    status_type: ClassVar[Type[Enum]]
    _ALLOWED_TRANSITIONS: ClassVar[Dict[Enum, Set[Enum]]]

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        missing = set(cls.status_type) - set(cls._ALLOWED_TRANSITIONS)
        if missing:
            names = ", ".join(sorted(status.value for status in missing))
            raise TypeError(f"{cls.__name__} has no transitions for: {names}")

    @classmethod
    def can_transition(cls, from_status, to_status) -> bool:
        """
        Returns True if transition is allowed.
        """
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)

        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(cls, from_status, to_status) -> None:
        """
        Raises InvalidStateTransitionError if transition is illegal.
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
            )

    @classmethod
    def is_terminal(cls, status) -> bool:
        cls._ensure_valid_status(status)
        return len(cls._ALLOWED_TRANSITIONS.get(status, set())) == 0

    @classmethod
    def get_allowed_transitions(cls, status) -> Set:
        cls._ensure_valid_status(status)
        return cls._ALLOWED_TRANSITIONS.get(status, set())

    @classmethod
    def _ensure_valid_status(cls, status) -> None:
        if not isinstance(status, cls.status_type):
            raise TypeError(
                f"Expected {cls.status_type.__name__}, got {type(status)}"
            )


class TicketStateMachine(StateMachine):
    status_type = TicketStatus
    _ALLOWED_TRANSITIONS = {
        TicketStatus.HELD: {
            TicketStatus.PAID,
            TicketStatus.EXPIRED,
            TicketStatus.CANCELLED,
        },
        TicketStatus.PAID: set(),
        TicketStatus.EXPIRED: set(),
        TicketStatus.CANCELLED: set(),
    }


class BookingStateMachine(StateMachine):
    status_type = BookingStatus
    _ALLOWED_TRANSITIONS = {
        BookingStatus.PENDING: {
            BookingStatus.PAID,
            BookingStatus.CANCELLED,
        },
        BookingStatus.PAID: set(),
        BookingStatus.CANCELLED: set(),
    }


class ScreeningStateMachine(StateMachine):
    status_type = ScreeningStatus
    _ALLOWED_TRANSITIONS = {
        ScreeningStatus.SCHEDULED: {
            ScreeningStatus.CANCELLED,
            ScreeningStatus.FINISHED,
        },
        ScreeningStatus.CANCELLED: set(),
        ScreeningStatus.FINISHED: set(),
    }


def effective_ticket_status(
    status: TicketStatus,
    hold_expires_at: datetime | None,
    now: datetime,
) -> TicketStatus:
    """
    Status as seen at ``now``: a HELD ticket whose hold has lapsed
    reads as EXPIRED even before the sweeper has written it.
    A HELD ticket without an expiry never lapses.
    """
    if status is TicketStatus.HELD and hold_expires_at is not None:
        if hold_expires_at <= now:
            return TicketStatus.EXPIRED
    return status

