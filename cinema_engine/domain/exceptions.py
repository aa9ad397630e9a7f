from enum import Enum


class ErrorKind(str, Enum):
    ROOM_INACTIVE = "ROOM_INACTIVE"
    ROOM_NOT_IN_VENUE = "ROOM_NOT_IN_VENUE"
    DUPLICATE_SCREENING = "DUPLICATE_SCREENING"
    SCHEDULE_CONFLICT = "SCHEDULE_CONFLICT"
    TOO_MANY_SEATS = "TOO_MANY_SEATS"
    INCOMPLETE_COUPLE_SEAT = "INCOMPLETE_COUPLE_SEAT"
    ISOLATED_SEAT_GAP = "ISOLATED_SEAT_GAP"
    SEAT_ALREADY_HELD = "SEAT_ALREADY_HELD"
    BOOKING_NOT_FOUND = "BOOKING_NOT_FOUND"
    ALREADY_FINALIZED = "ALREADY_FINALIZED"
    HOLD_EXPIRED = "HOLD_EXPIRED"
    INVALID_REFERENCE = "INVALID_REFERENCE"
    TICKET_NOT_PAID = "TICKET_NOT_PAID"
    ALREADY_CHECKED_IN = "ALREADY_CHECKED_IN"


class CinemaEngineError(Exception):
    """
    Base exception for all domain-level errors
    inside the reservation and scheduling engine.

    Every subclass is recoverable by the caller; ``kind`` names
    the failure and ``details()`` carries structured context.
    """

    kind: ErrorKind

    def __init__(self, message: str | None = None):
        super().__init__(message or self.kind.value)

    @property
    def message(self) -> str:
        return str(self)

    def details(self) -> dict:
        return {}


class InvalidStateTransitionError(CinemaEngineError):
    """
    Raised when an illegal status transition is attempted.
    """

    kind = ErrorKind.INVALID_REFERENCE

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        super().__init__(message)


class InvalidReferenceError(CinemaEngineError):
    """Missing or unparsable movie, room, screening, seat or time."""

    kind = ErrorKind.INVALID_REFERENCE


# -----------------------------
# Scheduling
# -----------------------------
class RoomInactiveError(CinemaEngineError):
    kind = ErrorKind.ROOM_INACTIVE


class RoomNotInVenueError(CinemaEngineError):
    kind = ErrorKind.ROOM_NOT_IN_VENUE


class DuplicateScreeningError(CinemaEngineError):
    kind = ErrorKind.DUPLICATE_SCREENING

    def __init__(self, existing_id: int | None):
        self.existing_id = existing_id
        super().__init__(
            f"Screening {existing_id} already shows this movie in this room at this time"
        )

    def details(self) -> dict:
        return {"existing_id": self.existing_id}


class ScheduleConflictError(CinemaEngineError):
    """
    Raised when a candidate screening falls inside the buffered
    window of one or more screenings in the same room.
    """

    kind = ErrorKind.SCHEDULE_CONFLICT

    def __init__(self, conflicts: list, suggestion=None):
        self.conflicts = conflicts
        self.suggestion = suggestion
        super().__init__(
            f"Screening conflicts with {len(conflicts)} existing screening(s)"
        )

    def details(self) -> dict:
        return {
            "conflicts": [
                {
                    "id": item.id,
                    "movie_id": item.movie_id,
                    "start_time": item.start_time.isoformat(),
                    "end_time": item.end_time.isoformat(),
                }
                for item in self.conflicts
            ],
            "suggestion": self.suggestion.isoformat() if self.suggestion else None,
        }


# -----------------------------
# Seat selection
# -----------------------------
class TooManySeatsError(CinemaEngineError):
    kind = ErrorKind.TOO_MANY_SEATS

    def __init__(self, requested: int, limit: int):
        self.requested = requested
        self.limit = limit
        super().__init__(f"At most {limit} seats per booking, got {requested}")

    def details(self) -> dict:
        return {"requested": self.requested, "limit": self.limit}


class IncompleteCoupleSeatError(CinemaEngineError):
    kind = ErrorKind.INCOMPLETE_COUPLE_SEAT

    def __init__(self, seat_id: int, partner_id: int):
        self.seat_id = seat_id
        self.partner_id = partner_id
        super().__init__(f"Couple seat {seat_id} must be booked with seat {partner_id}")

    def details(self) -> dict:
        return {"seat_id": self.seat_id, "partner_id": self.partner_id}


class IsolatedSeatGapError(CinemaEngineError):
    kind = ErrorKind.ISOLATED_SEAT_GAP

    def __init__(self, row_label: str, seat_number: int):
        self.row_label = row_label
        self.seat_number = seat_number
        super().__init__(f"Selection leaves seat {row_label}{seat_number} isolated")

    def details(self) -> dict:
        return {"row": self.row_label, "seat_number": self.seat_number}


class SeatAlreadyHeldError(CinemaEngineError):
    kind = ErrorKind.SEAT_ALREADY_HELD

    def __init__(self, seat_ids=None):
        self.seat_ids = sorted(seat_ids or [])
        super().__init__("One or more seats are already held or sold")

    def details(self) -> dict:
        return {"seat_ids": self.seat_ids}


# -----------------------------
# Booking lifecycle
# -----------------------------
class BookingNotFoundError(CinemaEngineError):
    kind = ErrorKind.BOOKING_NOT_FOUND


class AlreadyFinalizedError(CinemaEngineError):
    kind = ErrorKind.ALREADY_FINALIZED


class HoldExpiredError(CinemaEngineError):
    kind = ErrorKind.HOLD_EXPIRED


class TicketNotPaidError(CinemaEngineError):
    kind = ErrorKind.TICKET_NOT_PAID


class AlreadyCheckedInError(CinemaEngineError):
    kind = ErrorKind.ALREADY_CHECKED_IN


class InfrastructureError(Exception):
    """
    Raised when the backing store cannot be reached.
    Not a CinemaEngineError; callers must never read it as
    a domain outcome such as "no conflict".
    """
