# cinema_engine/domain/records.py
#
# Plain records passed across the ports. Repositories translate
# ORM rows into these so the domain never touches a Session.

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from cinema_engine.domain.state_machine import (
    BookingStatus,
    ScreeningStatus,
    TicketStatus,
)


class SeatType(str, Enum):
    STANDARD = "STANDARD"
    VIP = "VIP"
    COUPLE = "COUPLE"
    ACCESSIBLE = "ACCESSIBLE"


@dataclass(frozen=True)
class Room:
    id: int
    venue_id: int
    code: str
    name: str
    is_active: bool = True


@dataclass(frozen=True)
class Seat:
    id: int
    room_id: int
    row_label: str
    seat_number: int
    seat_type: SeatType = SeatType.STANDARD
    is_active: bool = True

    @property
    def label(self) -> str:
        return f"{self.row_label}{self.seat_number}"


@dataclass(frozen=True)
class Screening:
    id: int | None
    movie_id: int
    room_id: int
    start_time: datetime
    end_time: datetime
    base_price: int
    status: ScreeningStatus = ScreeningStatus.SCHEDULED


@dataclass(frozen=True)
class ScreeningCandidate:
    """A screening proposed by an admin, before it is validated."""

    movie_id: int
    room_id: int
    start_time: datetime
    end_time: datetime
    base_price: int = 0
    venue_id: int | None = None
    status: ScreeningStatus = ScreeningStatus.SCHEDULED


@dataclass
class Booking:
    id: str
    booking_code: str
    screening_id: int
    status: BookingStatus
    total_amount: int
    final_amount: int
    hold_expires_at: datetime | None
    user_id: str | None = None
    discount_amount: int = 0
    payment_method: str = "NONE"
    payment_reference: str | None = None
    notes: str | None = None
    created_at: datetime | None = None


@dataclass
class Ticket:
    id: str
    screening_id: int
    seat_id: int
    booking_id: str
    price_paid: int
    status: TicketStatus
    ticket_code: str
    hold_expires_at: datetime | None = None
    user_id: str | None = None
    checked_in_at: datetime | None = None


@dataclass
class BookingDetails:
    booking: Booking
    tickets: list[Ticket] = field(default_factory=list)
