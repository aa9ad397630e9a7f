# cinema_engine/application/ports.py

from __future__ import annotations

import abc
from datetime import datetime
from typing import List, Sequence, Tuple

from cinema_engine.domain.records import (
    Booking,
    Room,
    Screening,
    ScreeningCandidate,
    Seat,
    Ticket,
)
from cinema_engine.domain.state_machine import BookingStatus, TicketStatus


class CatalogReader(abc.ABC):
    """Read access to rooms, seats, movies and the room schedule."""

    @abc.abstractmethod
    def get_screening(self, screening_id: int) -> Screening | None:
        raise NotImplementedError

    @abc.abstractmethod
    def get_movie_duration(self, movie_id: int) -> int | None:
        raise NotImplementedError

    @abc.abstractmethod
    def get_room(self, room_id: int) -> Room | None:
        raise NotImplementedError

    @abc.abstractmethod
    def get_room_seats(self, room_id: int) -> List[Seat]:
        raise NotImplementedError

    @abc.abstractmethod
    def get_room_screenings(
        self,
        room_id: int,
        date_range: Tuple[datetime, datetime],
    ) -> List[Screening]:
        raise NotImplementedError

    @abc.abstractmethod
    def add_screening(self, candidate: ScreeningCandidate) -> Screening:
        raise NotImplementedError

    @abc.abstractmethod
    def update_screening(self, screening_id: int, candidate: ScreeningCandidate) -> Screening:
        raise NotImplementedError


class ReservationRepository(abc.ABC):
    """
    Booking and ticket persistence. Implementations must reject a
    second HELD/PAID ticket for the same (screening, seat) at the
    storage layer by raising SeatAlreadyHeldError from insert_ticket
    (or at the latest from the unit of work's commit).
    """

    @abc.abstractmethod
    def insert_booking(self, booking: Booking) -> Booking:
        raise NotImplementedError

    @abc.abstractmethod
    def insert_ticket(self, ticket: Ticket) -> Ticket:
        raise NotImplementedError

    @abc.abstractmethod
    def get_booking(self, booking_id: str) -> Booking | None:
        raise NotImplementedError

    @abc.abstractmethod
    def get_booking_for_update(self, booking_id: str) -> Booking | None:
        """Fresh read of the booking that also locks it until commit."""
        raise NotImplementedError

    @abc.abstractmethod
    def list_tickets(self, booking_id: str) -> List[Ticket]:
        raise NotImplementedError

    @abc.abstractmethod
    def blocking_seat_ids(self, screening_id: int, now: datetime) -> set:
        """Seats with a PAID ticket or a HELD ticket not yet expired."""
        raise NotImplementedError

    @abc.abstractmethod
    def expired_holds_for_seats(
        self,
        screening_id: int,
        seat_ids: Sequence[int],
        now: datetime,
    ) -> List[str]:
        """Booking ids whose lapsed HELD tickets still occupy these seats."""
        raise NotImplementedError

    @abc.abstractmethod
    def update_ticket_status(
        self,
        ticket_id: str,
        status: TicketStatus,
        clear_hold: bool = False,
    ) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def update_booking_status(
        self,
        booking_id: str,
        status: BookingStatus,
        payment_method: str | None = None,
        payment_reference: str | None = None,
        clear_hold: bool = False,
    ) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def list_expired_bookings(self, now: datetime) -> List[str]:
        """PENDING bookings whose hold expiry is at or before ``now``."""
        raise NotImplementedError

    @abc.abstractmethod
    def get_ticket_by_code(self, ticket_code: str) -> Ticket | None:
        raise NotImplementedError

    @abc.abstractmethod
    def mark_checked_in(self, ticket_id: str, at: datetime) -> None:
        raise NotImplementedError


class AbstractUnitOfWork(abc.ABC):
    """
    One atomic transaction over the catalog and reservation stores.
    Leaving the block without ``commit()`` rolls everything back.
    """

    catalog: CatalogReader
    bookings: ReservationRepository

    def __enter__(self) -> AbstractUnitOfWork:
        return self

    def __exit__(self, *args):
        self.rollback()

    @abc.abstractmethod
    def commit(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def rollback(self) -> None:
        raise NotImplementedError
