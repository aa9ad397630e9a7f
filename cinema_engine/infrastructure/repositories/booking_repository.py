# cinema_engine/infrastructure/repositories/booking_repository.py

from datetime import datetime
from typing import List, Sequence

from sqlalchemy.orm import Session
from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError

from cinema_engine.application.ports import ReservationRepository
from cinema_engine.domain import records
from cinema_engine.domain.clock import as_utc
from cinema_engine.domain.exceptions import InvalidReferenceError, SeatAlreadyHeldError
from cinema_engine.domain.state_machine import BookingStatus, TicketStatus
from cinema_engine.infrastructure.db.models import Booking, Ticket


def booking_record(row: Booking) -> records.Booking:
    return records.Booking(
        id=row.id,
        booking_code=row.booking_code,
        screening_id=row.screening_id,
        status=row.status,
        total_amount=row.total_amount,
        final_amount=row.final_amount,
        hold_expires_at=as_utc(row.hold_expires_at),
        user_id=row.user_id,
        discount_amount=row.discount_amount,
        payment_method=row.payment_method,
        payment_reference=row.payment_reference,
        notes=row.notes,
        created_at=as_utc(row.created_at),
    )


def ticket_record(row: Ticket) -> records.Ticket:
    return records.Ticket(
        id=row.id,
        screening_id=row.screening_id,
        seat_id=row.seat_id,
        booking_id=row.booking_id,
        price_paid=row.price_paid,
        status=row.status,
        ticket_code=row.ticket_code,
        hold_expires_at=as_utc(row.hold_expires_at),
        user_id=row.user_id,
        checked_in_at=as_utc(row.checked_in_at),
    )


class BookingRepository(ReservationRepository):

    def __init__(self, db: Session):
        self.db = db

    def insert_booking(self, booking: records.Booking) -> records.Booking:
        row = Booking(
            id=booking.id,
            booking_code=booking.booking_code,
            user_id=booking.user_id,
            screening_id=booking.screening_id,
            status=booking.status,
            total_amount=booking.total_amount,
            discount_amount=booking.discount_amount,
            final_amount=booking.final_amount,
            payment_method=booking.payment_method,
            payment_reference=booking.payment_reference,
            hold_expires_at=booking.hold_expires_at,
            notes=booking.notes,
        )
        self.db.add(row)
        self.db.flush()
        return booking

    def insert_ticket(self, ticket: records.Ticket) -> records.Ticket:
        row = Ticket(
            id=ticket.id,
            screening_id=ticket.screening_id,
            seat_id=ticket.seat_id,
            booking_id=ticket.booking_id,
            user_id=ticket.user_id,
            price_paid=ticket.price_paid,
            status=ticket.status,
            hold_expires_at=ticket.hold_expires_at,
            ticket_code=ticket.ticket_code,
        )
        self.db.add(row)

        # uq_ticket_active_seat is the last word on who owns the seat.
        try:
            self.db.flush()
        except IntegrityError as exc:
            raise SeatAlreadyHeldError([ticket.seat_id]) from exc
        return ticket

    def get_booking(self, booking_id: str) -> records.Booking | None:
        stmt = select(Booking).where(Booking.id == booking_id)
        row = self.db.execute(stmt).scalar_one_or_none()
        return booking_record(row) if row else None

    def get_booking_for_update(self, booking_id: str) -> records.Booking | None:
        """
        SELECT ... FOR UPDATE
        Serializes finalize against release for the same booking.
        """
        stmt = (
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = self.db.execute(stmt).scalar_one_or_none()
        return booking_record(row) if row else None

    def list_tickets(self, booking_id: str) -> List[records.Ticket]:
        stmt = (
            select(Ticket)
            .where(Ticket.booking_id == booking_id)
            .order_by(Ticket.ticket_code)
        )
        return [ticket_record(row) for row in self.db.execute(stmt).scalars().all()]

    def blocking_seat_ids(self, screening_id: int, now: datetime) -> set:
        stmt = (
            select(Ticket.seat_id)
            .where(Ticket.screening_id == screening_id)
            .where(
                or_(
                    Ticket.status == TicketStatus.PAID,
                    and_(
                        Ticket.status == TicketStatus.HELD,
                        or_(
                            Ticket.hold_expires_at.is_(None),
                            Ticket.hold_expires_at > now,
                        ),
                    ),
                )
            )
        )
        return set(self.db.execute(stmt).scalars().all())

    def expired_holds_for_seats(
        self,
        screening_id: int,
        seat_ids: Sequence[int],
        now: datetime,
    ) -> List[str]:
        if not seat_ids:
            return []
        stmt = (
            select(Ticket.booking_id)
            .where(Ticket.screening_id == screening_id)
            .where(Ticket.seat_id.in_(list(seat_ids)))
            .where(Ticket.status == TicketStatus.HELD)
            .where(Ticket.hold_expires_at.is_not(None))
            .where(Ticket.hold_expires_at <= now)
            .distinct()
        )
        return list(self.db.execute(stmt).scalars().all())

    def update_ticket_status(
        self,
        ticket_id: str,
        status: TicketStatus,
        clear_hold: bool = False,
    ) -> None:
        row = self._ticket_row(ticket_id)
        row.status = status
        if clear_hold:
            row.hold_expires_at = None
        self.db.flush()

    def update_booking_status(
        self,
        booking_id: str,
        status: BookingStatus,
        payment_method: str | None = None,
        payment_reference: str | None = None,
        clear_hold: bool = False,
    ) -> None:
        row = self.db.get(Booking, booking_id)
        if not row:
            raise InvalidReferenceError(f"Booking {booking_id} not found")

        row.status = status
        if payment_method is not None:
            row.payment_method = payment_method
        if payment_reference is not None:
            row.payment_reference = payment_reference
        if clear_hold:
            row.hold_expires_at = None
        self.db.flush()

    def list_expired_bookings(self, now: datetime) -> List[str]:
        stmt = (
            select(Booking.id)
            .where(Booking.status == BookingStatus.PENDING)
            .where(Booking.hold_expires_at.is_not(None))
            .where(Booking.hold_expires_at <= now)
            .order_by(Booking.hold_expires_at)
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_ticket_by_code(self, ticket_code: str) -> records.Ticket | None:
        stmt = select(Ticket).where(Ticket.ticket_code == ticket_code)
        row = self.db.execute(stmt).scalar_one_or_none()
        return ticket_record(row) if row else None

    def mark_checked_in(self, ticket_id: str, at: datetime) -> None:
        row = self._ticket_row(ticket_id)
        row.checked_in_at = at
        self.db.flush()

    def _ticket_row(self, ticket_id: str) -> Ticket:
        row = self.db.get(Ticket, ticket_id)
        if not row:
            raise InvalidReferenceError(f"Ticket {ticket_id} not found")
        return row
