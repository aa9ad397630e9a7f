import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List
from uuid import uuid4

from cinema_engine.application.ports import AbstractUnitOfWork
from cinema_engine.config import HOLD_DURATION_MINUTES
from cinema_engine.domain.clock import utc_now
from cinema_engine.domain.exceptions import (
    AlreadyCheckedInError,
    AlreadyFinalizedError,
    BookingNotFoundError,
    HoldExpiredError,
    InvalidReferenceError,
    TicketNotPaidError,
)
from cinema_engine.domain.pricing import PriceLine, PricedSelection, price_selection
from cinema_engine.domain.records import Booking, BookingDetails, Screening, Ticket
from cinema_engine.domain.seat_map import SeatMap, SeatMapView
from cinema_engine.domain.state_machine import (
    BookingStateMachine,
    BookingStatus,
    ScreeningStatus,
    TicketStateMachine,
    TicketStatus,
    effective_ticket_status,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HoldResult:
    booking_id: str
    booking_code: str
    ticket_codes: List[str]
    hold_expires_at: datetime
    total: int
    lines: List[PriceLine]


@dataclass(frozen=True)
class FinalizeResult:
    booking_id: str
    status: BookingStatus


@dataclass(frozen=True)
class PaymentNotification:
    """Outcome pushed by the payment gateway for one booking."""

    booking_id: str
    success: bool
    reference: str | None = None
    payment_method: str = "GATEWAY"


class ReservationService:
    """
    Application service coordinating the seat hold lifecycle:
    hold -> finalize, or hold -> cancel / expire.

    Every write runs inside one unit of work, so a failed multi-seat
    operation leaves no rows behind.
    """

    def __init__(
        self,
        uow_factory: Callable[[], AbstractUnitOfWork],
        clock: Callable[[], datetime] = utc_now,
        hold_minutes: int = HOLD_DURATION_MINUTES,
    ):
        self.uow_factory = uow_factory
        self.clock = clock
        self.hold_minutes = hold_minutes
        self._seat_maps: Dict[int, SeatMap] = {}

    # -----------------------------
    # Seat selection
    # -----------------------------
    def seat_map_view(self, screening_id: int, selection: Iterable[int] = ()) -> SeatMapView:
        now = self.clock()
        with self.uow_factory() as uow:
            screening = self._load_screening(uow, screening_id)
            seat_map = self._seat_map(uow, screening.room_id)
            blocking = uow.bookings.blocking_seat_ids(screening.id, now)
        return seat_map.view(blocking=blocking, selection=selection)

    def toggle_seat(self, screening_id: int, seat_id: int, selection: Iterable[int]) -> List[int]:
        now = self.clock()
        with self.uow_factory() as uow:
            screening = self._load_screening(uow, screening_id)
            seat_map = self._seat_map(uow, screening.room_id)
            blocking = uow.bookings.blocking_seat_ids(screening.id, now)
        return seat_map.toggle(seat_id, selection, blocking)

    def validate_and_price_selection(
        self,
        room_id: int,
        screening_id: int,
        seat_ids: Iterable[int],
    ) -> PricedSelection:
        now = self.clock()
        with self.uow_factory() as uow:
            screening = self._load_screening(uow, screening_id)
            if screening.room_id != room_id:
                raise InvalidReferenceError(
                    f"Screening {screening_id} is not shown in room {room_id}"
                )
            seat_map = self._seat_map(uow, room_id)
            blocking = uow.bookings.blocking_seat_ids(screening.id, now)

        normalized = seat_map.validate_selection(seat_ids, blocking)
        return price_selection(seat_map.seats(normalized), screening.base_price)

    # -----------------------------
    # Hold lifecycle
    # -----------------------------
    def create_hold(
        self,
        screening_id: int,
        seat_ids: Iterable[int],
        hold_minutes: int | None = None,
        user_id: str | None = None,
        note: str | None = None,
    ) -> HoldResult:
        seat_ids = list(seat_ids)
        if not seat_ids:
            raise InvalidReferenceError("Select at least one seat")

        minutes = hold_minutes if hold_minutes is not None else self.hold_minutes
        if minutes <= 0:
            raise InvalidReferenceError("Hold duration must be positive")

        now = self.clock()
        hold_expires_at = now + timedelta(minutes=minutes)

        with self.uow_factory() as uow:
            screening = self._load_screening(uow, screening_id)
            if screening.status is not ScreeningStatus.SCHEDULED:
                raise InvalidReferenceError(
                    f"Screening {screening_id} is {screening.status.value}"
                )

            seat_map = self._seat_map(uow, screening.room_id)
            blocking = uow.bookings.blocking_seat_ids(screening.id, now)
            normalized = seat_map.validate_selection(seat_ids, blocking)
            seats = seat_map.seats(normalized)
            priced = price_selection(seats, screening.base_price)

            # Lapsed holds still occupy their rows until released.
            for stale_id in uow.bookings.expired_holds_for_seats(screening.id, normalized, now):
                self._release_in(uow, stale_id, expired_before=now)

            booking_code = self._new_booking_code(now)
            booking = Booking(
                id=str(uuid4()),
                booking_code=booking_code,
                screening_id=screening.id,
                status=BookingStatus.PENDING,
                total_amount=priced.total,
                final_amount=priced.total,
                hold_expires_at=hold_expires_at,
                user_id=user_id,
                notes=note or f"{len(seats)} tickets",
            )
            uow.bookings.insert_booking(booking)

            ticket_codes = []
            for seat in seats:
                ticket_code = f"QR-{booking_code}-{seat.label}"
                uow.bookings.insert_ticket(
                    Ticket(
                        id=str(uuid4()),
                        screening_id=screening.id,
                        seat_id=seat.id,
                        booking_id=booking.id,
                        price_paid=priced.price_for_seat(seat.id),
                        status=TicketStatus.HELD,
                        ticket_code=ticket_code,
                        hold_expires_at=hold_expires_at,
                        user_id=user_id,
                    )
                )
                ticket_codes.append(ticket_code)

            uow.commit()

        logger.info(
            "Hold %s created for screening %s seats %s until %s",
            booking.id,
            screening.id,
            normalized,
            hold_expires_at.isoformat(),
        )
        return HoldResult(
            booking_id=booking.id,
            booking_code=booking_code,
            ticket_codes=ticket_codes,
            hold_expires_at=hold_expires_at,
            total=priced.total,
            lines=priced.lines,
        )

    def finalize(
        self,
        booking_id: str,
        payment_method: str,
        payment_reference: str | None,
    ) -> FinalizeResult:
        if not payment_method:
            raise InvalidReferenceError("Payment method is required")

        now = self.clock()
        with self.uow_factory() as uow:
            booking = uow.bookings.get_booking_for_update(booking_id)
            if booking is None:
                raise BookingNotFoundError(f"Booking {booking_id} not found")
            if booking.status is not BookingStatus.PENDING:
                raise AlreadyFinalizedError(
                    f"Booking {booking_id} is already {booking.status.value}"
                )

            tickets = uow.bookings.list_tickets(booking_id)
            lapsed = [
                ticket.id
                for ticket in tickets
                if effective_ticket_status(ticket.status, ticket.hold_expires_at, now)
                is not TicketStatus.HELD
            ]
            if lapsed or not tickets:
                logger.warning("Finalize rejected for %s: hold expired", booking_id)
                raise HoldExpiredError(f"Hold for booking {booking_id} has expired")

            for ticket in tickets:
                TicketStateMachine.validate_transition(ticket.status, TicketStatus.PAID)
                uow.bookings.update_ticket_status(ticket.id, TicketStatus.PAID, clear_hold=True)

            BookingStateMachine.validate_transition(booking.status, BookingStatus.PAID)
            uow.bookings.update_booking_status(
                booking_id,
                BookingStatus.PAID,
                payment_method=payment_method,
                payment_reference=payment_reference,
                clear_hold=True,
            )
            uow.commit()

        logger.info("Booking %s paid via %s (%s)", booking_id, payment_method, payment_reference)
        return FinalizeResult(booking_id=booking_id, status=BookingStatus.PAID)

    def release(self, booking_id: str, expired_before: datetime | None = None) -> bool:
        """
        Free the seats of a PENDING booking. With ``expired_before`` only
        a hold whose expiry (read fresh, under lock) is at or before that
        instant is released and its tickets become EXPIRED; otherwise
        they become CANCELLED. Returns False when there was nothing to do.
        """
        with self.uow_factory() as uow:
            released = self._release_in(uow, booking_id, expired_before)
            if released:
                uow.commit()

        if released:
            logger.info(
                "Booking %s released (%s)",
                booking_id,
                "expired" if expired_before is not None else "cancelled",
            )
        return released

    def cancel_hold(self, booking_id: str) -> None:
        if not self.release(booking_id):
            logger.info("Cancel for booking %s was a no-op", booking_id)

    def expiry_sweep(self) -> int:
        now = self.clock()
        with self.uow_factory() as uow:
            expired_ids = uow.bookings.list_expired_bookings(now)

        released = 0
        for booking_id in expired_ids:
            if self.release(booking_id, expired_before=now):
                released += 1

        if released:
            logger.info("Expiry sweep released %s of %s lapsed holds", released, len(expired_ids))
        return released

    def handle_payment_notification(self, notification: PaymentNotification) -> FinalizeResult:
        if notification.success:
            return self.finalize(
                notification.booking_id,
                notification.payment_method,
                notification.reference,
            )

        logger.warning(
            "Payment failed for booking %s (%s)",
            notification.booking_id,
            notification.reference,
        )
        self.cancel_hold(notification.booking_id)
        details = self.get_booking(notification.booking_id)
        return FinalizeResult(booking_id=notification.booking_id, status=details.booking.status)

    # -----------------------------
    # Reads and check-in
    # -----------------------------
    def get_booking(self, booking_id: str) -> BookingDetails:
        now = self.clock()
        with self.uow_factory() as uow:
            booking = uow.bookings.get_booking(booking_id)
            if booking is None:
                raise BookingNotFoundError(f"Booking {booking_id} not found")
            tickets = uow.bookings.list_tickets(booking_id)

        return BookingDetails(
            booking=booking,
            tickets=[
                replace(
                    ticket,
                    status=effective_ticket_status(ticket.status, ticket.hold_expires_at, now),
                )
                for ticket in tickets
            ],
        )

    def check_in(self, ticket_code: str) -> Ticket:
        now = self.clock()
        with self.uow_factory() as uow:
            ticket = uow.bookings.get_ticket_by_code(ticket_code)
            if ticket is None:
                raise InvalidReferenceError(f"Unknown ticket {ticket_code}")
            if ticket.status is not TicketStatus.PAID:
                raise TicketNotPaidError(f"Ticket {ticket_code} is {ticket.status.value}")
            if ticket.checked_in_at is not None:
                raise AlreadyCheckedInError(
                    f"Ticket {ticket_code} checked in at {ticket.checked_in_at.isoformat()}"
                )
            uow.bookings.mark_checked_in(ticket.id, now)
            uow.commit()

        logger.info("Ticket %s checked in", ticket_code)
        return replace(ticket, checked_in_at=now)

    # -----------------------------
    # Internals
    # -----------------------------
    def _release_in(
        self,
        uow: AbstractUnitOfWork,
        booking_id: str,
        expired_before: datetime | None = None,
    ) -> bool:
        booking = uow.bookings.get_booking_for_update(booking_id)
        if booking is None or booking.status is not BookingStatus.PENDING:
            return False
        if expired_before is not None:
            if booking.hold_expires_at is None or booking.hold_expires_at > expired_before:
                return False

        ticket_status = TicketStatus.EXPIRED if expired_before is not None else TicketStatus.CANCELLED
        for ticket in uow.bookings.list_tickets(booking_id):
            if ticket.status is TicketStatus.HELD:
                TicketStateMachine.validate_transition(ticket.status, ticket_status)
                uow.bookings.update_ticket_status(ticket.id, ticket_status)

        BookingStateMachine.validate_transition(booking.status, BookingStatus.CANCELLED)
        uow.bookings.update_booking_status(booking_id, BookingStatus.CANCELLED)
        return True

    def _load_screening(self, uow: AbstractUnitOfWork, screening_id: int) -> Screening:
        screening = uow.catalog.get_screening(screening_id)
        if screening is None:
            raise InvalidReferenceError(f"Screening {screening_id} not found")
        return screening

    def _seat_map(self, uow: AbstractUnitOfWork, room_id: int) -> SeatMap:
        # Rooms are immutable once their seats are generated, including each
        # seat's active flag, so one map per room for the process lifetime.
        seat_map = self._seat_maps.get(room_id)
        if seat_map is None:
            seats = uow.catalog.get_room_seats(room_id)
            if not seats:
                raise InvalidReferenceError(f"Room {room_id} has no seats")
            seat_map = SeatMap(seats)
            self._seat_maps[room_id] = seat_map
        return seat_map

    @staticmethod
    def _new_booking_code(now: datetime) -> str:
        return f"BK-{now:%Y%m%d}-{uuid4().hex[:8].upper()}"
