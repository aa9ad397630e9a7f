import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Response, status

from cinema_engine.api.dependencies import get_reservation_service, get_schedule_service
from cinema_engine.api.schemas.schemas import (
    BookingResponse,
    BookingStatusResponse,
    EndTimeResponse,
    FinalizeRequest,
    HoldRequest,
    HoldResponse,
    PaymentNotificationRequest,
    PriceLineResponse,
    PricedSelectionResponse,
    ScheduleCheckResponse,
    ScreeningRequest,
    ScreeningResponse,
    SeatMapResponse,
    SeatRowResponse,
    SeatSelectionRequest,
    SeatStateResponse,
    SeatToggleRequest,
    SelectionResponse,
    SweepResponse,
    TicketResponse,
)
from cinema_engine.application.reservation_service import (
    PaymentNotification,
    ReservationService,
)
from cinema_engine.application.schedule_service import ScheduleService
from cinema_engine.domain.exceptions import (
    CinemaEngineError,
    ErrorKind,
    InfrastructureError,
)
from cinema_engine.domain.pricing import PriceLine
from cinema_engine.domain.records import BookingDetails, Screening, ScreeningCandidate


router = APIRouter()
logger = logging.getLogger(__name__)


_HTTP_STATUS_BY_KIND = {
    ErrorKind.BOOKING_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_REFERENCE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.ROOM_INACTIVE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.ROOM_NOT_IN_VENUE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.TOO_MANY_SEATS: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.INCOMPLETE_COUPLE_SEAT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.ISOLATED_SEAT_GAP: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.DUPLICATE_SCREENING: status.HTTP_409_CONFLICT,
    ErrorKind.SCHEDULE_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.SEAT_ALREADY_HELD: status.HTTP_409_CONFLICT,
    ErrorKind.ALREADY_FINALIZED: status.HTTP_409_CONFLICT,
    ErrorKind.TICKET_NOT_PAID: status.HTTP_409_CONFLICT,
    ErrorKind.ALREADY_CHECKED_IN: status.HTTP_409_CONFLICT,
    ErrorKind.HOLD_EXPIRED: status.HTTP_410_GONE,
}


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, InfrastructureError):
        logger.error("Store unavailable: %s", exc)
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "STORE_UNAVAILABLE", "message": str(exc)},
        )
    return HTTPException(
        status_code=_HTTP_STATUS_BY_KIND.get(exc.kind, status.HTTP_400_BAD_REQUEST),
        detail={"error": exc.kind.value, "message": exc.message, **exc.details()},
    )


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _line_response(line: PriceLine) -> PriceLineResponse:
    return PriceLineResponse(
        seat_type=line.seat_type.value,
        seat_ids=list(line.seat_ids),
        label=line.label,
        amount=line.amount,
    )


def _booking_response(details: BookingDetails) -> BookingResponse:
    booking = details.booking
    return BookingResponse(
        id=booking.id,
        booking_code=booking.booking_code,
        screening_id=booking.screening_id,
        user_id=booking.user_id,
        status=booking.status.value,
        total_amount=booking.total_amount,
        discount_amount=booking.discount_amount,
        final_amount=booking.final_amount,
        payment_method=booking.payment_method,
        payment_reference=booking.payment_reference,
        hold_expires_at=_iso(booking.hold_expires_at),
        notes=booking.notes,
        tickets=[
            TicketResponse(
                id=ticket.id,
                seat_id=ticket.seat_id,
                ticket_code=ticket.ticket_code,
                price_paid=ticket.price_paid,
                status=ticket.status.value,
                hold_expires_at=_iso(ticket.hold_expires_at),
                checked_in_at=_iso(ticket.checked_in_at),
            )
            for ticket in details.tickets
        ],
    )


def _screening_response(screening: Screening) -> ScreeningResponse:
    return ScreeningResponse(
        id=screening.id,
        movie_id=screening.movie_id,
        room_id=screening.room_id,
        start_time=screening.start_time.isoformat(),
        end_time=screening.end_time.isoformat(),
        base_price=screening.base_price,
        status=screening.status.value,
    )


def _candidate(request: ScreeningRequest, schedule: ScheduleService) -> ScreeningCandidate:
    candidate = schedule.build_candidate(
        movie_id=request.movie_id,
        room_id=request.room_id,
        start_time=request.start_time,
        base_price=request.base_price,
        venue_id=request.venue_id,
    )
    if request.status is candidate.status:
        return candidate
    return ScreeningCandidate(
        movie_id=candidate.movie_id,
        room_id=candidate.room_id,
        start_time=candidate.start_time,
        end_time=candidate.end_time,
        base_price=candidate.base_price,
        venue_id=candidate.venue_id,
        status=request.status,
    )


@router.get("/health")
def health():
    return {"status": "ok"}


# -----------------------------
# Seat selection
# -----------------------------
@router.get("/screenings/{screening_id}/seat-map", response_model=SeatMapResponse)
def get_seat_map(
    screening_id: int,
    service: ReservationService = Depends(get_reservation_service),
):
    try:
        view = service.seat_map_view(screening_id)
    except (CinemaEngineError, InfrastructureError) as exc:
        raise _http_error(exc) from exc

    return SeatMapResponse(
        screening_id=screening_id,
        rows=[
            SeatRowResponse(
                row_label=row.row_label,
                seats=[
                    SeatStateResponse(
                        seat_id=item.seat.id,
                        label=item.seat.label,
                        seat_type=item.seat.seat_type.value,
                        state=item.state.value,
                    )
                    for item in row.seats
                ],
            )
            for row in view.rows
        ],
        total=view.total,
        reserved=view.reserved,
        available=view.available,
    )


@router.post("/screenings/{screening_id}/selection/toggle", response_model=SelectionResponse)
def toggle_seat(
    screening_id: int,
    request: SeatToggleRequest,
    service: ReservationService = Depends(get_reservation_service),
):
    try:
        seat_ids = service.toggle_seat(screening_id, request.seat_id, request.selection)
    except (CinemaEngineError, InfrastructureError) as exc:
        raise _http_error(exc) from exc
    return SelectionResponse(seat_ids=seat_ids)


@router.post("/screenings/{screening_id}/selection/price", response_model=PricedSelectionResponse)
def price_selection(
    screening_id: int,
    request: SeatSelectionRequest,
    service: ReservationService = Depends(get_reservation_service),
):
    try:
        priced = service.validate_and_price_selection(
            request.room_id,
            screening_id,
            request.seat_ids,
        )
    except (CinemaEngineError, InfrastructureError) as exc:
        raise _http_error(exc) from exc

    return PricedSelectionResponse(
        lines=[_line_response(line) for line in priced.lines],
        total=priced.total,
    )


# -----------------------------
# Holds and bookings
# -----------------------------
@router.post("/holds", response_model=HoldResponse)
def create_hold(
    request: HoldRequest,
    service: ReservationService = Depends(get_reservation_service),
):
    try:
        hold = service.create_hold(
            screening_id=request.screening_id,
            seat_ids=request.seat_ids,
            hold_minutes=request.hold_minutes,
            user_id=request.user_id,
            note=request.note,
        )
    except (CinemaEngineError, InfrastructureError) as exc:
        raise _http_error(exc) from exc

    return HoldResponse(
        booking_id=hold.booking_id,
        booking_code=hold.booking_code,
        ticket_codes=hold.ticket_codes,
        hold_expires_at=hold.hold_expires_at.isoformat(),
        total=hold.total,
        lines=[_line_response(line) for line in hold.lines],
    )


@router.post("/holds/sweep", response_model=SweepResponse)
def sweep_expired_holds(
    service: ReservationService = Depends(get_reservation_service),
):
    try:
        released = service.expiry_sweep()
    except InfrastructureError as exc:
        raise _http_error(exc) from exc
    return SweepResponse(released=released)


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: str,
    service: ReservationService = Depends(get_reservation_service),
):
    try:
        details = service.get_booking(booking_id)
    except (CinemaEngineError, InfrastructureError) as exc:
        raise _http_error(exc) from exc
    return _booking_response(details)


@router.post("/bookings/{booking_id}/finalize", response_model=BookingStatusResponse)
def finalize_booking(
    booking_id: str,
    request: FinalizeRequest,
    service: ReservationService = Depends(get_reservation_service),
):
    try:
        result = service.finalize(
            booking_id,
            request.payment_method,
            request.payment_reference,
        )
    except (CinemaEngineError, InfrastructureError) as exc:
        raise _http_error(exc) from exc
    return BookingStatusResponse(booking_id=result.booking_id, status=result.status.value)


@router.post("/bookings/{booking_id}/cancel", status_code=status.HTTP_204_NO_CONTENT)
def cancel_booking(
    booking_id: str,
    service: ReservationService = Depends(get_reservation_service),
):
    try:
        service.cancel_hold(booking_id)
    except InfrastructureError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/payments/notifications", response_model=BookingStatusResponse)
def payment_notification(
    request: PaymentNotificationRequest,
    service: ReservationService = Depends(get_reservation_service),
):
    notification = PaymentNotification(
        booking_id=request.booking_id,
        success=request.success,
        reference=request.reference,
        payment_method=request.payment_method,
    )
    try:
        result = service.handle_payment_notification(notification)
    except (CinemaEngineError, InfrastructureError) as exc:
        raise _http_error(exc) from exc
    return BookingStatusResponse(booking_id=result.booking_id, status=result.status.value)


@router.post("/tickets/{ticket_code}/check-in", response_model=TicketResponse)
def check_in_ticket(
    ticket_code: str,
    service: ReservationService = Depends(get_reservation_service),
):
    try:
        ticket = service.check_in(ticket_code)
    except (CinemaEngineError, InfrastructureError) as exc:
        raise _http_error(exc) from exc

    return TicketResponse(
        id=ticket.id,
        seat_id=ticket.seat_id,
        ticket_code=ticket.ticket_code,
        price_paid=ticket.price_paid,
        status=ticket.status.value,
        hold_expires_at=_iso(ticket.hold_expires_at),
        checked_in_at=_iso(ticket.checked_in_at),
    )


# -----------------------------
# Scheduling
# -----------------------------
@router.get("/movies/{movie_id}/end-time", response_model=EndTimeResponse)
def movie_end_time(
    movie_id: int,
    start_time: str,
    schedule: ScheduleService = Depends(get_schedule_service),
):
    try:
        end_time = schedule.derive_end_time(movie_id, start_time)
    except (CinemaEngineError, InfrastructureError) as exc:
        raise _http_error(exc) from exc
    return EndTimeResponse(movie_id=movie_id, start_time=start_time, end_time=end_time.isoformat())


@router.post("/screenings/validate", response_model=ScheduleCheckResponse)
def validate_screening(
    request: ScreeningRequest,
    excluding_id: int | None = None,
    schedule: ScheduleService = Depends(get_schedule_service),
):
    try:
        check = schedule.validate_screening(_candidate(request, schedule), excluding_id)
    except (CinemaEngineError, InfrastructureError) as exc:
        raise _http_error(exc) from exc
    return ScheduleCheckResponse(ok=check.ok)


@router.post("/screenings", response_model=ScreeningResponse, status_code=status.HTTP_201_CREATED)
def create_screening(
    request: ScreeningRequest,
    schedule: ScheduleService = Depends(get_schedule_service),
):
    try:
        screening = schedule.create_screening(_candidate(request, schedule))
    except (CinemaEngineError, InfrastructureError) as exc:
        raise _http_error(exc) from exc
    return _screening_response(screening)


@router.put("/screenings/{screening_id}", response_model=ScreeningResponse)
def update_screening(
    screening_id: int,
    request: ScreeningRequest,
    schedule: ScheduleService = Depends(get_schedule_service),
):
    try:
        screening = schedule.update_screening(screening_id, _candidate(request, schedule))
    except (CinemaEngineError, InfrastructureError) as exc:
        raise _http_error(exc) from exc
    return _screening_response(screening)
