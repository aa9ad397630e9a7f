from pydantic import BaseModel, Field

from cinema_engine.domain.state_machine import ScreeningStatus


# -----------------------------
# Seat selection
# -----------------------------
class SeatSelectionRequest(BaseModel):
    room_id: int
    seat_ids: list[int] = Field(default_factory=list)


class SeatToggleRequest(BaseModel):
    seat_id: int
    selection: list[int] = Field(default_factory=list)


class SelectionResponse(BaseModel):
    seat_ids: list[int]


class PriceLineResponse(BaseModel):
    seat_type: str
    seat_ids: list[int]
    label: str
    amount: int


class PricedSelectionResponse(BaseModel):
    lines: list[PriceLineResponse]
    total: int


class SeatStateResponse(BaseModel):
    seat_id: int
    label: str
    seat_type: str
    state: str


class SeatRowResponse(BaseModel):
    row_label: str
    seats: list[SeatStateResponse]


class SeatMapResponse(BaseModel):
    screening_id: int
    rows: list[SeatRowResponse]
    total: int
    reserved: int
    available: int


# -----------------------------
# Holds and bookings
# -----------------------------
class HoldRequest(BaseModel):
    screening_id: int
    seat_ids: list[int] = Field(min_length=1)
    hold_minutes: int | None = Field(default=None, gt=0)
    user_id: str | None = None
    note: str | None = None


class HoldResponse(BaseModel):
    booking_id: str
    booking_code: str
    ticket_codes: list[str]
    hold_expires_at: str
    total: int
    lines: list[PriceLineResponse]


class FinalizeRequest(BaseModel):
    payment_method: str = Field(min_length=1)
    payment_reference: str | None = None


class BookingStatusResponse(BaseModel):
    booking_id: str
    status: str


class PaymentNotificationRequest(BaseModel):
    booking_id: str
    success: bool
    reference: str | None = None
    payment_method: str = "GATEWAY"


class TicketResponse(BaseModel):
    id: str
    seat_id: int
    ticket_code: str
    price_paid: int
    status: str
    hold_expires_at: str | None = None
    checked_in_at: str | None = None


class BookingResponse(BaseModel):
    id: str
    booking_code: str
    screening_id: int
    user_id: str | None = None
    status: str
    total_amount: int
    discount_amount: int
    final_amount: int
    payment_method: str
    payment_reference: str | None = None
    hold_expires_at: str | None = None
    notes: str | None = None
    tickets: list[TicketResponse]


class SweepResponse(BaseModel):
    released: int


# -----------------------------
# Scheduling
# -----------------------------
class ScreeningRequest(BaseModel):
    movie_id: int
    room_id: int
    start_time: str
    base_price: int = Field(ge=0)
    venue_id: int | None = None
    status: ScreeningStatus = ScreeningStatus.SCHEDULED


class ScreeningResponse(BaseModel):
    id: int
    movie_id: int
    room_id: int
    start_time: str
    end_time: str
    base_price: int
    status: str


class ScheduleCheckResponse(BaseModel):
    ok: bool


class EndTimeResponse(BaseModel):
    movie_id: int
    start_time: str
    end_time: str
