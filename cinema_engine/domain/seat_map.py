# cinema_engine/domain/seat_map.py

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Tuple

from cinema_engine.domain.exceptions import (
    IncompleteCoupleSeatError,
    InvalidReferenceError,
    IsolatedSeatGapError,
    SeatAlreadyHeldError,
    TooManySeatsError,
)
from cinema_engine.domain.records import Seat, SeatType


MAX_SEATS_PER_BOOKING = 6


class SeatState(str, Enum):
    RESERVED = "RESERVED"
    SELECTED = "SELECTED"
    FREE = "FREE"


@dataclass(frozen=True)
class SeatUnit:
    """One sellable unit: a single seat or a couple pair."""

    seats: Tuple[Seat, ...]

    @property
    def is_pair(self) -> bool:
        return len(self.seats) == 2

    @property
    def seat_ids(self) -> Tuple[int, ...]:
        return tuple(seat.id for seat in self.seats)

    @property
    def label(self) -> str:
        first = self.seats[0]
        if self.is_pair:
            return f"{first.row_label}{first.seat_number}-{self.seats[1].seat_number}"
        return first.label


@dataclass(frozen=True)
class SeatView:
    seat: Seat
    state: SeatState


@dataclass(frozen=True)
class RowView:
    row_label: str
    seats: List[SeatView]


@dataclass(frozen=True)
class SeatMapView:
    rows: List[RowView]
    total: int
    reserved: int
    available: int


def pair_couple_seats(row: List[Seat]) -> List[SeatUnit]:
    """
    Split an ordered row into units. A COUPLE seat with an odd number
    pairs with the COUPLE seat numbered one higher; a couple seat
    without such a partner stays a single unit.
    """
    by_number = {seat.seat_number: seat for seat in row}
    units: List[SeatUnit] = []
    consumed = set()
    for seat in row:
        if seat.id in consumed:
            continue
        if seat.seat_type is SeatType.COUPLE and seat.seat_number % 2 == 1:
            partner = by_number.get(seat.seat_number + 1)
            if partner is not None and partner.seat_type is SeatType.COUPLE:
                units.append(SeatUnit((seat, partner)))
                consumed.add(partner.id)
                continue
        units.append(SeatUnit((seat,)))
    return units


class SeatMap:
    """
    Seating topology of one room, built once from its seats.

    Rows are ordered by label and seats by number; couple partners
    are resolved up front so selection checks are dictionary lookups.
    """

    def __init__(self, seats: Iterable[Seat]):
        grouped: Dict[str, List[Seat]] = {}
        for seat in seats:
            grouped.setdefault(seat.row_label, []).append(seat)

        self._rows: Dict[str, List[Seat]] = {
            label: sorted(grouped[label], key=lambda s: s.seat_number)
            for label in sorted(grouped)
        }
        self._by_id: Dict[int, Seat] = {}
        self._position: Dict[int, Tuple[str, int]] = {}
        self._units: Dict[str, List[SeatUnit]] = {}
        self._partner: Dict[int, int] = {}

        for label, row in self._rows.items():
            for index, seat in enumerate(row):
                self._by_id[seat.id] = seat
                self._position[seat.id] = (label, index)
            units = pair_couple_seats(row)
            self._units[label] = units
            for unit in units:
                if unit.is_pair:
                    left, right = unit.seats
                    self._partner[left.id] = right.id
                    self._partner[right.id] = left.id

    def __contains__(self, seat_id: int) -> bool:
        return seat_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)

    @property
    def row_labels(self) -> List[str]:
        return list(self._rows)

    def seat(self, seat_id: int) -> Seat:
        try:
            return self._by_id[seat_id]
        except KeyError:
            raise InvalidReferenceError(f"Seat {seat_id} is not in this room") from None

    def seats(self, seat_ids: Iterable[int]) -> List[Seat]:
        """Seats for the given ids in row-major order."""
        return sorted(
            (self.seat(seat_id) for seat_id in set(seat_ids)),
            key=self.sort_key,
        )

    def sort_key(self, seat: Seat) -> Tuple[str, int]:
        return (seat.row_label, seat.seat_number)

    def list_by_row(self) -> Dict[str, List[Seat]]:
        return {label: list(row) for label, row in self._rows.items()}

    def units(self, row_label: str) -> List[SeatUnit]:
        return list(self._units.get(row_label, []))

    def partner_of(self, seat_id: int) -> int | None:
        return self._partner.get(seat_id)

    def expand_pairs(self, seat_ids: Iterable[int]) -> set:
        expanded = set()
        for seat_id in seat_ids:
            expanded.add(seat_id)
            partner = self._partner.get(seat_id)
            if partner is not None:
                expanded.add(partner)
        return expanded

    def classify(self, seat_id: int, blocking: Iterable[int] = (), selection: Iterable[int] = ()) -> SeatState:
        seat = self.seat(seat_id)
        if not seat.is_active or seat_id in set(blocking):
            return SeatState.RESERVED
        if seat_id in set(selection):
            return SeatState.SELECTED
        return SeatState.FREE

    def view(self, blocking: Iterable[int] = (), selection: Iterable[int] = ()) -> SeatMapView:
        blocking = set(blocking)
        selection = set(selection)
        rows = []
        reserved = 0
        for label, row in self._rows.items():
            views = []
            for seat in row:
                state = self.classify(seat.id, blocking, selection)
                if state is SeatState.RESERVED:
                    reserved += 1
                views.append(SeatView(seat=seat, state=state))
            rows.append(RowView(row_label=label, seats=views))
        total = len(self._by_id)
        return SeatMapView(
            rows=rows,
            total=total,
            reserved=reserved,
            available=max(total - reserved, 0),
        )

    def validate_selection(self, selection: Iterable[int], blocking: Iterable[int] = ()) -> List[int]:
        """
        Check a working selection against the room rules and return
        the normalized seat ids in row-major order.

        Raises InvalidReferenceError, SeatAlreadyHeldError,
        TooManySeatsError, IncompleteCoupleSeatError or
        IsolatedSeatGapError.
        """
        selection = set(selection)
        blocking = set(blocking)

        for seat_id in selection:
            self.seat(seat_id)

        unavailable = {
            seat_id
            for seat_id in selection
            if seat_id in blocking or not self._by_id[seat_id].is_active
        }
        if unavailable:
            raise SeatAlreadyHeldError(unavailable)

        expanded = self.expand_pairs(selection)
        if len(expanded) > MAX_SEATS_PER_BOOKING:
            raise TooManySeatsError(len(expanded), MAX_SEATS_PER_BOOKING)

        for seat_id in sorted(selection):
            partner = self._partner.get(seat_id)
            if partner is not None and partner not in selection:
                raise IncompleteCoupleSeatError(seat_id, partner)

        self._check_gaps(selection, blocking)
        return [seat.id for seat in self.seats(selection)]

    def toggle(self, seat_id: int, selection: Iterable[int], blocking: Iterable[int] = ()) -> List[int]:
        """
        Add or remove a seat (with its couple partner) from the working
        selection and re-validate the result.
        """
        selection = set(selection)
        unit = {seat_id}
        partner = self.partner_of(seat_id)
        if partner is not None:
            unit.add(partner)

        if seat_id in selection:
            selection -= unit
        else:
            selection |= unit
        return self.validate_selection(selection, blocking)

    def _check_gaps(self, selection: set, blocking: set) -> None:
        for label, row in self._rows.items():
            isolated = self._isolated_positions(
                row, lambda s: self._is_taken(s, blocking) or s.id in selection
            )
            if isolated:
                seat = row[min(isolated)]
                raise IsolatedSeatGapError(label, seat.seat_number)

    @staticmethod
    def _is_taken(seat: Seat, blocking: set) -> bool:
        return not seat.is_active or seat.id in blocking

    @staticmethod
    def _isolated_positions(row: List[Seat], taken) -> set:
        flags = [taken(seat) for seat in row]
        n = len(flags)
        isolated = set()
        if n < 2:
            return isolated
        if not flags[0] and flags[1]:
            isolated.add(0)
        if not flags[n - 1] and flags[n - 2]:
            isolated.add(n - 1)
        for i in range(1, n - 1):
            if not flags[i] and flags[i - 1] and flags[i + 1]:
                isolated.add(i)
        return isolated
