# cinema_engine/domain/pricing.py

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Tuple

from cinema_engine.domain.records import Seat, SeatType
from cinema_engine.domain.seat_map import pair_couple_seats


SEAT_TYPE_MULTIPLIERS: Dict[SeatType, Decimal] = {
    SeatType.STANDARD: Decimal("1.0"),
    SeatType.ACCESSIBLE: Decimal("1.0"),
    SeatType.VIP: Decimal("1.2"),
    SeatType.COUPLE: Decimal("1.5"),
}


@dataclass(frozen=True)
class PriceLine:
    seat_type: SeatType
    seat_ids: Tuple[int, ...]
    label: str
    amount: int
    seat_amounts: Tuple[int, ...]


@dataclass(frozen=True)
class PricedSelection:
    lines: List[PriceLine]
    total: int

    def price_for_seat(self, seat_id: int) -> int:
        for line in self.lines:
            if seat_id in line.seat_ids:
                return line.seat_amounts[line.seat_ids.index(seat_id)]
        raise KeyError(seat_id)


def _to_amount(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def price_of(seat_type: SeatType, base_price: int) -> int:
    """Price of a single seat of ``seat_type``."""
    return _to_amount(Decimal(base_price) * SEAT_TYPE_MULTIPLIERS[seat_type])


def price_of_pair(base_price: int) -> int:
    """Combined price of a couple pair: base x 2 x couple multiplier."""
    return _to_amount(Decimal(base_price) * 2 * SEAT_TYPE_MULTIPLIERS[SeatType.COUPLE])


def _split(amount: int, parts: int) -> Tuple[int, ...]:
    share, remainder = divmod(amount, parts)
    return tuple(share + (1 if i < remainder else 0) for i in range(parts))


def price_selection(seats: Iterable[Seat], base_price: int) -> PricedSelection:
    """
    Price a selection row by row (rows by label, seats by number).
    Complete couple pairs become one line; every other seat is its
    own line at its type multiplier.
    """
    rows: Dict[str, List[Seat]] = {}
    for seat in seats:
        rows.setdefault(seat.row_label, []).append(seat)

    lines: List[PriceLine] = []
    for label in sorted(rows):
        row = sorted(rows[label], key=lambda s: s.seat_number)
        for unit in pair_couple_seats(row):
            if unit.is_pair:
                amount = price_of_pair(base_price)
                seat_type = SeatType.COUPLE
            else:
                seat_type = unit.seats[0].seat_type
                amount = price_of(seat_type, base_price)
            lines.append(
                PriceLine(
                    seat_type=seat_type,
                    seat_ids=unit.seat_ids,
                    label=unit.label,
                    amount=amount,
                    seat_amounts=_split(amount, len(unit.seats)),
                )
            )

    return PricedSelection(lines=lines, total=sum(line.amount for line in lines))
