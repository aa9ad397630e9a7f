# cinema_engine/infrastructure/repositories/catalog_repository.py

from datetime import datetime
from typing import List, Tuple

from sqlalchemy.orm import Session
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from cinema_engine.application.ports import CatalogReader
from cinema_engine.domain import records
from cinema_engine.domain.clock import as_utc
from cinema_engine.domain.exceptions import DuplicateScreeningError, InvalidReferenceError
from cinema_engine.infrastructure.db.models import Movie, Room, Screening, Seat


def screening_record(row: Screening) -> records.Screening:
    return records.Screening(
        id=row.id,
        movie_id=row.movie_id,
        room_id=row.room_id,
        start_time=as_utc(row.start_time),
        end_time=as_utc(row.end_time),
        base_price=row.base_price,
        status=row.status,
    )


class CatalogRepository(CatalogReader):

    def __init__(self, db: Session):
        self.db = db

    def get_screening(self, screening_id: int) -> records.Screening | None:
        row = self.db.get(Screening, screening_id)
        return screening_record(row) if row else None

    def get_movie_duration(self, movie_id: int) -> int | None:
        stmt = select(Movie.duration_minutes).where(Movie.id == movie_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_room(self, room_id: int) -> records.Room | None:
        row = self.db.get(Room, room_id)
        if not row:
            return None
        return records.Room(
            id=row.id,
            venue_id=row.venue_id,
            code=row.code,
            name=row.name,
            is_active=row.is_active,
        )

    def get_room_seats(self, room_id: int) -> List[records.Seat]:
        stmt = (
            select(Seat)
            .where(Seat.room_id == room_id)
            .order_by(Seat.row_label, Seat.seat_number)
        )
        return [
            records.Seat(
                id=row.id,
                room_id=row.room_id,
                row_label=row.row_label,
                seat_number=row.seat_number,
                seat_type=row.seat_type,
                is_active=row.is_active,
            )
            for row in self.db.execute(stmt).scalars().all()
        ]

    def get_room_screenings(
        self,
        room_id: int,
        date_range: Tuple[datetime, datetime],
    ) -> List[records.Screening]:
        range_start, range_end = date_range
        stmt = (
            select(Screening)
            .where(Screening.room_id == room_id)
            .where(Screening.start_time < range_end)
            .where(Screening.end_time > range_start)
            .order_by(Screening.start_time)
        )
        return [screening_record(row) for row in self.db.execute(stmt).scalars().all()]

    def add_screening(self, candidate: records.ScreeningCandidate) -> records.Screening:
        row = Screening(
            movie_id=candidate.movie_id,
            room_id=candidate.room_id,
            start_time=candidate.start_time,
            end_time=candidate.end_time,
            base_price=candidate.base_price,
            status=candidate.status,
        )
        self.db.add(row)
        self._flush_screening()
        return screening_record(row)

    def update_screening(
        self,
        screening_id: int,
        candidate: records.ScreeningCandidate,
    ) -> records.Screening:
        row = self.db.get(Screening, screening_id)
        if not row:
            raise InvalidReferenceError(f"Screening {screening_id} not found")

        row.movie_id = candidate.movie_id
        row.room_id = candidate.room_id
        row.start_time = candidate.start_time
        row.end_time = candidate.end_time
        row.base_price = candidate.base_price
        row.status = candidate.status
        self._flush_screening()
        return screening_record(row)

    def _flush_screening(self) -> None:
        # A concurrent admin may have committed the same slot since validation.
        try:
            self.db.flush()
        except IntegrityError as exc:
            raise DuplicateScreeningError(None) from exc
