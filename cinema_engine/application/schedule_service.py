import logging
from datetime import datetime, time, timedelta
from typing import Callable

from cinema_engine.application.ports import AbstractUnitOfWork
from cinema_engine.domain.clock import parse_timestamp
from cinema_engine.domain.exceptions import InvalidReferenceError, ScheduleConflictError
from cinema_engine.domain.records import Room, Screening, ScreeningCandidate
from cinema_engine.domain.scheduling import ScheduleCheck, ScheduleValidator, derive_end_time
from cinema_engine.domain.state_machine import ScreeningStateMachine


logger = logging.getLogger(__name__)


class ScheduleService:
    """Loads a room's schedule and commits screenings the validator accepts."""

    def __init__(
        self,
        uow_factory: Callable[[], AbstractUnitOfWork],
        validator: ScheduleValidator | None = None,
    ):
        self.uow_factory = uow_factory
        self.validator = validator or ScheduleValidator()

    def derive_end_time(self, movie_id: int | None, start_time) -> datetime:
        start = parse_timestamp(start_time)
        if movie_id is None:
            raise InvalidReferenceError("Movie is missing")
        with self.uow_factory() as uow:
            duration = uow.catalog.get_movie_duration(movie_id)
        if duration is None:
            raise InvalidReferenceError(f"Movie {movie_id} not found")
        return derive_end_time(duration, start)

    def build_candidate(
        self,
        movie_id: int,
        room_id: int,
        start_time,
        base_price: int,
        venue_id: int | None = None,
    ) -> ScreeningCandidate:
        start = parse_timestamp(start_time)
        return ScreeningCandidate(
            movie_id=movie_id,
            room_id=room_id,
            start_time=start,
            end_time=self.derive_end_time(movie_id, start),
            base_price=base_price,
            venue_id=venue_id,
        )

    def validate_screening(
        self,
        candidate: ScreeningCandidate,
        excluding_id: int | None = None,
    ) -> ScheduleCheck:
        with self.uow_factory() as uow:
            return self._validate_in(uow, candidate, excluding_id)

    def create_screening(self, candidate: ScreeningCandidate) -> Screening:
        with self.uow_factory() as uow:
            self._validate_in(uow, candidate)
            screening = uow.catalog.add_screening(candidate)
            uow.commit()

        logger.info(
            "Screening %s scheduled in room %s at %s",
            screening.id,
            screening.room_id,
            screening.start_time.isoformat(),
        )
        return screening

    def update_screening(self, screening_id: int, candidate: ScreeningCandidate) -> Screening:
        with self.uow_factory() as uow:
            current = uow.catalog.get_screening(screening_id)
            if current is None:
                raise InvalidReferenceError(f"Screening {screening_id} not found")
            if candidate.status is not current.status:
                ScreeningStateMachine.validate_transition(current.status, candidate.status)
            self._validate_in(uow, candidate, excluding_id=screening_id)
            screening = uow.catalog.update_screening(screening_id, candidate)
            uow.commit()

        logger.info("Screening %s rescheduled", screening_id)
        return screening

    def _validate_in(
        self,
        uow: AbstractUnitOfWork,
        candidate: ScreeningCandidate,
        excluding_id: int | None = None,
    ) -> ScheduleCheck:
        if candidate.start_time is None:
            raise InvalidReferenceError("Start time is missing or unparsable")

        room = self._load_room(uow, candidate.room_id)
        day_start = datetime.combine(candidate.start_time.date(), time.min, candidate.start_time.tzinfo)
        date_range = (day_start - timedelta(days=1), day_start + timedelta(days=2))
        existing = uow.catalog.get_room_screenings(room.id, date_range)
        try:
            return self.validator.validate(candidate, room, existing, excluding_id)
        except ScheduleConflictError as exc:
            logger.warning(
                "Screening rejected in room %s: %s conflict(s), suggested %s",
                room.id,
                len(exc.conflicts),
                exc.suggestion,
            )
            raise

    @staticmethod
    def _load_room(uow: AbstractUnitOfWork, room_id: int) -> Room:
        room = uow.catalog.get_room(room_id)
        if room is None:
            raise InvalidReferenceError(f"Room {room_id} not found")
        return room
