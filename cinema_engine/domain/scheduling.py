# cinema_engine/domain/scheduling.py

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List

from cinema_engine.domain.clock import as_utc
from cinema_engine.domain.exceptions import (
    DuplicateScreeningError,
    InvalidReferenceError,
    RoomInactiveError,
    RoomNotInVenueError,
    ScheduleConflictError,
)
from cinema_engine.domain.records import Room, Screening, ScreeningCandidate
from cinema_engine.domain.state_machine import ScreeningStatus


SCHEDULE_BUFFER = timedelta(minutes=30)


@dataclass(frozen=True)
class ScheduleCheck:
    ok: bool = True


def derive_end_time(duration_minutes: int | None, start_time: datetime | None) -> datetime:
    if start_time is None:
        raise InvalidReferenceError("Start time is missing or unparsable")
    if not duration_minutes or duration_minutes <= 0:
        raise InvalidReferenceError("Movie duration is missing")
    return start_time + timedelta(minutes=duration_minutes)


def conflicts_with(
    start: datetime,
    end: datetime,
    other: Screening,
    buffer: timedelta = SCHEDULE_BUFFER,
) -> bool:
    """
    True when [start, end] intersects [other.start - buffer,
    other.end + buffer]. The test is symmetric in its two screenings.
    """
    other_start = as_utc(other.start_time)
    other_end = as_utc(other.end_time)
    return start < other_end + buffer and end > other_start - buffer


class ScheduleValidator:
    """
    Decides whether a proposed or edited screening may be committed.
    Pure: the caller supplies the room and its schedule and persists
    only when ``validate`` returns.
    """

    def __init__(self, buffer: timedelta = SCHEDULE_BUFFER):
        self.buffer = buffer

    def validate(
        self,
        candidate: ScreeningCandidate,
        room: Room,
        existing: Iterable[Screening],
        excluding_id: int | None = None,
    ) -> ScheduleCheck:
        if not room.is_active:
            raise RoomInactiveError(f"Room {room.id} is inactive")
        if candidate.venue_id is not None and candidate.venue_id != room.venue_id:
            raise RoomNotInVenueError(
                f"Room {room.id} does not belong to venue {candidate.venue_id}"
            )

        start = as_utc(candidate.start_time)
        end = as_utc(candidate.end_time)
        if start is None or end is None or end <= start:
            raise InvalidReferenceError("Screening needs a start before its end")

        in_room = [
            other
            for other in existing
            if other.room_id == room.id and (excluding_id is None or other.id != excluding_id)
        ]

        # The (movie, room, start) triple is unique even among cancelled screenings.
        for other in in_room:
            if other.movie_id == candidate.movie_id and as_utc(other.start_time) == start:
                raise DuplicateScreeningError(other.id)

        others = [other for other in in_room if other.status is not ScreeningStatus.CANCELLED]
        conflicts = [other for other in others if conflicts_with(start, end, other, self.buffer)]
        if conflicts:
            conflicts.sort(key=lambda s: as_utc(s.start_time))
            suggestion = self.suggest_next_start(start, end - start, conflicts, others)
            raise ScheduleConflictError(conflicts, suggestion)

        return ScheduleCheck()

    def suggest_next_start(
        self,
        start: datetime,
        duration: timedelta,
        conflicts: List[Screening],
        others: List[Screening],
    ) -> datetime | None:
        """
        Scan forward from the end of the last conflicting window in
        buffer-sized steps; stop at the end of the candidate's day.
        """
        probe = max(as_utc(item.end_time) + self.buffer for item in conflicts)
        day = start.date()
        while probe.date() == day:
            if not any(conflicts_with(probe, probe + duration, other, self.buffer) for other in others):
                return probe
            probe += self.buffer
        return None
