# tests/integration/test_schedule_service.py

from datetime import datetime, timezone

import pytest

from cinema_engine.domain.exceptions import (
    DuplicateScreeningError,
    InfrastructureError,
    InvalidReferenceError,
    InvalidStateTransitionError,
    RoomInactiveError,
    ScheduleConflictError,
)
from cinema_engine.domain.state_machine import ScreeningStatus
from cinema_engine.domain.records import ScreeningCandidate
from cinema_engine.infrastructure.db.session import build_engine, build_session_factory
from cinema_engine.infrastructure.unit_of_work import SqlAlchemyUnitOfWork


def test_end_time_comes_from_movie_duration(schedule_service, catalog):
    end_time = schedule_service.derive_end_time(catalog.movie_id, "2026-03-14T18:00:00Z")

    assert end_time == datetime(2026, 3, 14, 20, 0, tzinfo=timezone.utc)


def test_end_time_for_unknown_movie(schedule_service, catalog):
    with pytest.raises(InvalidReferenceError):
        schedule_service.derive_end_time(9999, "2026-03-14T18:00:00Z")


def test_end_time_with_unparsable_start(schedule_service, catalog):
    with pytest.raises(InvalidReferenceError):
        schedule_service.derive_end_time(catalog.movie_id, "tonight")


def test_create_screening_after_buffer(schedule_service, catalog):
    candidate = schedule_service.build_candidate(
        catalog.short_movie_id, catalog.room_id, "2026-03-14T20:30:00+00:00", 90
    )

    screening = schedule_service.create_screening(candidate)

    assert screening.id is not None
    assert screening.end_time == datetime(2026, 3, 14, 22, 0, tzinfo=timezone.utc)
    assert screening.status is ScreeningStatus.SCHEDULED


def test_conflicting_screening_is_not_saved(schedule_service, catalog):
    candidate = schedule_service.build_candidate(
        catalog.short_movie_id, catalog.room_id, "2026-03-14T20:10:00Z", 90
    )

    with pytest.raises(ScheduleConflictError) as exc_info:
        schedule_service.create_screening(candidate)

    assert [item.id for item in exc_info.value.conflicts] == [catalog.screening_id]
    assert exc_info.value.suggestion == datetime(2026, 3, 14, 20, 30, tzinfo=timezone.utc)


def test_duplicate_screening_is_rejected(schedule_service, catalog):
    candidate = schedule_service.build_candidate(
        catalog.movie_id, catalog.room_id, "2026-03-14T18:00:00Z", 100
    )

    with pytest.raises(DuplicateScreeningError):
        schedule_service.validate_screening(candidate)


def test_inactive_room_is_rejected(schedule_service, catalog):
    candidate = schedule_service.build_candidate(
        catalog.movie_id, catalog.closed_room_id, "2026-03-14T10:00:00Z", 100
    )

    with pytest.raises(RoomInactiveError):
        schedule_service.validate_screening(candidate)


def test_unknown_room_is_rejected(schedule_service, catalog):
    candidate = schedule_service.build_candidate(
        catalog.movie_id, 9999, "2026-03-14T10:00:00Z", 100
    )

    with pytest.raises(InvalidReferenceError):
        schedule_service.validate_screening(candidate)


def test_screening_can_move_within_its_own_slot(schedule_service, catalog):
    candidate = schedule_service.build_candidate(
        catalog.movie_id, catalog.room_id, "2026-03-14T18:15:00Z", 110
    )

    screening = schedule_service.update_screening(catalog.screening_id, candidate)

    assert screening.start_time == datetime(2026, 3, 14, 18, 15, tzinfo=timezone.utc)
    assert screening.base_price == 110


def test_cancelled_screening_cannot_be_reopened(schedule_service, catalog):
    candidate = schedule_service.build_candidate(
        catalog.movie_id, catalog.room_id, "2026-03-14T18:00:00Z", 100
    )
    cancelled = ScreeningCandidate(
        movie_id=candidate.movie_id,
        room_id=candidate.room_id,
        start_time=candidate.start_time,
        end_time=candidate.end_time,
        base_price=candidate.base_price,
        status=ScreeningStatus.CANCELLED,
    )
    schedule_service.update_screening(catalog.screening_id, cancelled)

    with pytest.raises(InvalidStateTransitionError):
        schedule_service.update_screening(catalog.screening_id, candidate)


def test_unreachable_store_is_an_infrastructure_error(tmp_path):
    missing = tmp_path / "absent" / "cinema.db"
    engine = build_engine(f"sqlite:///{missing}")
    uow = SqlAlchemyUnitOfWork(build_session_factory(engine))

    with pytest.raises(InfrastructureError):
        with uow:
            uow.catalog.get_room(1)
