import os
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["HOLD_SWEEP_ENABLED"] = "false"

from fastapi.testclient import TestClient  # noqa: E402

from cinema_engine.api.dependencies import get_reservation_service, get_schedule_service  # noqa: E402
from cinema_engine.application.reservation_service import ReservationService  # noqa: E402
from cinema_engine.application.schedule_service import ScheduleService  # noqa: E402
from cinema_engine.domain.records import SeatType  # noqa: E402
from cinema_engine.infrastructure.db import models  # noqa: E402
from cinema_engine.infrastructure.db.session import (  # noqa: E402
    Base,
    build_engine,
    build_session_factory,
)
from cinema_engine.infrastructure.unit_of_work import unit_of_work_factory  # noqa: E402
from cinema_engine.main import app  # noqa: E402


SHOW_DAY = datetime(2026, 3, 14, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def seed_room(session, code="HALL-1", venue_id=1, is_active=True):
    """
    Rows A-D with six seats each: A is VIP, C1 is ACCESSIBLE,
    D is three couple pairs. Returns the room and a label -> id map.
    """
    room = models.Room(venue_id=venue_id, code=code, name=f"Hall {code}", is_active=is_active)
    session.add(room)
    session.flush()

    seats = {}
    for row_label in "ABCD":
        for number in range(1, 7):
            seat_type = SeatType.STANDARD
            if row_label == "A":
                seat_type = SeatType.VIP
            elif row_label == "C" and number == 1:
                seat_type = SeatType.ACCESSIBLE
            elif row_label == "D":
                seat_type = SeatType.COUPLE
            seat = models.Seat(
                room_id=room.id,
                row_label=row_label,
                seat_number=number,
                seat_type=seat_type,
            )
            session.add(seat)
            session.flush()
            seats[f"{row_label}{number}"] = seat.id
    return room, seats


@pytest.fixture
def clock():
    return FakeClock(SHOW_DAY.replace(hour=12))


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def uow_factory(session_factory):
    return unit_of_work_factory(session_factory)


@pytest.fixture
def catalog(session_factory):
    session = session_factory()
    try:
        movie = models.Movie(title="Arrival", duration_minutes=120)
        short_movie = models.Movie(title="Paperman", duration_minutes=90)
        session.add_all([movie, short_movie])
        session.flush()

        room, seats = seed_room(session)
        closed_room, _ = seed_room(session, code="HALL-2", is_active=False)

        screening = models.Screening(
            movie_id=movie.id,
            room_id=room.id,
            start_time=SHOW_DAY.replace(hour=18),
            end_time=SHOW_DAY.replace(hour=20),
            base_price=100,
        )
        session.add(screening)
        session.commit()

        return SimpleNamespace(
            movie_id=movie.id,
            short_movie_id=short_movie.id,
            room_id=room.id,
            venue_id=room.venue_id,
            closed_room_id=closed_room.id,
            screening_id=screening.id,
            seats=seats,
        )
    finally:
        session.close()


@pytest.fixture
def reservation_service(uow_factory, clock, catalog):
    return ReservationService(uow_factory, clock=clock)


@pytest.fixture
def schedule_service(uow_factory, catalog):
    return ScheduleService(uow_factory)


@pytest.fixture
def client(reservation_service, schedule_service):
    app.dependency_overrides[get_reservation_service] = lambda: reservation_service
    app.dependency_overrides[get_schedule_service] = lambda: schedule_service
    yield TestClient(app)
    app.dependency_overrides.clear()
