from functools import lru_cache

from cinema_engine.application.reservation_service import ReservationService
from cinema_engine.application.schedule_service import ScheduleService
from cinema_engine.infrastructure.db.session import SessionLocal
from cinema_engine.infrastructure.unit_of_work import unit_of_work_factory


@lru_cache
def get_reservation_service() -> ReservationService:
    # Shared instance: its per-room seat maps are reused across requests.
    return ReservationService(unit_of_work_factory(SessionLocal))


@lru_cache
def get_schedule_service() -> ScheduleService:
    return ScheduleService(unit_of_work_factory(SessionLocal))
