# cinema_engine/infrastructure/unit_of_work.py

from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.exc import OperationalError, TimeoutError as SQLAlchemyTimeoutError

from cinema_engine.application.ports import AbstractUnitOfWork
from cinema_engine.domain.exceptions import InfrastructureError
from cinema_engine.infrastructure.repositories.booking_repository import BookingRepository
from cinema_engine.infrastructure.repositories.catalog_repository import CatalogRepository


def _is_db_degraded(exc: BaseException | None) -> bool:
    return isinstance(exc, (OperationalError, SQLAlchemyTimeoutError))


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    """One Session, one transaction; rolled back unless committed."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        self.session: Session | None = None

    def __enter__(self) -> "SqlAlchemyUnitOfWork":
        self.session = self.session_factory()
        self.catalog = CatalogRepository(self.session)
        self.bookings = BookingRepository(self.session)
        return super().__enter__()

    def __exit__(self, exc_type, exc, tb):
        try:
            super().__exit__(exc_type, exc, tb)
        finally:
            self.session.close()
        if _is_db_degraded(exc):
            raise InfrastructureError("Reservation store is unavailable") from exc

    def commit(self) -> None:
        try:
            self.session.commit()
        except (OperationalError, SQLAlchemyTimeoutError) as exc:
            raise InfrastructureError("Reservation store is unavailable") from exc

    def rollback(self) -> None:
        self.session.rollback()


def unit_of_work_factory(session_factory: sessionmaker):
    def factory() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork(session_factory)

    return factory
