import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from cinema_engine.api.dependencies import get_reservation_service
from cinema_engine.api.routes.routes import router
from cinema_engine.application.expiry_sweeper import ExpirySweeper
from cinema_engine.config import (
    DB_CONNECT_MAX_RETRIES,
    DB_CONNECT_RETRY_DELAY,
    HOLD_SWEEP_ENABLED,
    HOLD_SWEEP_INTERVAL_SECONDS,
)
from cinema_engine.infrastructure.db import models  # noqa: F401  registers tables
from cinema_engine.infrastructure.db.session import Base, engine

logger = logging.getLogger(__name__)


def _wait_for_db() -> None:
    # Handles the common case where API starts before Postgres is ready.
    for attempt in range(1, DB_CONNECT_MAX_RETRIES + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database is reachable.")
            return
        except OperationalError:
            if attempt == DB_CONNECT_MAX_RETRIES:
                logger.exception(
                    "Database not reachable after %s attempts. Check DATABASE_URL and Postgres status.",
                    DB_CONNECT_MAX_RETRIES,
                )
                raise
            logger.warning(
                "Database not ready (attempt %s/%s). Retrying in %.1f seconds...",
                attempt,
                DB_CONNECT_MAX_RETRIES,
                DB_CONNECT_RETRY_DELAY,
            )
            time.sleep(DB_CONNECT_RETRY_DELAY)


@asynccontextmanager
async def lifespan(app: FastAPI):
    _wait_for_db()
    Base.metadata.create_all(bind=engine)

    sweeper = None
    if HOLD_SWEEP_ENABLED:
        sweeper = ExpirySweeper(get_reservation_service(), HOLD_SWEEP_INTERVAL_SECONDS)
        sweeper.start()
    try:
        yield
    finally:
        if sweeper is not None:
            sweeper.stop()


app = FastAPI(title="Cinema Reservation Engine", lifespan=lifespan)

app.include_router(router)
