# cinema_engine/config.py

import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


# -----------------------------
# Seat holds
# -----------------------------
HOLD_DURATION_MINUTES = int(os.getenv("HOLD_DURATION_MINUTES", "10"))
HOLD_SWEEP_INTERVAL_SECONDS = float(os.getenv("HOLD_SWEEP_INTERVAL_SECONDS", "30"))
HOLD_SWEEP_ENABLED = _env_bool("HOLD_SWEEP_ENABLED", "true")


# -----------------------------
# Database startup
# -----------------------------
DB_CONNECT_MAX_RETRIES = int(os.getenv("DB_CONNECT_MAX_RETRIES", "30"))
DB_CONNECT_RETRY_DELAY = float(os.getenv("DB_CONNECT_RETRY_DELAY", "1.5"))
