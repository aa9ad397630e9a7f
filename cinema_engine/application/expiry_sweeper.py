import logging
import threading

from cinema_engine.application.reservation_service import ReservationService
from cinema_engine.config import HOLD_SWEEP_INTERVAL_SECONDS


logger = logging.getLogger(__name__)


class ExpirySweeper:
    """
    Background thread that releases lapsed holds on a fixed interval.

    Holds are also excluded from the blocking set at read time, so a
    late or missed sweep never lets an expired hold block a seat.
    """

    def __init__(
        self,
        service: ReservationService,
        interval_seconds: float = HOLD_SWEEP_INTERVAL_SECONDS,
    ):
        self.service = service
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="hold-expiry-sweeper", daemon=True)
        self._thread.start()
        logger.info("Hold expiry sweeper started (every %.0f seconds)", self.interval_seconds)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Hold expiry sweeper stopped")

    def run_once(self) -> int:
        try:
            return self.service.expiry_sweep()
        except Exception:
            # Next tick retries; release is idempotent.
            logger.exception("Hold expiry sweep failed")
            return 0

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            self.run_once()
