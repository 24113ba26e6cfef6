"""
24/7 mode: run an incremental scan now and then every N hours.

A failed run is logged and retried on the next cycle; the loop itself
never stops because of a scan error. SIGINT/SIGTERM set the stop event,
so the loop exits after the current scan instead of interrupting it.
"""

import signal
import threading
from typing import Any

from release_bot.catalog.orchestrator import RunSummary, ScanOrchestrator
from release_bot.core.exceptions import ReleaseBotError
from release_bot.core.logger import get_logger


logger = get_logger(__name__)


class Scheduler:
    """
    Interval loop around ScanOrchestrator.run_scan().

    Attributes:
        interval_hours: Hours between the end of one wait and the next scan.
        stop_event: Set to stop the loop.

    Example:
        scheduler = Scheduler(orchestrator, interval_hours=12)
        scheduler.install_signal_handlers()
        scheduler.run_forever()
    """

    def __init__(
        self,
        orchestrator: ScanOrchestrator,
        interval_hours: float = 12,
        stop_event: threading.Event | None = None
    ) -> None:
        self._orchestrator = orchestrator
        self.interval_hours = interval_hours
        self.stop_event = stop_event or threading.Event()
        self.runs = 0

    def run_once(self) -> RunSummary | None:
        """
        Run one scan, logging instead of raising on failure.

        Returns:
            The run summary, or None if the scan failed.
        """
        self.runs += 1
        try:
            return self._orchestrator.run_scan()
        except ReleaseBotError as e:
            logger.error(f"Scheduled scan failed: {e.message}. Will retry on next scheduled run.")
        except Exception:
            logger.exception("Scheduled scan crashed. Will retry on next scheduled run.")
        return None

    def run_forever(self) -> None:
        """Scan immediately, then every interval until stop_event is set."""
        interval_seconds = self.interval_hours * 3600
        logger.info(f"Bot running, scanning every {self.interval_hours:g} hour(s). Press Ctrl+C to stop.")

        while not self.stop_event.is_set():
            self.run_once()
            if self.stop_event.wait(interval_seconds):
                break

        logger.info("Bot stopped")

    def stop(self, *_: Any) -> None:
        """Request the loop to stop after the current scan."""
        if not self.stop_event.is_set():
            logger.info("Shutting down after the current run...")
        self.stop_event.set()

    def install_signal_handlers(self) -> None:
        """Route SIGINT and SIGTERM to stop(). Main thread only."""
        signal.signal(signal.SIGINT, self.stop)
        signal.signal(signal.SIGTERM, self.stop)
