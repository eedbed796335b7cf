"""
Periodic Release Scanner

Runs the ledger's release scan for every account on a fixed interval,
on a daemon thread. Login-time scanning is always on; this scanner is
the optional extra that releases boxes while the operator sits in a
menu.

The ledger takes each account's lock for the duration of that
account's scan, so this thread and the interactive session serialize
per account.
"""

import threading
from typing import TYPE_CHECKING, Optional

import structlog

if TYPE_CHECKING:
    from timelock.ledger.service import LedgerService
    from timelock.models.lockbox import ReleaseEvent

logger = structlog.get_logger(__name__)


class PeriodicReleaseScanner:
    """
    Background release scan.

    Usage:
        scanner = PeriodicReleaseScanner(ledger, interval_seconds=30)
        scanner.start()
        ...
        scanner.stop()
    """

    def __init__(self, ledger: "LedgerService", interval_seconds: float):
        if interval_seconds <= 0:
            raise ValueError("Scan interval must be positive")
        self._ledger = ledger
        self._interval = interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.runs = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> list["ReleaseEvent"]:
        """One pass over every account."""
        released = self._ledger.scan_all()
        self.runs += 1
        if released:
            logger.info("background_scan_released", released=len(released))
        return released

    def _loop(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self.run_once()
            except Exception:
                # Keep the thread alive; the next tick retries
                logger.exception("background_scan_failed")

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name="release-scanner",
            daemon=True,
        )
        self._thread.start()
        logger.info("background_scan_started", interval_seconds=self._interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the thread and wait for an in-flight scan to finish."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
            logger.info("background_scan_stopped", runs=self.runs)
