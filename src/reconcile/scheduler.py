"""
Fixed-delay background loop on a daemon thread.

The next run is scheduled *interval* seconds after the previous one
finishes, so a slow cycle delays only itself.  An exception raised by the
task is logged and the loop keeps going; the next tick is the retry.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run *fn* every *interval* seconds until ``stop()`` is called."""

    def __init__(
        self,
        name: str,
        fn: Callable[[], Any],
        interval: float,
        run_immediately: bool = False,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.name = name
        self.interval = interval
        self.run_immediately = run_immediately
        self._fn = fn
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.runs = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            logger.debug("PeriodicTask[%s] already running", self.name)
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=f"periodic-{self.name}", daemon=True)
        self._thread.start()
        logger.info("PeriodicTask[%s] started (every %.1fs)", self.name, self.interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the loop to exit and wait for the in-flight run to finish."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("PeriodicTask[%s] did not stop within %ss", self.name, timeout)
            else:
                logger.info("PeriodicTask[%s] stopped after %d runs", self.name, self.runs)

    def run_once(self) -> None:
        try:
            self._fn()
        except Exception:  # noqa: BLE001
            self.failures += 1
            logger.exception("PeriodicTask[%s] run failed", self.name)
        finally:
            self.runs += 1

    def _loop(self) -> None:
        if self.run_immediately and not self._stop.is_set():
            self.run_once()
        while not self._stop.wait(self.interval):
            self.run_once()
