"""Periodic trigger for engine runs."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .engine import ForecastEngine

logger = logging.getLogger(__name__)

__all__ = ["AutoRunner"]


class AutoRunner:
    r"""
    Daemon thread calling :meth:`ForecastEngine.refresh` every ``interval`` seconds.

    A failed run is logged by the engine and the loop carries on. An unexpected
    exception escaping the engine is logged here and does not stop the thread. If
    an on-demand run is in flight when the timer fires, the tick joins that run
    instead of starting a second one.

    Parameters
    ----------
    engine : ForecastEngine
    interval : float
        Seconds between the end of one tick and the start of the next.
    """

    def __init__(self, engine: "ForecastEngine", interval: float):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.engine = engine
        self.interval = float(interval)
        self.ticks = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "AutoRunner":
        if self.running:
            return self
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="mcforecast-auto-runner", daemon=True)
        self._thread.start()
        logger.info("Automatic runs every %.1f seconds", self.interval)
        return self

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            logger.debug("Scheduler tick %d", self.ticks + 1)
            try:
                self.engine.refresh()
            except Exception:
                logger.exception("Scheduled run raised an unexpected error")
            self.ticks += 1
