# policy_monitor/services/scheduling.py
"""Schedulers decide when MonitoringCycle.run is called."""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from ..models import CycleSummary
from .google_ads import AuthenticationError
from .monitor import CycleError, CycleInProgressError

logger = logging.getLogger(__name__)

Cycle = Callable[[], CycleSummary]


class RunOnce:
    """Run a single cycle and hand back its summary (jobs, HTTP trigger)."""

    def run(self, cycle: Cycle) -> CycleSummary:
        return cycle()


class IntervalScheduler:
    """Run cycles on a fixed wall-clock interval until stopped.

    Cycle-level failures are logged and the loop keeps going; an
    AuthenticationError stops it, as retrying cannot help.
    """

    def __init__(
        self,
        interval_seconds: float,
        stop_event: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic,
        max_cycles: Optional[int] = None,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.interval_seconds = float(interval_seconds)
        self.stop_event = stop_event or threading.Event()
        self._clock = clock
        self.max_cycles = max_cycles
        self.cycles_run = 0

    def stop(self) -> None:
        self.stop_event.set()

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()

    def run(self, cycle: Cycle) -> None:
        logger.info("Interval scheduler started: every %.0fs", self.interval_seconds)
        while not self.stop_event.is_set():
            started = self._clock()
            try:
                cycle()
            except AuthenticationError:
                logger.exception("Authentication failed; stopping scheduler")
                raise
            except CycleInProgressError as e:
                logger.warning("Skipping tick: %s", e)
            except CycleError as e:
                logger.error("Cycle failed: %s", e)
            except Exception:
                logger.exception("Unexpected error during monitoring cycle")
            self.cycles_run += 1
            if self.max_cycles is not None and self.cycles_run >= self.max_cycles:
                break
            remaining = self.interval_seconds - (self._clock() - started)
            if remaining > 0:
                logger.info("Next cycle in %.0fs", remaining)
                self.stop_event.wait(remaining)
        logger.info("Interval scheduler stopped after %d cycle(s)", self.cycles_run)
