"""
Purpose: The time-based "Heartbeat" that expires unanswered emergency orders.
What it does:
Runs process_order_timeouts on a fixed interval. Ticks never overlap: the next
wait starts only after the previous tick returned. A failing tick is logged and
the loop carries on with the next one.

The expiry itself is a single idempotent set-based update, so running a tick
from cron instead of this loop is equally safe.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class TimeoutSweeper:
    def __init__(self, sweep: Callable[[], int], interval_seconds: float = 60):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.sweep = sweep
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()

    def run_cycle(self) -> Optional[int]:
        """
        One tick. Returns the number of expired orders, or None if the tick failed.
        """
        logger.debug("Checking for timed out emergency orders")
        try:
            moved = self.sweep()
        except Exception:
            logger.exception("Error during scheduled order timeout check")
            return None

        if moved:
            logger.info("Timeout sweep moved %d orders to no_response", moved)
        return moved

    def run_forever(self, max_cycles: Optional[int] = None) -> int:
        """
        Blocks until stop() is called (or max_cycles ticks ran).
        Returns the number of ticks executed.
        """
        cycles = 0
        while not self._stop.is_set():
            self.run_cycle()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            self._stop.wait(self.interval_seconds)
        return cycles

    def stop(self) -> None:
        self._stop.set()
