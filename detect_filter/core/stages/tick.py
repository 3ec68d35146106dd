"""
Tick Stage — invokes the filter's tick callback at a fixed logical rate.

A slow inference simply delays the next tick; ticks never overlap because
they all run on this one thread.
"""
import time
from threading import Thread, Event
from typing import Optional

from detect_filter.core.controller import FilterController
from detect_filter.core.events import InferenceResult
from detect_filter.utils.logger import Logger


class TickStage(Thread):
    """Calls FilterController.video_tick() and keeps the latest result."""

    def __init__(self, controller: FilterController, stop_event: Event, rate: float = 10):
        """
        Args:
            controller: The filter whose tick callback is driven.
            stop_event: Shared threading.Event for shutdown.
            rate: Ticks per second.
        """
        super().__init__(name="TickStage", daemon=True)
        self.controller = controller
        self.stop_event = stop_event
        self.rate = rate
        self.ticks = 0
        self.scored = 0
        self.last_result: Optional[InferenceResult] = None
        self.logger = Logger("TickStage")

    def run(self) -> None:
        self.logger.info(f"Tick stage running ({self.rate} ticks/s)")
        interval = 1.0 / max(self.rate, 1)
        previous = time.monotonic()

        while not self.stop_event.is_set():
            now = time.monotonic()
            result = self.controller.video_tick(now - previous)
            previous = now

            self.ticks += 1
            self.last_result = result
            if result.ready:
                self.scored += 1

            sleep_time = interval - (time.monotonic() - now)
            if sleep_time > 0:
                self.stop_event.wait(sleep_time)

        self.logger.info(f"Tick stage stopped ({self.scored}/{self.ticks} ticks scored)")
