"""
Render Stage — invokes the filter's render callback at the video frame rate.
"""
import time
from threading import Thread, Event

from detect_filter.core.controller import FilterController
from detect_filter.utils.logger import Logger


class RenderStage(Thread):
    """Calls FilterController.video_render() once per frame interval."""

    def __init__(self, controller: FilterController, stop_event: Event, fps: float = 30):
        """
        Args:
            controller: The filter whose render callback is driven.
            stop_event: Shared threading.Event — set to signal shutdown.
            fps: Target render rate.
        """
        super().__init__(name="RenderStage", daemon=True)
        self.controller = controller
        self.stop_event = stop_event
        self.fps = fps
        self.frames_rendered = 0
        self.logger = Logger("RenderStage")

    def run(self) -> None:
        self.logger.info(f"Render stage running ({self.fps} FPS target)")
        frame_interval = 1.0 / max(self.fps, 1)

        while not self.stop_event.is_set():
            loop_start = time.monotonic()

            if self.controller.video_render():
                self.frames_rendered += 1

            # Precise frame-rate timing (subtract processing time)
            sleep_time = frame_interval - (time.monotonic() - loop_start)
            if sleep_time > 0:
                self.stop_event.wait(sleep_time)

        self.logger.info(f"Render stage stopped after {self.frames_rendered} frame(s)")
