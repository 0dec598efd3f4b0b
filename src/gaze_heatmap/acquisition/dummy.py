import asyncio
import logging
import math
import time

from gaze_heatmap.models.gaze import GazePoint
from .base import GazeSource

logger = logging.getLogger(__name__)


class DummyGazeSource(GazeSource):
    """
    A GazeSource that simulates gaze data for development and testing.

    Emits viewport pixel coordinates at a fixed frequency, following a
    circular path around the viewport center. Useful for exercising the
    collector and renderer without a webcam tracker.
    """

    def __init__(
        self,
        *args,
        frequency: int = 30,
        viewport: tuple[int, int] = (1280, 720),
        radius: float = 200.0,
        speed: float = 0.25,
        warmup_s: float = 0.0,
        scroll_speed: float = 0.0,
        max_scroll: float = 0.0,
        **kwargs,
    ):
        """
        Initializes the DummyGazeSource.

        Args:
            frequency: The frequency in Hz to emit gaze points.
            viewport: The (width, height) of the simulated viewport in pixels.
            radius: The radius of the circular path in pixels.
            speed: Revolutions per second along the circle.
            warmup_s: Simulated initialization delay before `ready` is set.
            scroll_speed: Simulated downward scroll in pixels per second.
            max_scroll: Scroll offset at which the simulated page stops scrolling.
        """
        super().__init__(*args, **kwargs)
        if frequency <= 0:
            raise ValueError("Frequency must be positive.")

        self._frequency = frequency
        self._interval_s = 1.0 / self._frequency
        self._center_x, self._center_y = viewport[0] / 2, viewport[1] / 2
        self._radius = radius
        self._speed = speed
        self._warmup_s = warmup_s
        self._scroll_speed = scroll_speed
        self._max_scroll = max_scroll

        logger.info(f"DummyGazeSource initialized to run at {self._frequency} Hz.")

    async def run(self) -> None:
        """
        Main execution loop for the dummy source.

        Generates and queues points at the configured frequency until the
        stop event is set. A full queue drops the point, like a real tracker
        callback that nobody is listening to.
        """
        if self._warmup_s:
            await asyncio.sleep(self._warmup_s)
        self._ready.set()

        start_time = time.monotonic()
        frame_counter = 0

        logger.info("Starting dummy gaze stream...")
        try:
            while not self._stop_event.is_set():
                target_time = start_time + (frame_counter * self._interval_s)

                elapsed = time.monotonic() - start_time
                angle = elapsed * self._speed * 2 * math.pi
                point = GazePoint(
                    x=self._center_x + self._radius * math.cos(angle),
                    y=self._center_y + self._radius * math.sin(angle),
                )

                if self._scroll_speed:
                    self._emit_scroll(min(elapsed * self._scroll_speed, self._max_scroll))

                try:
                    self._output_queue.put_nowait(point)
                except asyncio.QueueFull:
                    pass

                # Sleep until the next frame's target time
                sleep_duration = target_time + self._interval_s - time.monotonic()
                if sleep_duration > 0:
                    await asyncio.sleep(sleep_duration)
                else:
                    await asyncio.sleep(0)

                frame_counter += 1

        except asyncio.CancelledError:
            logger.info("Dummy source run task was cancelled.")
        finally:
            logger.info("DummyGazeSource has stopped.")
