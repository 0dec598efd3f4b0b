import asyncio
import logging
from typing import Optional

from ..acquisition import GazeSource
from ..tracking import ScrollTracker
from .collector import GazeCollector

logger = logging.getLogger(__name__)

class SessionRunner:
    """
    Orchestrates one timed session: Source queue -> Collector.
    Created fresh for every analysis session.
    """
    def __init__(
        self,
        source: GazeSource,
        collector: GazeCollector,
        scroll: ScrollTracker,
        tick_interval_s: float = 1.0,
    ):
        self.source = source
        self.collector = collector
        self.scroll = scroll
        self._tick_interval_s = tick_interval_s
        self._drain_task: Optional[asyncio.Task] = None

    async def run(self, duration_s: int) -> bool:
        """
        Runs a full session. Returns False if the collector refused to start.
        Waits for the gaze source without a timeout.
        """
        if not self.source.is_ready:
            logger.info("Waiting for gaze source to become ready...")
            await self.source.ready.wait()

        # Points queued before the window opens belong to no session.
        self._discard_pending()
        if not self.collector.start(duration_s):
            return False

        self.scroll.start()
        self._drain_task = asyncio.create_task(self._drain_loop())
        try:
            await self._countdown()
        finally:
            self._drain_task.cancel()
            await asyncio.gather(self._drain_task, return_exceptions=True)
            self._drain_task = None
            await self.scroll.stop()

        logger.info(f"Session finished with {self.collector.sample_count} samples.")
        return True

    async def _countdown(self) -> None:
        while True:
            await asyncio.sleep(self._tick_interval_s)
            # Points that arrived before this tick still belong to the window.
            self._drain_nowait()
            if self.collector.tick():
                break

    async def _drain_loop(self) -> None:
        """Hot loop."""
        queue = self.source.output_queue
        try:
            while True:
                point = await queue.get()
                self.collector.on_sample(point.x, point.y)
        except asyncio.CancelledError:
            logger.debug("Drain loop cancelled.")

    def _drain_nowait(self) -> None:
        queue = self.source.output_queue
        while not queue.empty():
            point = queue.get_nowait()
            self.collector.on_sample(point.x, point.y)

    def _discard_pending(self) -> None:
        queue = self.source.output_queue
        dropped = 0
        while not queue.empty():
            queue.get_nowait()
            dropped += 1
        if dropped:
            logger.debug(f"Discarded {dropped} points queued before the session.")
