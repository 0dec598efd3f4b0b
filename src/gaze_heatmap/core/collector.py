import logging
from typing import Callable, Optional

from ..models import GazeSample, SessionRecord
from ..tracking import ScrollPositionSource
from ..utils.clock import now_ms
from ..utils.logging import ThrottledLogger

logger = logging.getLogger(__name__)


class GazeCollector:
    """
    Bridges a continuous gaze stream into a bounded, timed session.

    The collector is a plain synchronous state machine: `start` opens the
    sample window, `on_sample` appends, and `tick` is the one-second
    countdown step. The session runner drives `tick` from a timer task;
    tests can drive it directly.
    """

    def __init__(
        self,
        scroll: ScrollPositionSource,
        is_ready: Callable[[], bool],
        clock: Callable[[], int] = now_ms,
    ):
        self._scroll = scroll
        self._is_ready = is_ready
        self._clock = clock

        self._samples: list[GazeSample] = []
        self._active = False
        self._complete = False
        self._duration_s = 0
        self._remaining_s = 0
        self._drop_logger = ThrottledLogger(logger, interval_sec=5)

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_complete(self) -> bool:
        return self._complete

    @property
    def time_remaining(self) -> int:
        return self._remaining_s

    @property
    def duration_s(self) -> int:
        return self._duration_s

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    @property
    def samples(self) -> tuple[GazeSample, ...]:
        return tuple(self._samples)

    def start(self, duration_s: int) -> bool:
        """
        Clears previous samples and opens a new session window.
        Returns False without changing anything if the gaze source is not ready.
        """
        if duration_s <= 0:
            raise ValueError("duration_s must be positive.")
        if not self._is_ready():
            logger.warning("Start aborted: gaze source is not ready.")
            return False
        if self._active:
            logger.warning("Session already in progress.")
            return False

        self._samples = []
        self._duration_s = duration_s
        self._remaining_s = duration_s
        self._complete = False
        self._active = True
        logger.info(f"Collection started for {duration_s}s.")
        return True

    def on_sample(self, x: float, y: float) -> bool:
        """Appends a sample if a session is active. Returns whether it was kept."""
        if not self._active:
            self._drop_logger.warning("Gaze sample outside an active session dropped.")
            return False

        self._samples.append(
            GazeSample(x=x, y=y, timestamp=self._clock(), scroll_y=self._scroll.current())
        )
        return True

    def tick(self) -> bool:
        """
        One countdown step. Returns True on the tick that completes the session.
        Reaching zero closes the sample window and marks completion together.
        """
        if not self._active:
            return False

        self._remaining_s -= 1
        logger.debug(f"Time remaining: {self._remaining_s}")
        if self._remaining_s <= 0:
            self._remaining_s = 0
            self._active = False
            self._complete = True
            logger.info(f"Collection complete with {len(self._samples)} samples.")
            return True
        return False

    def freeze(
        self,
        url: str,
        page_height: int,
        viewport_width: Optional[int] = None,
        viewport_height: Optional[int] = None,
    ) -> SessionRecord:
        """Builds the immutable record of a completed session."""
        if not self._complete:
            raise RuntimeError("Cannot freeze a session that has not completed.")

        return SessionRecord(
            url=url,
            samples=tuple(self._samples),
            duration_s=self._duration_s,
            captured_at=self._clock(),
            page_height=page_height,
            viewport_width=viewport_width,
            viewport_height=viewport_height,
        )
