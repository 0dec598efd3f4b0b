import asyncio
import logging
from typing import Callable, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class ScrollPositionSource(Protocol):
    """Anything that can report the latest known vertical scroll offset."""
    def current(self) -> float: ...


class ScrollTracker:
    """
    Holds the single "latest scroll offset" cell read by the collector.

    Two writers feed the cell: scroll events pushed through `update`, and a
    periodic poll of `probe` that catches positions whose events never
    arrived (cross-origin frames do not always propagate them). Readers get
    last-known-value semantics only; no timestamp correlation is attempted.
    """

    def __init__(
        self,
        probe: Optional[Callable[[], float]] = None,
        poll_interval_s: float = 0.1,
        initial: float = 0.0,
    ):
        if poll_interval_s <= 0:
            raise ValueError("poll_interval_s must be positive.")
        self._probe = probe
        self._poll_interval_s = poll_interval_s
        self._value = float(initial)
        self._poll_task: Optional[asyncio.Task] = None

    def current(self) -> float:
        return self._value

    def update(self, scroll_y: float) -> None:
        """Scroll event listener entry point."""
        if scroll_y != self._value:
            logger.debug(f"Scroll updated: {scroll_y:.0f}")
        self._value = float(scroll_y)

    def poll_once(self) -> None:
        if self._probe is None:
            return
        try:
            self.update(self._probe())
        except Exception:
            logger.exception("Scroll probe failed; keeping last known offset.")

    async def _poll_loop(self) -> None:
        try:
            while True:
                self.poll_once()
                await asyncio.sleep(self._poll_interval_s)
        except asyncio.CancelledError:
            logger.debug("Scroll poll cancelled.")

    def start(self) -> None:
        """Starts the fallback poll. Without a probe there is nothing to poll."""
        if self._probe is None or self._poll_task is not None:
            return
        self._poll_task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        if self._poll_task:
            self._poll_task.cancel()
            await asyncio.gather(self._poll_task, return_exceptions=True)
            self._poll_task = None
