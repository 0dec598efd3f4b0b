from abc import ABC, abstractmethod
from asyncio import Queue, Event
from typing import Callable, Optional, final

from gaze_heatmap.models.gaze import GazePoint

ScrollListener = Callable[[float], None]


class GazeSource(ABC):
    """
    Abstract Base Class for all gaze data sources.

    A GazeSource is a runnable component that pushes viewport `GazePoint`
    objects into an output queue at irregular intervals. It exposes a
    readiness signal that is set once the underlying tracker (camera,
    model, socket) is able to deliver points.

    Sources that also observe the page's scroll position forward each
    offset to the optional `scroll_listener`, usually `ScrollTracker.update`.
    """

    def __init__(
        self,
        output_queue: Queue[GazePoint],
        stop_event: Event,
        scroll_listener: Optional[ScrollListener] = None,
    ):
        self._output_queue = output_queue
        self._stop_event = stop_event
        self._scroll_listener = scroll_listener
        self._ready = Event()

    @property
    def output_queue(self) -> Queue[GazePoint]:
        return self._output_queue

    @property
    def ready(self) -> Event:
        """Set once the source is able to deliver points."""
        return self._ready

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    def _emit_scroll(self, scroll_y: float) -> None:
        if self._scroll_listener is not None:
            self._scroll_listener(scroll_y)

    @abstractmethod
    async def run(self) -> None:
        """
        Starts the data acquisition process.

        This method should set `ready` once initialization succeeds, then
        run continuously, placing points into the output queue until the
        `stop_event` is set. It must be implemented by all concrete
        subclasses.
        """
        raise NotImplementedError

    @final
    async def stop(self) -> None:
        """
        Signals the source to stop acquiring data.

        This is a final method and should not be overridden. Subclasses can
        perform cleanup in their 'run' method's finally block.
        """
        self._stop_event.set()
