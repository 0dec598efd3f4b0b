from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class GazePoint:
    """A raw viewport coordinate as pushed by a gaze source."""
    x: float
    y: float


@dataclass(slots=True, frozen=True)
class GazeSample:
    """
    A standardized, immutable container for a single gaze observation.

    Coordinates are viewport-relative pixels at capture time. `scroll_y` is
    the latest known vertical scroll offset, so `document_y` places the
    point on the full scrollable page.
    """
    x: float
    y: float
    timestamp: int  # Unix epoch, ms
    scroll_y: float

    @property
    def document_y(self) -> float:
        return self.y + self.scroll_y
