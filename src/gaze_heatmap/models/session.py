from dataclasses import dataclass
from typing import Optional

from PIL import Image

from .gaze import GazeSample


@dataclass(frozen=True)
class SessionRecord:
    """
    The frozen artifact handed from collection to rendering.

    Samples are kept in capture order. The record is never mutated after
    a session ends; the renderer only reads it.
    """
    url: str
    samples: tuple[GazeSample, ...]
    duration_s: int
    captured_at: int  # Unix epoch, ms
    page_height: int
    viewport_width: Optional[int] = None
    viewport_height: Optional[int] = None

    def __post_init__(self):
        # Accept any sequence but always store a tuple.
        object.__setattr__(self, "samples", tuple(self.samples))

    @property
    def sample_count(self) -> int:
        return len(self.samples)

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "gazeData": [
                {"x": s.x, "y": s.y, "timestamp": s.timestamp, "scrollY": s.scroll_y}
                for s in self.samples
            ],
            "analysisTime": self.duration_s,
            "timestamp": self.captured_at,
            "pageHeight": self.page_height,
            "viewportWidth": self.viewport_width,
            "viewportHeight": self.viewport_height,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionRecord":
        """Inverse of `to_dict`. Raises KeyError/TypeError/ValueError on malformed input."""
        samples = tuple(
            GazeSample(
                x=float(p["x"]),
                y=float(p["y"]),
                timestamp=int(p["timestamp"]),
                scroll_y=float(p.get("scrollY", 0.0)),
            )
            for p in data["gazeData"]
        )
        return cls(
            url=str(data.get("url", "")),
            samples=samples,
            duration_s=int(data["analysisTime"]),
            captured_at=int(data["timestamp"]),
            page_height=int(data["pageHeight"]),
            viewport_width=data.get("viewportWidth"),
            viewport_height=data.get("viewportHeight"),
        )


@dataclass(frozen=True)
class Screenshot:
    """A decoded background image plus the document height it was captured at."""
    image: Image.Image
    page_height: int

    @property
    def width(self) -> int:
        return self.image.width
