from dataclasses import dataclass
from typing import Optional

from ..models import SessionRecord


@dataclass(slots=True, frozen=True)
class SessionStats:
    total_points: int
    duration_s: int
    frequency_hz: float
    avg_x: float
    avg_document_y: float
    max_scroll: float
    avg_scroll: float


def compute_stats(record: SessionRecord) -> Optional[SessionStats]:
    """
    Summary figures shown next to a heatmap. Returns None for an empty session.
    Positions are averaged in document coordinates.
    """
    samples = record.samples
    if not samples:
        return None

    n = len(samples)
    scrolls = [s.scroll_y for s in samples]
    return SessionStats(
        total_points=n,
        duration_s=record.duration_s,
        frequency_hz=n / record.duration_s if record.duration_s > 0 else 0.0,
        avg_x=sum(s.x for s in samples) / n,
        avg_document_y=sum(s.document_y for s in samples) / n,
        max_scroll=max(scrolls),
        avg_scroll=sum(scrolls) / n,
    )
