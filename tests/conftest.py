import asyncio
from typing import Iterable

import numpy as np
import pytest
from PIL import Image

from gaze_heatmap.acquisition import GazeSource
from gaze_heatmap.models import GazePoint, GazeSample, SessionRecord


class FakeClock:
    """Deterministic epoch-ms clock."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class QueueGazeSource(GazeSource):
    """A source whose points are pushed by the test through `push`."""

    def __init__(self, ready: bool = True, maxsize: int = 0):
        super().__init__(asyncio.Queue(maxsize=maxsize), asyncio.Event())
        self._start_ready = ready

    def push(self, x: float, y: float) -> None:
        self._output_queue.put_nowait(GazePoint(x, y))

    async def run(self) -> None:
        if self._start_ready:
            self._ready.set()
        await self._stop_event.wait()


class BrokenGazeSource(GazeSource):
    """Gives up before ever becoming ready, like a denied camera permission."""

    def __init__(self):
        super().__init__(asyncio.Queue(), asyncio.Event())

    async def run(self) -> None:
        return None


def make_record(
    points: Iterable[tuple[float, float, float]],
    url: str = "https://example.com",
    page_height: int = 1000,
    viewport_width=None,
) -> SessionRecord:
    samples = tuple(
        GazeSample(x=x, y=y, timestamp=1_700_000_000_000 + i * 33, scroll_y=scroll)
        for i, (x, y, scroll) in enumerate(points)
    )
    return SessionRecord(
        url=url,
        samples=samples,
        duration_s=30,
        captured_at=1_700_000_030_000,
        page_height=page_height,
        viewport_width=viewport_width,
        viewport_height=None if viewport_width is None else 720,
    )


def noisy_background(width: int, height: int, seed: int = 7) -> Image.Image:
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    pixels[..., 3] = 255
    return Image.fromarray(pixels, "RGBA")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def record() -> SessionRecord:
    return make_record([(100, 100, 0), (100, 100, 0), (500, 500, 0)])
