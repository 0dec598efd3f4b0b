from typing import Optional, Protocol, runtime_checkable

from gaze_heatmap.models import Screenshot


@runtime_checkable
class ScreenshotProvider(Protocol):
    """
    Returns a raster of a rendered page and its full document height.
    Retries, browser lifecycle and request headers are the provider's business.
    """
    async def capture(
        self,
        url: str,
        width: Optional[int] = None,
        height: Optional[int] = None,
        scale: Optional[float] = None,
    ) -> Screenshot: ...
