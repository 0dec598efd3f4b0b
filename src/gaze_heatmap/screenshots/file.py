import asyncio
import logging
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from gaze_heatmap.errors import InitializationError
from gaze_heatmap.models import Screenshot

logger = logging.getLogger(__name__)


class FileScreenshotProvider:
    """Serves a screenshot that was captured ahead of time and saved to disk."""

    def __init__(self, path: Path, page_height: Optional[int] = None):
        self.path = path
        self._page_height = page_height

    def _load_sync(self) -> Image.Image:
        with Image.open(self.path) as img:
            img.load()
            return img.copy()

    async def capture(self, url, width=None, height=None, scale=None) -> Screenshot:
        try:
            image = await asyncio.to_thread(self._load_sync)
        except (OSError, UnidentifiedImageError, Image.DecompressionBombError) as e:
            raise InitializationError(f"Cannot load screenshot {self.path}: {e}") from e

        logger.info(f"Loaded screenshot for {url} from {self.path} ({image.width}x{image.height})")
        return Screenshot(image=image, page_height=self._page_height or image.height)
