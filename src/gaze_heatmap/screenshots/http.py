import asyncio
import io
import logging
import math
from typing import Optional

import aiohttp
from PIL import Image, UnidentifiedImageError

from gaze_heatmap.errors import InitializationError
from gaze_heatmap.models import Screenshot

logger = logging.getLogger(__name__)


class HTTPScreenshotProvider:
    """
    Fetches a page screenshot from a remote headless-browser service.

    The service is called as `GET <service_url>?url=..&width=..&height=..&scale=..`
    and answers with the image bytes. The full document height is read from
    the `X-Page-Height` response header, falling back to the image height.
    Transient failures are retried with exponential backoff.
    """

    PAGE_HEIGHT_HEADER = "X-Page-Height"

    def __init__(
        self,
        service_url: str,
        viewport_width: int = 1280,
        viewport_height: int = 800,
        device_scale: float = 1.0,
        timeout_s: float = 60.0,
        retry_attempts: int = 3,
        backoff_factor_s: float = 0.5,
    ):
        self._service_url = service_url
        self._viewport = (viewport_width, viewport_height)
        self._device_scale = device_scale
        self._timeout = aiohttp.ClientTimeout(total=timeout_s)
        self._retry_attempts = retry_attempts
        self._backoff_factor_s = backoff_factor_s

    async def _fetch_with_retry(
        self, session: aiohttp.ClientSession, params: dict
    ) -> tuple[bytes, Optional[str]]:
        last_error = "no attempt made"
        for attempt in range(self._retry_attempts):
            try:
                async with session.get(self._service_url, params=params, timeout=self._timeout) as response:
                    if 200 <= response.status < 300:
                        body = await response.read()
                        return body, response.headers.get(self.PAGE_HEIGHT_HEADER)

                    response_text = await response.text(errors="replace")
                    last_error = f"status {response.status}: {response_text[:200]}"
                    logger.warning(
                        f"Screenshot service returned {response.status} "
                        f"on attempt {attempt + 1}."
                    )

            except aiohttp.ClientError as e:
                last_error = str(e)
                logger.warning(f"Network error on attempt {attempt + 1}: {e}")
            except asyncio.TimeoutError:
                last_error = "timeout"
                logger.warning(f"Screenshot request timed out on attempt {attempt + 1}")

            if attempt < self._retry_attempts - 1:
                backoff_time = self._backoff_factor_s * (2**attempt)
                logger.info(f"Retrying in {backoff_time:.2f} seconds...")
                await asyncio.sleep(backoff_time)

        raise InitializationError(
            f"Screenshot service failed after {self._retry_attempts} attempts ({last_error})."
        )

    @staticmethod
    def _decode(body: bytes) -> Image.Image:
        with Image.open(io.BytesIO(body)) as img:
            img.load()
            return img.copy()

    async def capture(self, url, width=None, height=None, scale=None) -> Screenshot:
        params = {
            "url": url,
            "width": str(width or self._viewport[0]),
            "height": str(height or self._viewport[1]),
            "scale": str(scale or self._device_scale),
        }
        logger.info(f"Requesting screenshot of {url} from {self._service_url}")

        async with aiohttp.ClientSession() as session:
            body, height_header = await self._fetch_with_retry(session, params)

        try:
            image = await asyncio.to_thread(self._decode, body)
        except (OSError, UnidentifiedImageError, Image.DecompressionBombError) as e:
            raise InitializationError(f"Screenshot service returned an undecodable image: {e}") from e

        return Screenshot(image=image, page_height=self._page_height_from(height_header, image.height))

    def _page_height_from(self, header: Optional[str], fallback: int) -> int:
        """Parses the page height header. Missing or unusable values fall back to the image height."""
        if not header:
            return fallback
        try:
            value = float(header)
        except ValueError:
            value = math.nan
        if not math.isfinite(value) or value < 1:
            logger.warning(f"Ignoring malformed {self.PAGE_HEIGHT_HEADER}: {header!r}")
            return fallback
        return int(value)
