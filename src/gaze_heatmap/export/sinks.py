import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path

import aiohttp

from ..errors import ExportError

logger = logging.getLogger(__name__)


class ExportSink(ABC):
    """Abstract destination for exported bytes."""

    @abstractmethod
    async def save(self, name: str, data: bytes, mime_type: str) -> str:
        """Stores the bytes and returns where they went. Raises ExportError."""
        raise NotImplementedError


class FileExportSink(ExportSink):
    """Writes exports into a local directory."""

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir

    def _write_sync(self, path: Path, data: bytes) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def save(self, name: str, data: bytes, mime_type: str) -> str:
        path = self.output_dir / Path(name).name
        try:
            await asyncio.to_thread(self._write_sync, path, data)
        except OSError as e:
            logger.exception(f"Failed to write export: {path}")
            raise ExportError(f"Could not write {path}: {e}") from e

        logger.info(f"Exported {len(data):,} bytes ({mime_type}) to {path}")
        return str(path)


class HTTPExportSink(ExportSink):
    """
    POSTs exports to an HTTP endpoint, with the file name in the
    Content-Disposition header. Failed requests are retried with
    exponential backoff.
    """

    def __init__(self, url: str, retry_attempts: int = 3, backoff_factor_s: float = 0.5):
        self._url = url
        self._retry_attempts = retry_attempts
        self._backoff_factor_s = backoff_factor_s

    async def _send_with_retry(
        self, session: aiohttp.ClientSession, name: str, data: bytes, mime_type: str
    ) -> bool:
        for attempt in range(self._retry_attempts):
            try:
                timeout = aiohttp.ClientTimeout(total=30.0)
                async with session.post(
                    self._url,
                    data=data,
                    headers={
                        "Content-Type": mime_type,
                        "Content-Disposition": f'attachment; filename="{name}"',
                    },
                    timeout=timeout,
                ) as response:
                    if 200 <= response.status < 300:
                        logger.debug(f"Export accepted, status: {response.status}")
                        return True
                    response_text = await response.text(errors="replace")
                    logger.warning(
                        f"Server returned non-success status: {response.status} "
                        f"on attempt {attempt + 1}. Response: {response_text}"
                    )

            except aiohttp.ClientError as e:
                logger.warning(f"Network error on attempt {attempt + 1}: {e}")
            except asyncio.TimeoutError:
                logger.warning(f"Request timed out on attempt {attempt + 1}")

            if attempt < self._retry_attempts - 1:
                backoff_time = self._backoff_factor_s * (2**attempt)
                logger.info(f"Retrying in {backoff_time:.2f} seconds...")
                await asyncio.sleep(backoff_time)

        return False

    async def save(self, name: str, data: bytes, mime_type: str) -> str:
        async with aiohttp.ClientSession() as session:
            ok = await self._send_with_retry(session, name, data, mime_type)
        if not ok:
            logger.error(f"Failed to upload {name} after all {self._retry_attempts} retries.")
            raise ExportError(f"Upload of {name} to {self._url} failed.")
        return f"{self._url}#{name}"
