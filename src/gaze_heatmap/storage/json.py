import asyncio
import json
import logging
from pathlib import Path

from gaze_heatmap.errors import RecordNotFoundError
from gaze_heatmap.models import SessionRecord
from .base import RecordStore

logger = logging.getLogger(__name__)


class JSONRecordStore(RecordStore):
    """A single JSON blob on disk, the local-storage equivalent of the web app."""

    def __init__(self, path: Path):
        self.path = path

    def _write_sync(self, record: SessionRecord) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(record.to_dict()), encoding="utf-8")
        tmp.replace(self.path)

    async def save(self, record: SessionRecord) -> None:
        await asyncio.to_thread(self._write_sync, record)
        logger.info(f"Saved session record ({record.sample_count} samples) to {self.path}")

    async def load(self) -> SessionRecord:
        if not self.path.exists():
            raise RecordNotFoundError(f"No session record at {self.path}")
        try:
            content = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
            return SessionRecord.from_dict(json.loads(content))
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise RecordNotFoundError(f"Session record at {self.path} is unreadable: {e}") from e

    async def clear(self) -> None:
        await asyncio.to_thread(self.path.unlink, missing_ok=True)
