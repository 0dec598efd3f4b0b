import asyncio
import json
import logging
from pathlib import Path
from typing import Final

import pyarrow as pa
import pyarrow.parquet as pq

from gaze_heatmap.errors import RecordNotFoundError
from gaze_heatmap.models import GazeSample, SessionRecord
from .base import RecordStore

logger = logging.getLogger(__name__)


class ParquetRecordStore(RecordStore):
    """
    Columnar session storage. One row per sample; session metadata is kept
    in the file's key-value metadata under `_META_KEY`.
    """
    _SCHEMA: Final[pa.Schema] = pa.schema([
        # Unix Epoch
        ("timestamp", pa.timestamp('ms')),

        # Viewport coordinates
        ("x", pa.float64()),
        ("y", pa.float64()),
        ("scroll_y", pa.float64()),
    ])
    _META_KEY: Final[bytes] = b"gaze_heatmap.session"

    def __init__(self, path: Path):
        self.path = path

    def _write_sync(self, record: SessionRecord) -> int:
        size = record.sample_count

        # Pre-allocate flat columns
        ts, xs, ys, scrolls = [None] * size, [None] * size, [None] * size, [None] * size
        for i, s in enumerate(record.samples):
            ts[i] = s.timestamp
            xs[i], ys[i] = s.x, s.y
            scrolls[i] = s.scroll_y

        meta = {
            "url": record.url,
            "duration_s": record.duration_s,
            "captured_at": record.captured_at,
            "page_height": record.page_height,
            "viewport_width": record.viewport_width,
            "viewport_height": record.viewport_height,
        }
        schema = self._SCHEMA.with_metadata({self._META_KEY: json.dumps(meta).encode()})
        table = pa.Table.from_arrays(
            [
                pa.array(ts, type=pa.timestamp('ms')),
                pa.array(xs, type=pa.float64()),
                pa.array(ys, type=pa.float64()),
                pa.array(scrolls, type=pa.float64()),
            ],
            schema=schema,
        )

        self.path.parent.mkdir(parents=True, exist_ok=True)
        pq.write_table(table, self.path, compression="zstd")
        return size

    def _read_sync(self) -> SessionRecord:
        table = pq.read_table(self.path)
        raw_meta = (table.schema.metadata or {}).get(self._META_KEY)
        if raw_meta is None:
            raise RecordNotFoundError(f"{self.path} carries no session metadata.")
        meta = json.loads(raw_meta)

        ts = table.column("timestamp").cast(pa.int64()).to_pylist()
        xs = table.column("x").to_pylist()
        ys = table.column("y").to_pylist()
        scrolls = table.column("scroll_y").to_pylist()
        samples = tuple(
            GazeSample(x=x, y=y, timestamp=t, scroll_y=s)
            for t, x, y, s in zip(ts, xs, ys, scrolls)
        )
        return SessionRecord(
            url=meta["url"],
            samples=samples,
            duration_s=meta["duration_s"],
            captured_at=meta["captured_at"],
            page_height=meta["page_height"],
            viewport_width=meta.get("viewport_width"),
            viewport_height=meta.get("viewport_height"),
        )

    async def save(self, record: SessionRecord) -> None:
        rows = await asyncio.to_thread(self._write_sync, record)
        logger.info(f"Parquet record written to {self.path}. Rows: {rows:,}")

    async def load(self) -> SessionRecord:
        if not self.path.exists():
            raise RecordNotFoundError(f"No session record at {self.path}")
        try:
            return await asyncio.to_thread(self._read_sync)
        except (OSError, pa.ArrowException, KeyError, ValueError) as e:
            raise RecordNotFoundError(f"Session record at {self.path} is unreadable: {e}") from e

    async def clear(self) -> None:
        await asyncio.to_thread(self.path.unlink, missing_ok=True)
