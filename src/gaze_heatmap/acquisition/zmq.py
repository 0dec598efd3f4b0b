import asyncio
import logging
import math
import struct
from typing import Final, Optional

import zmq
import zmq.asyncio

from gaze_heatmap.models.gaze import GazePoint
from gaze_heatmap.utils.logging import ThrottledLogger
from .base import GazeSource

logger = logging.getLogger(__name__)


class ZMQGazeSource(GazeSource):
    """
    Subscribes to a ZMQ PUB/SUB gaze broadcast.

    Gaze Wire Format (17 bytes + 4 byte topic):
    - Topic: 'gaze' (4 bytes)
    - Epoch TS: int64 (8 bytes)
    - X Px: int32 (4 bytes)
    - Y Px: int32 (4 bytes)
    - Validity: bool  (1 byte)

    Scroll Wire Format (16 bytes + 6 byte topic), published by the page
    whenever its vertical scroll offset changes:
    - Topic: 'scroll' (6 bytes)
    - Epoch TS: int64 (8 bytes)
    - Scroll Y Px: float64 (8 bytes)
    """

    # ! = Network (Big Endian), q = int64, i = int32, ? = bool, d = float64
    _UNPACKER: Final[struct.Struct] = struct.Struct("!qii?")
    _SCROLL_UNPACKER: Final[struct.Struct] = struct.Struct("!qd")
    _TOPIC: Final[bytes] = b"gaze"
    _SCROLL_TOPIC: Final[bytes] = b"scroll"
    _POLL_MS: Final[int] = 100

    def __init__(self, *args, endpoint: str = "tcp://localhost:5555", **kwargs):
        super().__init__(*args, **kwargs)
        self.endpoint = endpoint
        self._ctx: Optional[zmq.asyncio.Context] = None
        self._sock: Optional[zmq.asyncio.Socket] = None
        self._invalid_logger = ThrottledLogger(logger, interval_sec=5)

    @classmethod
    def decode(cls, frame: bytes) -> Optional[GazePoint]:
        """Returns the point carried by a frame, or None for invalid or malformed frames."""
        if not frame.startswith(cls._TOPIC):
            return None
        payload = frame[len(cls._TOPIC):]
        if len(payload) != cls._UNPACKER.size:
            return None
        _, x, y, is_valid = cls._UNPACKER.unpack(payload)
        if not is_valid:
            return None
        return GazePoint(float(x), float(y))

    @classmethod
    def decode_scroll(cls, frame: bytes) -> Optional[float]:
        """Returns the scroll offset carried by a frame, or None for malformed frames."""
        if not frame.startswith(cls._SCROLL_TOPIC):
            return None
        payload = frame[len(cls._SCROLL_TOPIC):]
        if len(payload) != cls._SCROLL_UNPACKER.size:
            return None
        _, scroll_y = cls._SCROLL_UNPACKER.unpack(payload)
        if not math.isfinite(scroll_y):
            return None
        return scroll_y

    def _handle_frame(self, frame: bytes) -> None:
        if frame.startswith(self._SCROLL_TOPIC):
            scroll_y = self.decode_scroll(frame)
            if scroll_y is None:
                self._invalid_logger.warning("Skipping invalid scroll frame.")
            else:
                self._emit_scroll(scroll_y)
            return

        point = self.decode(frame)
        if point is None:
            self._invalid_logger.warning("Skipping invalid gaze frame.")
            return

        try:
            self._output_queue.put_nowait(point)
        except asyncio.QueueFull:
            self._invalid_logger.warning("Gaze queue full, dropping point.")

    async def run(self) -> None:
        self._ctx = zmq.asyncio.Context()
        self._sock = self._ctx.socket(zmq.SUB)
        try:
            self._sock.connect(self.endpoint)
            self._sock.setsockopt(zmq.SUBSCRIBE, self._TOPIC)
            if self._scroll_listener is not None:
                self._sock.setsockopt(zmq.SUBSCRIBE, self._SCROLL_TOPIC)
            logger.info(f"ZMQGazeSource subscribed to {self.endpoint}")
            self._ready.set()

            while not self._stop_event.is_set():
                if not await self._sock.poll(timeout=self._POLL_MS):
                    continue
                self._handle_frame(await self._sock.recv())

        except asyncio.CancelledError:
            logger.info("ZMQ source run task was cancelled.")
        except zmq.ZMQError:
            logger.exception(f"ZMQ subscription to {self.endpoint} failed.")
        finally:
            logger.info("Closing ZMQGazeSource...")
            self._sock.close(linger=0)
            self._ctx.term()
