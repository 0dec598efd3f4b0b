import time
import logging

class ThrottledLogger:
    """Collapses bursts of identical warnings into one line per interval."""

    def __init__(self, logger: logging.Logger, interval_sec: float = 5.0) -> None:
        self._logger = logger
        self._interval = interval_sec
        self._last_log_time = 0.0
        self._counter = 0

    @property
    def pending(self) -> int:
        """Number of warnings swallowed since the last emitted line."""
        return self._counter

    def warning(self, message: str, *args, **kwargs):
        self._counter += 1
        now = time.monotonic()
        
        if now - self._last_log_time >= self._interval:
            self._logger.warning("[%d] " + message, self._counter, *args, **kwargs)
            self._last_log_time = now
            self._counter = 0
