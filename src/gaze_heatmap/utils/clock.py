import time


def now_ms() -> int:
    """Wall-clock Unix epoch in milliseconds."""
    return time.time_ns() // 1_000_000
