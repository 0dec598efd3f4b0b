from .scroll import ScrollPositionSource, ScrollTracker

__all__ = ["ScrollPositionSource", "ScrollTracker"]
