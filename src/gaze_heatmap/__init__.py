from .core import AppState, GazeCollector, HeatmapSessionManager, SessionRunner
from .models import GazePoint, GazeSample, Screenshot, SessionRecord
from .rendering import ColorRamp, HeatmapRenderer

__all__ = [
    "AppState",
    "ColorRamp",
    "GazeCollector",
    "GazePoint",
    "GazeSample",
    "HeatmapRenderer",
    "HeatmapSessionManager",
    "Screenshot",
    "SessionRecord",
    "SessionRunner",
]
