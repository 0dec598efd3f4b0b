from .collector import GazeCollector
from .manager import HeatmapSessionManager
from .runner import SessionRunner
from .state import AppState

__all__ = ["AppState", "GazeCollector", "HeatmapSessionManager", "SessionRunner"]
