from .gaze import GazePoint, GazeSample
from .session import Screenshot, SessionRecord

__all__ = ["GazePoint", "GazeSample", "Screenshot", "SessionRecord"]
