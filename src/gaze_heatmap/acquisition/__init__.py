from .base import GazeSource
from .dummy import DummyGazeSource
from .zmq import ZMQGazeSource

__all__ = ["GazeSource", "DummyGazeSource", "ZMQGazeSource"]
