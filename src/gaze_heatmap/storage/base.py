from abc import ABC, abstractmethod

from gaze_heatmap.errors import RecordNotFoundError
from gaze_heatmap.models import SessionRecord


class RecordStore(ABC):
    """
    Abstract handoff point between the collector and the renderer.

    A record is written once when a session ends and read once by the
    renderer. Reading does not consume it: the renderer clears the store
    only after a render pass succeeded, so a failed pass can be retried.
    """

    @abstractmethod
    async def save(self, record: SessionRecord) -> None:
        raise NotImplementedError

    @abstractmethod
    async def load(self) -> SessionRecord:
        """Returns the stored record without consuming it. Raises RecordNotFoundError."""
        raise NotImplementedError

    @abstractmethod
    async def clear(self) -> None:
        raise NotImplementedError


__all__ = ["RecordStore", "RecordNotFoundError"]
