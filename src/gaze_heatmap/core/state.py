from enum import Enum, auto


class AppState(Enum):
    """
    Defines the distinct operational states of a heatmap session.

    Used for centralized state management, so whatever drives the manager
    (CLI, UI) can gate its actions consistently.
    """
    INITIALIZING = auto()  # Waiting for the gaze source (camera, model, socket).
    NOT_READY = auto()  # The gaze source stopped before it became ready.
    IDLE = auto()  # Gaze source ready, no session recorded yet.
    RECORDING = auto()  # A timed collection session is accepting samples.
    COMPLETE = auto()  # The session record is frozen and persisted.
    RENDERING = auto()  # A render pass is in flight; further passes are refused.
    RENDERED = auto()  # A composited canvas is available for export.
    ERROR = auto()  # The last action failed; see `last_error` and retry it.
