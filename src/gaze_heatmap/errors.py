class GazeHeatmapError(Exception):
    """Base class for all recoverable errors raised by this package."""


class InitializationError(GazeHeatmapError):
    """The gaze source never became ready, or the screenshot provider failed."""


class RenderError(GazeHeatmapError):
    """A render pass failed. The previously rendered canvas is left intact."""


class ExportError(GazeHeatmapError):
    """Encoding or saving an export failed."""


class RecordNotFoundError(GazeHeatmapError):
    """No session record is available for the renderer."""
