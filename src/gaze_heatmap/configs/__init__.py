from .app import (
    AppSettings,
    CollectorSettings,
    DummySourceConfig,
    ExportSettings,
    RendererSettings,
    ScreenshotSettings,
    StorageSettings,
    ZmqSourceConfig,
)
from .utils import LoggingConfig

__all__ = [
    "AppSettings",
    "CollectorSettings",
    "DummySourceConfig",
    "ExportSettings",
    "LoggingConfig",
    "RendererSettings",
    "ScreenshotSettings",
    "StorageSettings",
    "ZmqSourceConfig",
]
