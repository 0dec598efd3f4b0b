from .base import ScreenshotProvider
from .file import FileScreenshotProvider
from .http import HTTPScreenshotProvider

__all__ = ["ScreenshotProvider", "FileScreenshotProvider", "HTTPScreenshotProvider"]
