from asyncio import Event, Queue
from pathlib import Path
from typing import Optional

from .acquisition import DummyGazeSource, GazeSource, ZMQGazeSource
from .configs import AppSettings
from .errors import InitializationError
from .export import ExportSink, FileExportSink, HTTPExportSink
from .models import GazePoint
from .screenshots import FileScreenshotProvider, HTTPScreenshotProvider, ScreenshotProvider
from .storage import JSONRecordStore, ParquetRecordStore, RecordStore
from .tracking import ScrollTracker


def create_gaze_source(settings: AppSettings, scroll: Optional[ScrollTracker] = None) -> GazeSource:
    """
    Creates a fresh gaze source with its own queue and stop event.
    Scroll offsets the source observes are written into `scroll`.
    """
    scroll_listener = scroll.update if scroll is not None else None
    queue: Queue[GazePoint] = Queue(maxsize=settings.collector.queue_size)
    stop_event = Event()

    if settings.use_dummy_mode:
        cfg = settings.dummy
        return DummyGazeSource(
            queue,
            stop_event,
            frequency=cfg.frequency,
            viewport=(cfg.viewport_width, cfg.viewport_height),
            radius=cfg.radius_px,
            speed=cfg.speed,
            scroll_speed=cfg.scroll_speed_px_s,
            max_scroll=cfg.max_scroll_px,
            scroll_listener=scroll_listener,
        )

    if settings.zmq.enabled:
        return ZMQGazeSource(
            queue, stop_event, endpoint=settings.zmq.endpoint, scroll_listener=scroll_listener
        )

    raise InitializationError("No gaze source configured. Enable dummy mode or the ZMQ source.")


def create_record_store(settings: AppSettings) -> RecordStore:
    if settings.storage.backend == "parquet":
        return ParquetRecordStore(Path(settings.storage.path))
    return JSONRecordStore(Path(settings.storage.path))


def create_screenshot_provider(
    settings: AppSettings,
    screenshot_path: Optional[Path] = None,
) -> ScreenshotProvider:
    if screenshot_path is not None:
        return FileScreenshotProvider(screenshot_path)

    cfg = settings.screenshot
    if not cfg.service_url:
        raise InitializationError("No screenshot file given and no screenshot service configured.")
    return HTTPScreenshotProvider(
        cfg.service_url,
        viewport_width=cfg.viewport_width,
        viewport_height=cfg.viewport_height,
        device_scale=cfg.device_scale,
        timeout_s=cfg.timeout_s,
        retry_attempts=cfg.retry_attempts,
        backoff_factor_s=cfg.retry_backoff_factor_s,
    )


def create_export_sink(settings: AppSettings) -> ExportSink:
    cfg = settings.export
    if cfg.http_url:
        return HTTPExportSink(
            cfg.http_url,
            retry_attempts=cfg.retry_attempts,
            backoff_factor_s=cfg.retry_backoff_factor_s,
        )
    return FileExportSink(Path(cfg.output_dir))
