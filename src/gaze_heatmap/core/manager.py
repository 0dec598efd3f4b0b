import asyncio
import logging
from typing import Optional

from PIL import Image

from .collector import GazeCollector
from .runner import SessionRunner
from .state import AppState
from ..acquisition import GazeSource
from ..analysis import SessionStats, compute_stats
from ..configs import AppSettings
from ..errors import ExportError, GazeHeatmapError, InitializationError, RenderError
from ..export import PDF_MIME, PNG_MIME, ExportSink, build_pdf_report, encode_png, export_filename
from ..models import Screenshot, SessionRecord
from ..rendering import HeatmapRenderer, round_half_up
from ..screenshots import ScreenshotProvider
from ..storage import RecordStore
from ..tracking import ScrollTracker

logger = logging.getLogger(__name__)


class HeatmapSessionManager:
    """
    The headless core of the application.

    Owns the gaze source, the record handoff and the rendered canvas, so a
    UI or CLI only has to call actions and read state. Actions never raise
    for expected failures: they log, store a user-facing `last_error`, move
    to a state the caller can retry from, and return False/None.
    """
    def __init__(
        self,
        settings: AppSettings,
        source: Optional[GazeSource],
        store: RecordStore,
        scroll: Optional[ScrollTracker] = None,
        renderer: Optional[HeatmapRenderer] = None,
        tick_interval_s: float = 1.0,
    ):
        self.settings: AppSettings = settings
        self.source: Optional[GazeSource] = source
        self.store: RecordStore = store
        self.scroll: ScrollTracker = scroll or ScrollTracker(
            poll_interval_s=settings.collector.scroll_poll_interval_s
        )
        self.renderer: HeatmapRenderer = renderer or HeatmapRenderer.from_settings(settings.renderer)

        self.state: AppState = AppState.INITIALIZING
        self.last_error: Optional[str] = None
        self.record: Optional[SessionRecord] = None
        self.canvas: Optional[Image.Image] = None
        self.collector: Optional[GazeCollector] = None
        self._tick_interval_s = tick_interval_s

        self._source_task: Optional[asyncio.Task] = None
        self._render_lock = asyncio.Lock()

    def _set_state(self, new_state: AppState) -> None:
        if new_state != self.state:
            logger.info(f"State changing to {new_state.name}")
        self.state = new_state

    def _fail(self, message: str, state: AppState = AppState.ERROR) -> None:
        self.last_error = message
        self._set_state(state)

    @property
    def is_ready(self) -> bool:
        return self.source is not None and self.source.is_ready

    @property
    def is_rendering(self) -> bool:
        return self._render_lock.locked()

    @property
    def stats(self) -> Optional[SessionStats]:
        return compute_stats(self.record) if self.record else None

    # --- Actions ---

    async def initialize(self) -> bool:
        """
        Starts the gaze source and waits, without a timeout, until it is
        ready or its task ends. A source that ends first leaves the manager
        in NOT_READY.
        """
        if self.source is None:
            self._fail("No gaze source configured.", AppState.NOT_READY)
            return False

        if self._source_task is None:
            self._set_state(AppState.INITIALIZING)
            self._source_task = asyncio.create_task(self.source.run())

        ready_waiter = asyncio.create_task(self.source.ready.wait())
        await asyncio.wait({ready_waiter, self._source_task}, return_when=asyncio.FIRST_COMPLETED)

        if self.source.is_ready:
            self.last_error = None
            self._set_state(AppState.IDLE)
            return True

        ready_waiter.cancel()
        if self._source_task.done() and not self._source_task.cancelled() and self._source_task.exception():
            logger.error("Gaze source crashed during startup", exc_info=self._source_task.exception())
        self._source_task = None
        self._fail("Gaze tracker could not be initialized. Reload and try again.", AppState.NOT_READY)
        return False

    async def record_session(
        self,
        url: str,
        page_height: int,
        duration_s: Optional[int] = None,
        viewport: Optional[tuple[int, int]] = None,
    ) -> bool:
        """
        Runs one timed collection session, freezes its record and persists it.
        Returns False if the source is not ready or a session is running.
        """
        if self.state in (AppState.RECORDING, AppState.RENDERING):
            logger.warning(f"Record aborted: manager is {self.state.name}.")
            return False
        if not self.is_ready:
            self._fail("Gaze tracker is not ready.", AppState.NOT_READY)
            return False

        duration_s = duration_s or self.settings.collector.duration_s
        self.collector = GazeCollector(self.scroll, is_ready=lambda: self.source.is_ready)
        runner = SessionRunner(
            self.source, self.collector, self.scroll, tick_interval_s=self._tick_interval_s
        )

        self._set_state(AppState.RECORDING)
        if not await runner.run(duration_s):
            self._fail("Session could not be started.", AppState.IDLE)
            return False

        viewport_width, viewport_height = viewport or (None, None)
        record = self.collector.freeze(
            url=url,
            page_height=page_height,
            viewport_width=viewport_width,
            viewport_height=viewport_height,
        )

        try:
            await self.store.save(record)
        except OSError:
            logger.exception("Failed to persist session record")
            self.record = record
            self._fail("Session recorded but could not be saved.")
            return False

        self.record = record
        self.canvas = None
        self.last_error = None
        self._set_state(AppState.COMPLETE)
        return True

    async def _load_record(self) -> SessionRecord:
        if self.record is None:
            self.record = await self.store.load()
        return self.record

    async def _release_record(self) -> None:
        """Clears the handoff store once its record has been rendered."""
        try:
            await self.store.clear()
        except OSError as e:
            logger.warning(f"Rendered record could not be cleared from the store: {e}")

    def canvas_geometry(self, record: SessionRecord, screenshot: Screenshot) -> tuple[int, int, float]:
        """
        Canvas (width, height, scale). Width follows the screenshot; the
        capture viewport width maps onto it. Height covers both the
        screenshot's document and the recorded document, scaled.
        """
        width = screenshot.width
        scale = width / record.viewport_width if record.viewport_width else 1.0
        height = max(screenshot.page_height, round_half_up(record.page_height * scale))
        return width, height, scale

    async def _render_pass(self, provider: ScreenshotProvider) -> Image.Image:
        record = await self._load_record()
        screenshot = await provider.capture(
            record.url,
            width=self.settings.screenshot.viewport_width,
            height=self.settings.screenshot.viewport_height,
            scale=self.settings.screenshot.device_scale,
        )
        width, height, scale = self.canvas_geometry(record, screenshot)
        try:
            return await asyncio.to_thread(
                self.renderer.render, record.samples, screenshot.image, width, height, scale
            )
        except (ValueError, MemoryError) as e:
            raise RenderError(f"Heatmap rendering failed: {e}") from e

    async def render(self, provider: ScreenshotProvider) -> bool:
        """
        One render pass over the current record. Passes are serialized: a
        call made while another pass is in flight is refused. On failure the
        previously rendered canvas and the stored record are kept, so the
        pass can be retried.
        """
        if self._render_lock.locked():
            logger.warning("Render already in progress.")
            return False

        async with self._render_lock:
            previous_state = self.state
            self._set_state(AppState.RENDERING)
            try:
                canvas = await self._render_pass(provider)
            except InitializationError as e:
                logger.error(f"Render aborted: {e}")
                self._fail(str(e))
                return False
            except GazeHeatmapError as e:
                logger.exception("Render failed")
                self._fail(str(e))
                if self.canvas is not None:
                    self.state = previous_state
                return False
            except Exception as e:
                logger.exception("Unexpected error during render")
                self._fail(f"Rendering failed: {e}")
                return False
            else:
                self.canvas = canvas
                self.last_error = None
                self._set_state(AppState.RENDERED)
            finally:
                # Cancelled mid-pass.
                if self.state == AppState.RENDERING:
                    self.state = previous_state

            await self._release_record()
            return True

    async def _export(self, sink: ExportSink, extension: str, mime_type: str, encoder) -> Optional[str]:
        if self.canvas is None or self.record is None:
            logger.warning("Nothing to export: render a heatmap first.")
            return None
        try:
            data = await asyncio.to_thread(encoder)
            location = await sink.save(export_filename(extension), data, mime_type)
        except ExportError as e:
            logger.error(f"Export failed: {e}")
            self.last_error = str(e)
            return None
        self.last_error = None
        return location

    async def export_png(self, sink: ExportSink) -> Optional[str]:
        canvas = self.canvas
        return await self._export(sink, "png", PNG_MIME, lambda: encode_png(canvas))

    async def export_pdf(self, sink: ExportSink) -> Optional[str]:
        canvas, record = self.canvas, self.record
        return await self._export(sink, "pdf", PDF_MIME, lambda: build_pdf_report(canvas, record))

    async def shutdown(self) -> None:
        """
        Graceful cleanup of the gaze source before application exit.
        """
        await self.scroll.stop()
        if self._source_task:
            await self.source.stop()
            await asyncio.gather(self._source_task, return_exceptions=True)
            self._source_task = None
        logger.info("Manager shut down.")
