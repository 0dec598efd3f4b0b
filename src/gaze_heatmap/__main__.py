import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from gaze_heatmap.configs import AppSettings
from gaze_heatmap.core import AppState, HeatmapSessionManager
from gaze_heatmap.errors import InitializationError
from gaze_heatmap.factories import (
    create_export_sink,
    create_gaze_source,
    create_record_store,
    create_screenshot_provider,
)
from gaze_heatmap.tracking import ScrollTracker

logger = logging.getLogger("main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gaze-heatmap",
        description="Record gaze over a web page and render an attention heatmap.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    record = sub.add_parser("record", help="Run one timed gaze collection session.")
    record.add_argument("--url", required=True, help="The page being analyzed.")
    record.add_argument("--duration", type=int, default=None, help="Session length in seconds.")
    record.add_argument(
        "--page-height",
        type=int,
        default=None,
        help="Document height in pixels. Defaults to three viewport heights."
    )
    record.add_argument(
        "--viewport-width",
        type=int,
        default=None,
        help="Width of the browser viewport the gaze was captured in."
    )
    record.add_argument("--viewport-height", type=int, default=None, help="Height of the capture viewport.")
    record.add_argument(
        "--dummy",
        action="store_true",
        help="Use a simulated gaze source instead of the ZMQ gaze broadcast."
    )

    render = sub.add_parser("render", help="Render the last recorded session as a heatmap.")
    render.add_argument(
        "--screenshot",
        type=Path,
        default=None,
        help="Background screenshot on disk. Without it the screenshot service is used."
    )
    render.add_argument("--format", choices=["png", "pdf", "both"], default="png")
    return parser


def capture_viewport(
    settings: AppSettings, args: argparse.Namespace
) -> tuple[Optional[int], Optional[int]]:
    """
    The viewport the gaze was captured in. Command line options win over the
    collector settings; the simulated viewport is only used in dummy mode.
    """
    width = args.viewport_width or settings.collector.viewport_width
    height = args.viewport_height or settings.collector.viewport_height
    if settings.use_dummy_mode:
        width = width or settings.dummy.viewport_width
        height = height or settings.dummy.viewport_height
    return width, height


async def run_record(settings: AppSettings, args: argparse.Namespace) -> int:
    viewport = capture_viewport(settings, args)
    page_height = args.page_height or (viewport[1] * 3 if viewport[1] else None)
    if page_height is None:
        logger.error("--page-height is required when the capture viewport height is unknown.")
        return 1

    scroll = ScrollTracker(poll_interval_s=settings.collector.scroll_poll_interval_s)
    source = create_gaze_source(settings, scroll)
    manager = HeatmapSessionManager(settings, source, create_record_store(settings), scroll=scroll)

    try:
        if not await manager.initialize():
            logger.error(manager.last_error)
            return 1

        ok = await manager.record_session(
            args.url, page_height=page_height, duration_s=args.duration, viewport=viewport
        )
        if not ok:
            logger.error(manager.last_error)
            return 1

        stats = manager.stats
        logger.info(
            f"Recorded {manager.record.sample_count} gaze points"
            + (f" ({stats.frequency_hz:.1f} points/s)" if stats else "")
        )
        return 0
    finally:
        await manager.shutdown()


async def run_render(settings: AppSettings, args: argparse.Namespace) -> int:
    provider = create_screenshot_provider(settings, args.screenshot)
    sink = create_export_sink(settings)
    manager = HeatmapSessionManager(settings, None, create_record_store(settings))

    if not await manager.render(provider):
        logger.error(manager.last_error)
        return 1

    exports: list[Optional[str]] = []
    if args.format in ("png", "both"):
        exports.append(await manager.export_png(sink))
    if args.format in ("pdf", "both"):
        exports.append(await manager.export_pdf(sink))

    if any(location is None for location in exports):
        logger.error(manager.last_error)
        return 1
    for location in exports:
        logger.info(f"Saved {location}")
    return 0 if manager.state == AppState.RENDERED else 1


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # 1. Load Configuration
    try:
        settings = AppSettings()
    except Exception as e:
        print(f"Configuration Error: {e}")
        return 1
    if getattr(args, "dummy", False):
        settings.use_dummy_mode = True

    # 2. Setup Logging
    logging.basicConfig(
        level=settings.logging.level.upper(),
        format=settings.logging.format,
        stream=sys.stdout
    )
    logger.info(f"Starting Gaze Heatmap v{settings.__version__}")

    # 3. Run the requested action
    try:
        if args.command == "record":
            return asyncio.run(run_record(settings, args))
        return asyncio.run(run_render(settings, args))
    except InitializationError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
