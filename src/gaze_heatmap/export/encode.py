import io
import logging
from datetime import date, datetime, timezone
from typing import Optional

from PIL import Image, ImageDraw, ImageFont

from ..errors import ExportError
from ..models import SessionRecord

logger = logging.getLogger(__name__)

PNG_MIME = "image/png"
PDF_MIME = "application/pdf"

_HEADER_MARGIN = 20
_LINE_HEIGHT = 20


def export_filename(extension: str, day: Optional[date] = None) -> str:
    """`heatmap-YYYY-MM-DD.<ext>`, dated today (UTC) unless a day is given."""
    day = day or datetime.now(timezone.utc).date()
    return f"heatmap-{day.isoformat()}.{extension}"


def encode_png(image: Image.Image) -> bytes:
    """Lossless encoding of the canvas as it is now."""
    buf = io.BytesIO()
    try:
        image.save(buf, format="PNG")
    except (OSError, ValueError) as e:
        raise ExportError(f"PNG encoding failed: {e}") from e
    return buf.getvalue()


def report_header(record: SessionRecord) -> list[str]:
    captured = datetime.fromtimestamp(record.captured_at / 1000, tz=timezone.utc)
    return [
        "Gaze heatmap",
        f"URL: {record.url}",
        f"Captured: {captured.isoformat(timespec='seconds')}",
        f"Duration: {record.duration_s} s",
        f"Gaze points: {record.sample_count}",
    ]


def _latin1(text: str) -> str:
    # The built-in bitmap font only covers Latin-1.
    return text.encode("latin-1", "replace").decode("latin-1")


def build_pdf_report(image: Image.Image, record: SessionRecord) -> bytes:
    """
    A single-page PDF: a text header with the session details above the
    rendered heatmap at its native resolution.
    """
    lines = report_header(record)
    header_height = 2 * _HEADER_MARGIN + _LINE_HEIGHT * len(lines)

    try:
        page = Image.new("RGB", (image.width, image.height + header_height), (255, 255, 255))
        draw = ImageDraw.Draw(page)
        font = ImageFont.load_default()
        for i, line in enumerate(lines):
            draw.text(
                (_HEADER_MARGIN, _HEADER_MARGIN + i * _LINE_HEIGHT),
                _latin1(line),
                fill=(0, 0, 0),
                font=font,
            )
        page.paste(image.convert("RGB"), (0, header_height))

        buf = io.BytesIO()
        page.save(buf, format="PDF", resolution=72.0)
    except (OSError, ValueError) as e:
        raise ExportError(f"PDF export failed: {e}") from e

    logger.info(f"Built PDF report for {record.url} ({page.width}x{page.height})")
    return buf.getvalue()
