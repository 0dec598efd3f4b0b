import logging
import math
from typing import Iterable, Literal, Optional

import numpy as np
from PIL import Image

from ..configs import RendererSettings
from ..errors import RenderError
from ..models import GazeSample
from .ramp import FIXED_ONE, ColorRamp

logger = logging.getLogger(__name__)

BlendMode = Literal["multiply", "normal"]


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class HeatmapRenderer:
    """
    Turns gaze samples plus a background screenshot into one composited image.

    Every sample splats a disc of radius R whose alpha falls off linearly
    from `intensity` at the center to zero at the rim. Heat from all samples
    is summed (clamped at 1.0), mapped once per pixel through a discrete
    color ramp, and composited over the background. Each call builds its
    buffers from scratch; nothing is cached between passes.
    """

    def __init__(
        self,
        radius_px: int = 40,
        intensity: float = 0.4,
        ramp: Optional[ColorRamp] = None,
        blend_mode: BlendMode = "multiply",
        opacity: float = 0.7,
    ):
        if radius_px <= 0:
            raise ValueError("radius_px must be positive.")
        if not 0 < intensity <= 1:
            raise ValueError("intensity must be within (0, 1].")
        if not 0 <= opacity <= 1:
            raise ValueError("opacity must be within [0, 1].")
        if blend_mode not in ("multiply", "normal"):
            raise ValueError(f"Unsupported blend mode: {blend_mode}")

        self.radius_px = radius_px
        self.intensity = intensity
        self.ramp = ramp or ColorRamp(RendererSettings().color_stops)
        self.blend_mode = blend_mode
        self.opacity = opacity
        self._kernel = self._build_kernel(radius_px, intensity)

    @classmethod
    def from_settings(cls, settings: RendererSettings) -> "HeatmapRenderer":
        return cls(
            radius_px=settings.radius_px,
            intensity=settings.intensity,
            ramp=ColorRamp(settings.color_stops),
            blend_mode=settings.blend_mode,
            opacity=settings.opacity,
        )

    @staticmethod
    def _build_kernel(radius: int, intensity: float) -> np.ndarray:
        """Fixed-point disc of side 2R+1; zero outside dx^2 + dy^2 <= R^2."""
        offsets = np.arange(-radius, radius + 1, dtype=np.float64)
        dx, dy = np.meshgrid(offsets, offsets)
        distance = np.sqrt(dx * dx + dy * dy)
        falloff = intensity * (1.0 - distance / radius)
        falloff[distance > radius] = 0.0
        return np.rint(falloff * FIXED_ONE).astype(np.int64)

    def project(self, sample: GazeSample, scale_x: float, scale_y: float) -> tuple[int, int]:
        """Viewport sample -> integer canvas pixel in document coordinates."""
        return (
            round_half_up(sample.x * scale_x),
            round_half_up(sample.document_y * scale_y),
        )

    def accumulate(
        self,
        samples: Iterable[GazeSample],
        width: int,
        height: int,
        scale_x: float = 1.0,
        scale_y: Optional[float] = None,
    ) -> np.ndarray:
        """
        Returns the fixed-point heat field (H, W), clamped at FIXED_ONE.
        Disc pixels that land outside the canvas are skipped.
        """
        if width <= 0 or height <= 0:
            raise ValueError(f"Canvas must have a positive size, got {width}x{height}.")
        if scale_y is None:
            scale_y = scale_x

        heat = np.zeros((height, width), dtype=np.int64)
        r = self.radius_px
        kernel = self._kernel

        for sample in samples:
            if not (math.isfinite(sample.x) and math.isfinite(sample.document_y)):
                continue
            px, py = self.project(sample, scale_x, scale_y)

            x0, x1 = max(px - r, 0), min(px + r + 1, width)
            y0, y1 = max(py - r, 0), min(py + r + 1, height)
            if x0 >= x1 or y0 >= y1:
                continue

            kx, ky = x0 - (px - r), y0 - (py - r)
            heat[y0:y1, x0:x1] += kernel[ky:ky + (y1 - y0), kx:kx + (x1 - x0)]

        np.minimum(heat, FIXED_ONE, out=heat)
        return heat

    def heat_layer(
        self,
        samples: Iterable[GazeSample],
        width: int,
        height: int,
        scale_x: float = 1.0,
        scale_y: Optional[float] = None,
    ) -> np.ndarray:
        """The colorized RGBA heat buffer, before compositing."""
        return self.ramp.colorize(self.accumulate(samples, width, height, scale_x, scale_y))

    def composite(self, background: Image.Image, heat_rgba: np.ndarray) -> Image.Image:
        """
        Draws the heat buffer over a background of the same size.

        Uses the separable blend + source-over formula of the 2D canvas, with
        the layer's alpha scaled by `opacity`. Pixels without heat are copied
        from the background untouched.
        """
        base = np.asarray(background.convert("RGBA"))
        if base.shape[:2] != heat_rgba.shape[:2]:
            raise RenderError(
                f"Heat buffer {heat_rgba.shape[1]}x{heat_rgba.shape[0]} does not match "
                f"background {base.shape[1]}x{base.shape[0]}."
            )

        out = base.copy()
        mask = heat_rgba[..., 3] > 0
        if self.opacity == 0 or not mask.any():
            return Image.fromarray(out, "RGBA")

        cb = base[mask, :3].astype(np.float64) / 255.0
        ab = base[mask, 3:4].astype(np.float64) / 255.0
        cs = heat_rgba[mask, :3].astype(np.float64) / 255.0
        a_s = heat_rgba[mask, 3:4].astype(np.float64) / 255.0 * self.opacity

        mixed = cb * cs if self.blend_mode == "multiply" else cs
        # Premultiplied result of source-over with the blended color.
        co = a_s * (1.0 - ab) * cs + a_s * ab * mixed + (1.0 - a_s) * ab * cb
        ao = a_s + ab * (1.0 - a_s)
        rgb = np.divide(co, ao, out=np.zeros_like(co), where=ao > 0)

        out[mask, :3] = np.rint(np.clip(rgb, 0.0, 1.0) * 255.0).astype(np.uint8)
        out[mask, 3] = np.rint(np.clip(ao[:, 0], 0.0, 1.0) * 255.0).astype(np.uint8)
        return Image.fromarray(out, "RGBA")

    def prepare_canvas(self, background: Image.Image, width: int, height: int) -> Image.Image:
        """Draws the background at its natural size at the top-left of a white canvas."""
        if background.size == (width, height):
            return background.convert("RGBA")
        canvas = Image.new("RGBA", (width, height), (255, 255, 255, 255))
        canvas.paste(background.convert("RGBA"), (0, 0))
        return canvas

    def render(
        self,
        samples: Iterable[GazeSample],
        background: Image.Image,
        width: int,
        height: int,
        scale_x: float = 1.0,
        scale_y: Optional[float] = None,
    ) -> Image.Image:
        """
        Full render pass. Returns a new RGBA image; the inputs are not modified.
        An empty sample sequence returns the background alone.
        """
        samples = list(samples)
        canvas = self.prepare_canvas(background, width, height)
        heat = self.heat_layer(samples, width, height, scale_x, scale_y)

        logger.info(f"Rendered {len(samples)} samples onto {width}x{height} canvas (scale {scale_x:.3f}).")
        return self.composite(canvas, heat)
