from typing import Sequence

import numpy as np

# Heat is accumulated in fixed point so that the sum over samples is exact
# and independent of sample order.
FIXED_ONE = 1 << 32

RGB = tuple[int, int, int]


class ColorRamp:
    """
    A discrete alpha -> color mapping.

    Each stop is (lower bound, RGB). An alpha falls into the last stop whose
    bound is <= alpha, so a value exactly on a bound belongs to the upper
    bucket.
    """

    def __init__(self, stops: Sequence[tuple[float, RGB]]):
        if not stops:
            raise ValueError("A color ramp needs at least one stop.")
        self._bounds = np.array([bound for bound, _ in stops], dtype=np.float64)
        self._fixed_bounds = np.array(
            [round(bound * FIXED_ONE) for bound, _ in stops], dtype=np.int64
        )
        self._colors = np.array([rgb for _, rgb in stops], dtype=np.uint8)

    def __len__(self) -> int:
        return len(self._colors)

    @property
    def colors(self) -> np.ndarray:
        return self._colors.copy()

    def bucket(self, alpha: float) -> int:
        """Index of the stop a normalized alpha maps to."""
        return max(int(np.searchsorted(self._bounds, alpha, side="right")) - 1, 0)

    def color_for(self, alpha: float) -> RGB:
        r, g, b = self._colors[self.bucket(alpha)]
        return int(r), int(g), int(b)

    def colorize(self, heat: np.ndarray) -> np.ndarray:
        """
        Maps a fixed-point heat field (H, W) to an RGBA uint8 buffer (H, W, 4).
        Pixels without heat stay fully transparent black.
        """
        heat = np.minimum(heat, FIXED_ONE)
        idx = np.searchsorted(self._fixed_bounds, heat, side="right") - 1
        np.clip(idx, 0, len(self._colors) - 1, out=idx)

        rgba = np.zeros(heat.shape + (4,), dtype=np.uint8)
        rgba[..., :3] = self._colors[idx]
        rgba[..., 3] = np.rint(heat / FIXED_ONE * 255.0).astype(np.uint8)
        rgba[heat <= 0] = 0
        return rgba
