from .heatmap import HeatmapRenderer, round_half_up
from .ramp import FIXED_ONE, ColorRamp

__all__ = ["ColorRamp", "FIXED_ONE", "HeatmapRenderer", "round_half_up"]
