"""
Tests for heat accumulation, the color ramp and compositing.
"""

import random

import numpy as np
import pytest
from PIL import Image
from pydantic import ValidationError

from gaze_heatmap.configs import RendererSettings
from gaze_heatmap.errors import RenderError
from gaze_heatmap.models import GazeSample
from gaze_heatmap.rendering import FIXED_ONE, ColorRamp, HeatmapRenderer, round_half_up

from conftest import noisy_background

BLUE, GREEN, YELLOW, RED = (0, 0, 255), (0, 255, 0), (255, 255, 0), (255, 0, 0)


def sample(x: float, y: float, scroll_y: float = 0.0) -> GazeSample:
    return GazeSample(x=x, y=y, timestamp=0, scroll_y=scroll_y)


def distance_grid(width: int, height: int, cx: int, cy: int) -> np.ndarray:
    ys, xs = np.mgrid[0:height, 0:width]
    return np.sqrt((xs - cx) ** 2 + (ys - cy) ** 2)


@pytest.fixture
def renderer() -> HeatmapRenderer:
    return HeatmapRenderer()


# =============================================================================
# Tests: ColorRamp
# =============================================================================


class TestColorRamp:

    def test_default_ramp_has_four_stops(self):
        assert len(ColorRamp(RendererSettings().color_stops)) == 4

    @pytest.mark.parametrize(
        "alpha, expected",
        [
            (0.0, BLUE),
            (0.2499, BLUE),
            (0.25, GREEN),
            (0.4, GREEN),
            (0.5, YELLOW),
            (0.7499, YELLOW),
            (0.75, RED),
            (1.0, RED),
        ],
    )
    def test_bucket_boundaries(self, alpha, expected):
        ramp = ColorRamp(RendererSettings().color_stops)
        assert ramp.color_for(alpha) == expected

    def test_colorize_fixed_point_boundaries(self):
        ramp = ColorRamp(RendererSettings().color_stops)
        heat = np.array(
            [[0, FIXED_ONE // 4, FIXED_ONE // 2, 3 * FIXED_ONE // 4, FIXED_ONE]], dtype=np.int64
        )
        rgba = ramp.colorize(heat)

        assert tuple(rgba[0, 0]) == (0, 0, 0, 0)
        assert tuple(rgba[0, 1]) == GREEN + (64,)
        assert tuple(rgba[0, 2]) == YELLOW + (128,)
        assert tuple(rgba[0, 3]) == RED + (191,)
        assert tuple(rgba[0, 4]) == RED + (255,)

    def test_colorize_clamps_overflow(self):
        ramp = ColorRamp(RendererSettings().color_stops)
        rgba = ramp.colorize(np.array([[5 * FIXED_ONE]], dtype=np.int64))
        assert tuple(rgba[0, 0]) == RED + (255,)

    def test_empty_ramp_rejected(self):
        with pytest.raises(ValueError):
            ColorRamp([])


class TestRendererSettings:

    def test_defaults(self):
        settings = RendererSettings()
        assert settings.radius_px == 40
        assert settings.intensity == 0.4
        assert settings.opacity == 0.7
        assert settings.blend_mode == "multiply"

    def test_stops_must_start_at_zero(self):
        with pytest.raises(ValidationError):
            RendererSettings(color_stops=[(0.1, BLUE), (0.5, RED)])

    def test_stops_must_increase(self):
        with pytest.raises(ValidationError):
            RendererSettings(color_stops=[(0.0, BLUE), (0.5, GREEN), (0.5, RED)])

    def test_channels_must_fit_a_byte(self):
        with pytest.raises(ValidationError):
            RendererSettings(color_stops=[(0.0, (0, 0, 300))])

    def test_from_settings(self):
        renderer = HeatmapRenderer.from_settings(
            RendererSettings(radius_px=10, intensity=0.9, blend_mode="normal", opacity=1.0)
        )
        assert renderer.radius_px == 10
        assert renderer.intensity == 0.9
        assert renderer.blend_mode == "normal"


# =============================================================================
# Tests: accumulation
# =============================================================================


class TestProjection:

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(-0.5) == 0
        assert round_half_up(1.49) == 1

    def test_projection_uses_document_coordinates_and_scale(self, renderer):
        assert renderer.project(sample(100, 50, scroll_y=25), 0.5, 0.5) == (50, 38)
        assert renderer.project(sample(10.4, 10.6, scroll_y=900), 1.0, 1.0) == (10, 911)


class TestAccumulation:

    def test_zero_sized_canvas_is_a_precondition_violation(self, renderer):
        with pytest.raises(ValueError):
            renderer.accumulate([sample(1, 1)], 0, 10)
        with pytest.raises(ValueError):
            renderer.accumulate([sample(1, 1)], 10, 0)

    def test_empty_samples_leave_buffer_empty(self, renderer):
        heat = renderer.accumulate([], 50, 50)
        assert heat.shape == (50, 50)
        assert not heat.any()

    def test_single_sample_disc_falloff(self, renderer):
        heat = renderer.accumulate([sample(60, 60)], 121, 121)
        alpha = heat / FIXED_ONE

        assert alpha[60, 60] == pytest.approx(0.4, abs=1e-9)
        row = alpha[60, 60:101]
        assert np.all(np.diff(row) < 0)
        assert row[-1] == 0.0

        distances = distance_grid(121, 121, 60, 60)
        assert not heat[distances > 40].any()
        inside = (distances < 40)
        assert np.all(heat[inside] > 0)
        np.testing.assert_allclose(alpha[inside], 0.4 * (1 - distances[inside] / 40), atol=1e-9)

    def test_samples_outside_canvas_contribute_nothing(self, renderer):
        far_away = [
            sample(-500, -500),
            sample(5000, 10),
            sample(10, 5000),
            sample(10, 10, scroll_y=10_000),
            sample(float("nan"), 10),
            sample(10, float("inf")),
        ]
        heat = renderer.accumulate(far_away, 100, 100)
        assert not heat.any()

    def test_disc_clipped_at_canvas_edge(self, renderer):
        heat = renderer.accumulate([sample(0, 0)], 100, 100)
        assert heat[0, 0] == renderer.accumulate([sample(50, 50)], 100, 100)[50, 50]
        assert heat[0, 40] == 0
        assert heat[39, 0] > 0

    def test_document_height_not_viewport_height(self, renderer):
        # A point low on a long page lands below the first viewport.
        heat = renderer.accumulate([sample(50, 600, scroll_y=1400)], 100, 3000)
        assert heat[2000, 50] > 0
        assert not heat[:1900].any()

    def test_two_samples_same_pixel_sum_and_clamp(self):
        weak = HeatmapRenderer(intensity=0.3)
        one = weak.accumulate([sample(50, 50)], 100, 100)[50, 50]
        two = weak.accumulate([sample(50, 50), sample(50, 50)], 100, 100)[50, 50]
        assert two == 2 * one

        strong = HeatmapRenderer(intensity=0.7)
        a1 = strong.accumulate([sample(50, 50)], 100, 100)[50, 50]
        both = strong.accumulate([sample(50, 50), sample(50, 50)], 100, 100)[50, 50]
        assert both == FIXED_ONE
        assert both >= a1

    def test_accumulation_order_independent(self, renderer):
        rng = random.Random(1234)
        samples = [
            sample(rng.uniform(-20, 220), rng.uniform(-20, 220), rng.uniform(0, 50))
            for _ in range(60)
        ]
        shuffled = samples[:]
        rng.shuffle(shuffled)

        forward = renderer.heat_layer(samples, 200, 260)
        backward = renderer.heat_layer(list(reversed(samples)), 200, 260)
        mixed = renderer.heat_layer(shuffled, 200, 260)

        np.testing.assert_array_equal(forward, backward)
        np.testing.assert_array_equal(forward, mixed)

    def test_scale_maps_capture_viewport_to_screenshot(self, renderer):
        heat = renderer.accumulate([sample(200, 100, scroll_y=100)], 200, 200, scale_x=0.5)
        center = np.unravel_index(np.argmax(heat), heat.shape)
        assert center == (100, 100)


class TestHeatLayerScenario:

    def test_three_sample_scenario(self, renderer):
        samples = [sample(100, 100), sample(100, 100), sample(500, 500)]
        rgba = renderer.heat_layer(samples, 1000, 1000)

        assert tuple(rgba[100, 100]) == RED + (204,)
        assert tuple(rgba[500, 500]) == GREEN + (102,)

        far = (distance_grid(1000, 1000, 100, 100) > 40) & (distance_grid(1000, 1000, 500, 500) > 40)
        assert not rgba[far].any()


# =============================================================================
# Tests: compositing
# =============================================================================


class TestComposite:

    def test_empty_samples_leave_background_unchanged(self, renderer):
        background = noisy_background(120, 90)
        out = renderer.render([], background, 120, 90)
        np.testing.assert_array_equal(np.asarray(out), np.asarray(background))

    def test_out_of_bounds_samples_leave_background_unchanged(self, renderer):
        background = noisy_background(80, 80)
        out = renderer.render([sample(-300, 10), sample(10, 900)], background, 80, 80)
        np.testing.assert_array_equal(np.asarray(out), np.asarray(background))

    def test_render_does_not_mutate_background(self, renderer):
        background = noisy_background(100, 100)
        before = np.asarray(background).copy()
        renderer.render([sample(50, 50)], background, 100, 100)
        np.testing.assert_array_equal(np.asarray(background), before)

    def test_multiply_at_seventy_percent_over_white(self, renderer):
        background = Image.new("RGBA", (200, 200), (255, 255, 255, 255))
        out = np.asarray(renderer.render([sample(100, 100), sample(100, 100)], background, 200, 200))

        # Red heat at alpha 0.8, layer opacity 0.7: 56% multiply over white.
        assert tuple(out[100, 100]) == (255, 112, 112, 255)
        assert tuple(out[0, 0]) == (255, 255, 255, 255)

    def test_multiply_over_black_stays_black(self, renderer):
        background = Image.new("RGB", (100, 100), (0, 0, 0))
        out = np.asarray(renderer.render([sample(50, 50)] * 3, background, 100, 100))
        assert not out[..., :3].any()
        assert np.all(out[..., 3] == 255)

    def test_normal_blend_mixes_toward_ramp_color(self):
        renderer = HeatmapRenderer(blend_mode="normal", opacity=1.0)
        background = Image.new("RGBA", (100, 100), (0, 0, 0, 255))
        out = np.asarray(renderer.render([sample(50, 50)], background, 100, 100))
        # Green at alpha 0.4 over black.
        assert tuple(out[50, 50]) == (0, 102, 0, 255)

    def test_zero_opacity_is_a_no_op(self):
        renderer = HeatmapRenderer(opacity=0.0)
        background = noisy_background(60, 60)
        out = renderer.render([sample(30, 30)], background, 60, 60)
        np.testing.assert_array_equal(np.asarray(out), np.asarray(background))

    def test_background_smaller_than_canvas_is_padded_white(self, renderer):
        background = Image.new("RGBA", (50, 20), (10, 20, 30, 255))
        out = np.asarray(renderer.render([], background, 50, 60))
        assert out.shape == (60, 50, 4)
        assert tuple(out[5, 5]) == (10, 20, 30, 255)
        assert tuple(out[50, 5]) == (255, 255, 255, 255)

    def test_mismatched_heat_buffer_rejected(self, renderer):
        with pytest.raises(RenderError):
            renderer.composite(Image.new("RGBA", (10, 10)), np.zeros((5, 5, 4), dtype=np.uint8))

    def test_render_is_deterministic(self, renderer):
        background = noisy_background(150, 150)
        samples = [sample(20 * i, 15 * i, 3 * i) for i in range(10)]
        a = np.asarray(renderer.render(samples, background, 150, 150))
        b = np.asarray(renderer.render(samples, background, 150, 150))
        np.testing.assert_array_equal(a, b)


class TestRendererValidation:

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"radius_px": 0},
            {"intensity": 0.0},
            {"intensity": 1.5},
            {"opacity": -0.1},
            {"blend_mode": "screen"},
        ],
    )
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            HeatmapRenderer(**kwargs)
