"""Tests for frame compositing."""

import numpy as np
import pytest
from PIL import Image

from mangamotion.compositor import (
    OVERLAY_BOX_H,
    OVERLAY_PADDING,
    SURFACE_SIZE,
    composite_frame,
    compute_draw_rect,
    fit_rect,
    narration_box,
    render_backdrop,
)
from mangamotion.models import FrameState, StoryBeat

from conftest import SMALL_SIZE


IDENTITY = FrameState(translate_x=0.0, translate_y=0.0, scale=1.0, opacity=1.0)
RED = (220, 30, 30)

# Tall enough for the narration box to sit fully on the surface.
OVERLAY_SIZE = (320, 180)


@pytest.fixture
def red_bitmap():
    return Image.new("RGBA", (200, 100), (*RED, 255))


class TestGeometry:
    def test_fit_rect_landscape(self):
        assert fit_rect(200, 100, 100, 100) == (100, 50)

    def test_fit_rect_portrait(self):
        assert fit_rect(100, 200, 100, 100) == (50, 100)

    def test_identity_is_centered_and_fitted(self):
        x, y, w, h = compute_draw_rect(200, 100, IDENTITY, SURFACE_SIZE)
        assert w == pytest.approx(1280 * 0.92)
        assert h == pytest.approx(w / 2)
        assert x == pytest.approx((1280 - w) / 2)
        assert y == pytest.approx((720 - h) / 2)

    def test_translate_is_percent_of_surface(self):
        moved = FrameState(translate_x=10.0, translate_y=-5.0, scale=1.0, opacity=1.0)
        x0, y0, _, _ = compute_draw_rect(200, 100, IDENTITY, SURFACE_SIZE)
        x1, y1, _, _ = compute_draw_rect(200, 100, moved, SURFACE_SIZE)
        assert x1 - x0 == pytest.approx(128)
        assert y1 - y0 == pytest.approx(-36)

    def test_scale_grows_around_center(self):
        big = FrameState(translate_x=0.0, translate_y=0.0, scale=1.1, opacity=1.0)
        _, _, w0, h0 = compute_draw_rect(200, 100, IDENTITY, SURFACE_SIZE)
        x, y, w, h = compute_draw_rect(200, 100, big, SURFACE_SIZE)
        assert w == pytest.approx(w0 * 1.1)
        assert x + w / 2 == pytest.approx(640)
        assert y + h / 2 == pytest.approx(360)

    def test_narration_box_is_bottom_aligned(self):
        assert narration_box(SURFACE_SIZE) == (
            OVERLAY_PADDING,
            720 - OVERLAY_BOX_H - OVERLAY_PADDING,
            1280 - 2 * OVERLAY_PADDING,
            OVERLAY_BOX_H,
        )


class TestCompositeFrame:
    def test_shape_and_dtype(self, red_bitmap):
        frame = composite_frame(red_bitmap, IDENTITY, surface_size=SMALL_SIZE)
        assert frame.shape == (90, 160, 3)
        assert frame.dtype == np.uint8

    def test_bitmap_drawn_at_center(self, red_bitmap):
        frame = composite_frame(red_bitmap, IDENTITY, surface_size=SMALL_SIZE)
        assert tuple(frame[45, 80]) == RED

    def test_corner_shows_backdrop(self, red_bitmap):
        frame = composite_frame(red_bitmap, IDENTITY, surface_size=SMALL_SIZE)
        backdrop = np.array(render_backdrop(SMALL_SIZE))
        assert tuple(frame[0, 0]) == tuple(backdrop[0, 0])

    def test_zero_opacity_draws_backdrop_only(self, red_bitmap):
        hidden = FrameState(translate_x=0.0, translate_y=0.0, scale=1.0, opacity=0.0)
        frame = composite_frame(red_bitmap, hidden, surface_size=SMALL_SIZE)
        np.testing.assert_array_equal(frame, np.array(render_backdrop(SMALL_SIZE)))

    def test_zero_scale_draws_backdrop_only(self, red_bitmap):
        collapsed = FrameState(translate_x=0.0, translate_y=0.0, scale=0.0, opacity=1.0)
        frame = composite_frame(red_bitmap, collapsed, surface_size=SMALL_SIZE)
        np.testing.assert_array_equal(frame, np.array(render_backdrop(SMALL_SIZE)))

    def test_half_opacity_blends_with_backdrop(self, red_bitmap):
        half = FrameState(translate_x=0.0, translate_y=0.0, scale=1.0, opacity=0.5)
        frame = composite_frame(red_bitmap, half, surface_size=SMALL_SIZE)
        r = int(frame[45, 80, 0])
        assert 20 < r < RED[0]

    def test_offscreen_translate_is_clipped(self, red_bitmap):
        away = FrameState(translate_x=200.0, translate_y=0.0, scale=1.0, opacity=1.0)
        frame = composite_frame(red_bitmap, away, surface_size=SMALL_SIZE)
        np.testing.assert_array_equal(frame, np.array(render_backdrop(SMALL_SIZE)))

    def test_input_bitmap_untouched(self, red_bitmap):
        before = red_bitmap.tobytes()
        composite_frame(red_bitmap, IDENTITY, StoryBeat("p1", "hi", "calm"), OVERLAY_SIZE)
        assert red_bitmap.tobytes() == before


class TestNarrationOverlay:
    # Inside the box but left of the text inset: only the box fill lands here.
    PROBE = (150, 30)  # (row, col)

    def test_no_beat_leaves_bitmap_visible(self, red_bitmap):
        frame = composite_frame(red_bitmap, IDENTITY, None, OVERLAY_SIZE)
        assert tuple(frame[self.PROBE]) == RED

    def test_beat_darkens_box_region(self, red_bitmap):
        beat = StoryBeat(panel_id="p1", narration="The rain does not stop.", tone="tense")
        frame = composite_frame(red_bitmap, IDENTITY, beat, OVERLAY_SIZE)
        r, g, b = (int(c) for c in frame[self.PROBE])
        assert r < RED[0]
        assert b > RED[2]

    def test_overlay_only_affects_box(self, red_bitmap):
        beat = StoryBeat(panel_id="p1", narration="...", tone="calm")
        plain = composite_frame(red_bitmap, IDENTITY, None, OVERLAY_SIZE)
        with_beat = composite_frame(red_bitmap, IDENTITY, beat, OVERLAY_SIZE)
        bx, by, bw, bh = narration_box(OVERLAY_SIZE)
        np.testing.assert_array_equal(plain[:by], with_beat[:by])

    def test_long_narration_is_drawn_without_error(self, red_bitmap):
        beat = StoryBeat(panel_id="p1", narration="word " * 200, tone="dramatic")
        frame = composite_frame(red_bitmap, IDENTITY, beat, OVERLAY_SIZE)
        assert frame.shape == (180, 320, 3)
