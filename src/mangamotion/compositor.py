"""Frame compositor: one drawn frame per (bitmap, state, beat).

Frame layout (1280x720 surface):
  ┌──────────────────────────────────────────┐
  │  vertical gradient backdrop              │
  │        ┌────────────────────┐            │
  │        │  panel bitmap      │            │  ← fitted to 92% of W/H,
  │        │  (scaled, offset)  │            │    times keyframe scale,
  │        └────────────────────┘            │    offset by translate %
  │  ┌────────────────────────────────────┐  │
  │  │ narration text                     │  │  ← fixed-height box,
  │  │ Tone: tense                        │  │    bottom-aligned, inset
  │  └────────────────────────────────────┘  │
  └──────────────────────────────────────────┘

The geometry helpers are pure. composite_frame returns a fresh
(h, w, 3) uint8 numpy frame and never touches the input bitmap.
"""

import numpy as np
from PIL import Image, ImageDraw

from .common import draw_fitted_text, load_font, vertical_gradient
from .models import FrameState, StoryBeat


# ── Constants ────────────────────────────────────────────────────

SURFACE_SIZE = (1280, 720)
FIT_FRACTION = 0.92               # bitmap occupies at most 92% of W and H

BACKDROP_TOP = (5, 8, 15)
BACKDROP_BOTTOM = (2, 0, 15)

OVERLAY_PADDING = 24              # inset of the narration box from the edges
OVERLAY_BOX_H = 80
OVERLAY_BG = (15, 16, 40)
OVERLAY_BG_ALPHA = 184            # ~72% opacity (0.85 * 0.85 * 255)
OVERLAY_TEXT_INSET = 20           # text left inset inside the box
NARRATION_FONT_SIZE = 18
NARRATION_COLOR = (220, 230, 255, 242)
NARRATION_BASELINE = 36           # distance of narration baseline above box bottom
TONE_FONT_SIZE = 12
TONE_COLOR = (140, 150, 210, 230)
TONE_BASELINE = 16


# ── Geometry ─────────────────────────────────────────────────────


def fit_rect(
    width: float, height: float, max_width: float, max_height: float,
) -> tuple[float, float]:
    """Scale (width, height) uniformly to fit inside (max_width, max_height)."""
    ratio = min(max_width / width, max_height / height)
    return width * ratio, height * ratio


def compute_draw_rect(
    img_w: int,
    img_h: int,
    state: FrameState,
    surface_size: tuple[int, int] = SURFACE_SIZE,
) -> tuple[float, float, float, float]:
    """Compute where the bitmap lands on the surface.

    Args:
        img_w, img_h: Natural bitmap dimensions.
        state: Interpolated transform; translate is a percentage of the
            surface dimensions.
        surface_size: (W, H) of the output surface.

    Returns:
        (x, y, w, h) in surface pixels, unrounded. x/y may be negative
        or exceed the surface when the transform pushes the bitmap out.
    """
    sw, sh = surface_size
    fit_w, fit_h = fit_rect(img_w, img_h, sw * FIT_FRACTION, sh * FIT_FRACTION)
    draw_w = fit_w * state.scale
    draw_h = fit_h * state.scale
    x = sw / 2 - draw_w / 2 + (state.translate_x / 100) * sw
    y = sh / 2 - draw_h / 2 + (state.translate_y / 100) * sh
    return x, y, draw_w, draw_h


def narration_box(surface_size: tuple[int, int]) -> tuple[int, int, int, int]:
    """(x, y, w, h) of the bottom-aligned narration box."""
    sw, sh = surface_size
    return (
        OVERLAY_PADDING,
        sh - OVERLAY_BOX_H - OVERLAY_PADDING,
        sw - 2 * OVERLAY_PADDING,
        OVERLAY_BOX_H,
    )


# ── Drawing steps ────────────────────────────────────────────────


def render_backdrop(surface_size: tuple[int, int] = SURFACE_SIZE) -> Image.Image:
    return Image.fromarray(vertical_gradient(surface_size, BACKDROP_TOP, BACKDROP_BOTTOM))


def draw_bitmap(
    canvas: Image.Image, bitmap: Image.Image, state: FrameState,
) -> None:
    """Paste the transformed bitmap onto canvas with clamped opacity."""
    opacity = min(1.0, max(0.0, state.opacity))
    x, y, w, h = compute_draw_rect(bitmap.width, bitmap.height, state, canvas.size)
    draw_w, draw_h = round(w), round(h)
    if draw_w < 1 or draw_h < 1 or opacity == 0.0:
        return

    layer = bitmap.convert("RGBA").resize((draw_w, draw_h), Image.BILINEAR)
    alpha = layer.getchannel("A")
    if opacity < 1.0:
        alpha = alpha.point(lambda a: round(a * opacity))
    canvas.paste(layer.convert("RGB"), (round(x), round(y)), alpha)


def draw_narration(canvas: Image.Image, beat: StoryBeat) -> None:
    """Draw the semi-transparent narration box with the tone label."""
    bx, by, bw, bh = narration_box(canvas.size)
    layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    draw.rectangle([(bx, by), (bx + bw - 1, by + bh - 1)], fill=(*OVERLAY_BG, OVERLAY_BG_ALPHA))

    bottom = by + bh
    text_x = bx + OVERLAY_TEXT_INSET
    max_text_w = bw - 2 * OVERLAY_TEXT_INSET

    draw_fitted_text(
        draw, (text_x, bottom - NARRATION_BASELINE), beat.narration,
        load_font(NARRATION_FONT_SIZE), NARRATION_COLOR, max_text_w,
    )
    draw_fitted_text(
        draw, (text_x, bottom - TONE_BASELINE), f"Tone: {beat.tone}",
        load_font(TONE_FONT_SIZE), TONE_COLOR, max_text_w,
    )

    canvas.alpha_composite(layer)


# ── Full frame ───────────────────────────────────────────────────


def composite_frame(
    bitmap: Image.Image,
    state: FrameState,
    beat: StoryBeat | None = None,
    surface_size: tuple[int, int] = SURFACE_SIZE,
) -> np.ndarray:
    """Draw one complete frame.

    Args:
        bitmap: Decoded panel image (any mode; converted to RGBA).
        state: Interpolated transform and opacity.
        beat: Narration for the panel, or None to omit the overlay.
        surface_size: (W, H) of the output surface.

    Returns:
        numpy array of shape (H, W, 3), dtype uint8.
    """
    canvas = render_backdrop(surface_size).convert("RGBA")
    draw_bitmap(canvas, bitmap, state)
    if beat is not None:
        draw_narration(canvas, beat)
    return np.array(canvas.convert("RGB"))
