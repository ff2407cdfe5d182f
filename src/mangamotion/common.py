"""Shared helpers for the compositor and the manifest loader.

Contains: ${var} path resolution, cached overlay fonts, single-line
text fitting, and the gradient backdrop fill.
"""

import functools
import re
from pathlib import Path

import numpy as np
from PIL import ImageDraw, ImageFont


# ── Path utilities ─────────────────────────────────────────────────

def resolve_path_vars(text: str, paths: dict[str, str]) -> str:
    """Replace ${name} variables in a string using the paths dict."""
    def _replace(match):
        key = match.group(1)
        if key not in paths:
            raise ValueError(f"Unknown path variable: ${{{key}}}")
        return paths[key]
    return re.sub(r"\$\{(\w+)\}", _replace, text)


# ── Overlay text ───────────────────────────────────────────────────

OVERLAY_FONTS = (
    Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
    Path("/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf"),
    Path("/usr/share/fonts/TTF/DejaVuSans.ttf"),
)
ELLIPSIS = "…"


@functools.lru_cache(maxsize=None)
def load_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Overlay font at size, loaded once per size for the whole process."""
    for font_path in OVERLAY_FONTS:
        if font_path.exists():
            return ImageFont.truetype(str(font_path), size=size)
    return ImageFont.load_default(size=size)


def fit_text(draw: ImageDraw.ImageDraw, text: str, font, max_width: float) -> str:
    """Shorten text to one line no wider than max_width, ending in an ellipsis."""
    if draw.textlength(text, font=font) <= max_width:
        return text
    # Longest prefix that still fits with the ellipsis appended.
    lo, hi = 0, len(text)
    while lo < hi:
        mid = (lo + hi + 1) // 2
        if draw.textlength(text[:mid].rstrip() + ELLIPSIS, font=font) <= max_width:
            lo = mid
        else:
            hi = mid - 1
    return text[:lo].rstrip() + ELLIPSIS


def draw_fitted_text(
    draw: ImageDraw.ImageDraw,
    xy: tuple[float, float],
    text: str,
    font,
    fill: tuple[int, ...],
    max_width: float,
    anchor: str = "ls",
) -> str:
    """Draw text at xy (left baseline by default), truncated to max_width.

    Returns the line actually drawn.
    """
    line = fit_text(draw, text, font, max_width)
    draw.text(xy, line, fill=fill, font=font, anchor=anchor)
    return line


# ── Fills ──────────────────────────────────────────────────────────

def vertical_gradient(
    size: tuple[int, int],
    top: tuple[int, int, int],
    bottom: tuple[int, int, int],
) -> np.ndarray:
    """Return an (h, w, 3) uint8 frame blending top color into bottom color."""
    w, h = size
    t = np.linspace(0.0, 1.0, h, dtype=np.float32)[:, None]
    rows = np.asarray(top, np.float32) * (1 - t) + np.asarray(bottom, np.float32) * t
    return np.repeat(rows[:, None, :], w, axis=1).round().astype(np.uint8)
