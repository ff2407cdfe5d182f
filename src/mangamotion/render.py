"""Offline timeline render with moviepy.

Renders the same frames as live playback (locate_clip -> interpolate ->
composite_frame) without a real-time clock: moviepy asks for the frame
at t and writes the result with ffmpeg. Useful for exports that should
not depend on host frame pacing.
"""

import logging
from pathlib import Path

import numpy as np
from moviepy import VideoClip
from PIL import Image

from .compositor import SURFACE_SIZE, composite_frame
from .errors import MissingPanelForClip
from .interpolate import interpolate
from .models import AnimeClip, StoryBeat, total_duration
from .scheduler import locate_clip

logger = logging.getLogger(__name__)

CODECS_BY_SUFFIX = {
    ".webm": "libvpx-vp9",
    ".mp4": "libx264",
    ".mov": "libx264",
}


def frame_at(
    clips: list[AnimeClip],
    bitmaps: dict[str, Image.Image],
    beats: dict[str, StoryBeat],
    elapsed_ms: float,
    surface_size: tuple[int, int] = SURFACE_SIZE,
) -> np.ndarray:
    """Composite the timeline frame at elapsed_ms.

    Times at or past the end render the last clip at progress 1, the
    same frame live playback ends on.

    Raises:
        ValueError: clips is empty.
        MissingPanelForClip: The active clip's panel has no bitmap.
    """
    if elapsed_ms >= total_duration(clips):
        index, progress = len(clips) - 1, 1.0
    else:
        index, progress = locate_clip(clips, elapsed_ms)
    clip = clips[index]
    if clip.panel_id not in bitmaps:
        raise MissingPanelForClip(clip.panel_id)
    state = interpolate(clip, progress)
    return composite_frame(bitmaps[clip.panel_id], state, beats.get(clip.panel_id), surface_size)


def build_timeline_clip(
    clips: list[AnimeClip],
    bitmaps: dict[str, Image.Image],
    beats: dict[str, StoryBeat],
    fps: int = 30,
    surface_size: tuple[int, int] = SURFACE_SIZE,
) -> VideoClip:
    """Wrap the timeline as a moviepy VideoClip (t in seconds)."""
    if not clips:
        raise ValueError("No clips to render")

    def _frame(t):
        return frame_at(clips, bitmaps, beats, t * 1000.0, surface_size)

    duration = total_duration(clips) / 1000.0
    return VideoClip(_frame, duration=duration).with_fps(fps)


def render_timeline(
    clips: list[AnimeClip],
    bitmaps: dict[str, Image.Image],
    beats: dict[str, StoryBeat],
    output_path: str | Path,
    fps: int = 30,
    surface_size: tuple[int, int] = SURFACE_SIZE,
    quiet: bool = False,
) -> Path:
    """Render the full timeline to a video file.

    The codec follows the output suffix (.webm -> VP9, otherwise H.264).
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    codec = CODECS_BY_SUFFIX.get(output_path.suffix.lower(), "libx264")

    clip = build_timeline_clip(clips, bitmaps, beats, fps, surface_size)
    logger.info("Rendering %.2fs timeline to %s (%s)", clip.duration, output_path, codec)
    clip.write_videofile(
        str(output_path),
        fps=fps,
        codec=codec,
        audio=False,
        ffmpeg_params=["-pix_fmt", "yuv420p"],
        logger=None if quiet else "bar",
    )
    return output_path


def render_still(
    clips: list[AnimeClip],
    bitmaps: dict[str, Image.Image],
    beats: dict[str, StoryBeat],
    at_ms: float,
    output_path: str | Path,
    surface_size: tuple[int, int] = SURFACE_SIZE,
) -> Path:
    """Write the single frame at at_ms as an image."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    frame = frame_at(clips, bitmaps, beats, at_ms, surface_size)
    Image.fromarray(frame).save(output_path)
    return output_path
