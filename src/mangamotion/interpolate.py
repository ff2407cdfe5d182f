"""Keyframe interpolation, (clip, progress) -> FrameState.

Pure functions only. Keyframes are located by offset, the bracketing
pair is linearly interpolated, and out-of-range or degenerate input is
resolved by clamping rather than raising:

  - progress outside [0, 1] is clamped first.
  - progress before the first keyframe (or after the last) snaps to that
    edge keyframe.
  - a zero-width span (duplicate offsets) is widened to SPAN_EPSILON.
  - keyframes that arrive unsorted are sorted by offset (stable).
"""

from .models import AnimeClip, FrameState, Keyframe


SPAN_EPSILON = 1e-6


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def sorted_keyframes(clip: AnimeClip) -> list[Keyframe]:
    """Keyframes ordered by offset. The clip itself is never mutated."""
    return sorted(clip.keyframes, key=lambda kf: kf.offset)


def find_keyframe_span(
    frames: list[Keyframe], progress: float,
) -> tuple[Keyframe, Keyframe, float]:
    """Find the (current, next, local_t) triple for a progress value.

    When no pair brackets progress, both ends are the nearest edge
    keyframe and local_t is 1.
    """
    for current, nxt in zip(frames, frames[1:]):
        if current.offset <= progress <= nxt.offset:
            span = max(SPAN_EPSILON, nxt.offset - current.offset)
            local_t = (progress - current.offset) / span
            return current, nxt, min(1.0, max(0.0, local_t))

    edge = frames[0] if progress < frames[0].offset else frames[-1]
    return edge, edge, 1.0


def interpolate(clip: AnimeClip, progress: float) -> FrameState:
    """Interpolate translate, scale and opacity for a clip at progress.

    Args:
        clip: Clip whose keyframes define the motion.
        progress: Clip-local progress, nominally in [0, 1].

    Returns:
        FrameState with opacity in [0, 1] and scale >= 0.
    """
    progress = min(1.0, max(0.0, progress))
    current, nxt, t = find_keyframe_span(sorted_keyframes(clip), progress)
    a, b = current.transform, nxt.transform

    return FrameState(
        translate_x=lerp(a.translate_x, b.translate_x, t),
        translate_y=lerp(a.translate_y, b.translate_y, t),
        scale=max(0.0, lerp(a.scale, b.scale, t)),
        opacity=min(1.0, max(0.0, lerp(current.opacity, nxt.opacity, t))),
    )
