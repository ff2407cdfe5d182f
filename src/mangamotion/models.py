"""Data model for a playback session.

Panels come from the segmentation step, clips and story beats from the
narrative step. All records are immutable for the lifetime of a session;
a new submission replaces the whole set.

Units:
  - durations are milliseconds.
  - translate_x / translate_y are percentages of the output surface
    dimensions, not pixels.
  - offset and opacity are fractions in [0, 1].
"""

from dataclasses import dataclass, field


# ── Source records ────────────────────────────────────────────────


@dataclass(frozen=True)
class Panel:
    """A single extracted image region to be animated."""

    id: str
    image_ref: str
    width: int
    height: int
    emphasis: float = 0.5

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"Panel {self.id!r}: width and height must be positive, "
                f"got {self.width}x{self.height}"
            )
        if not 0.0 <= self.emphasis <= 1.0:
            raise ValueError(
                f"Panel {self.id!r}: emphasis must be in [0, 1], got {self.emphasis!r}"
            )


@dataclass(frozen=True)
class Transform:
    """Structured 2D transform of a keyframe (translate in %, uniform scale)."""

    translate_x: float = 0.0
    translate_y: float = 0.0
    scale: float = 1.0

    def __post_init__(self):
        if self.scale < 0:
            raise ValueError(f"Transform scale must be >= 0, got {self.scale!r}")


@dataclass(frozen=True)
class Keyframe:
    offset: float
    transform: Transform = field(default_factory=Transform)
    opacity: float = 1.0

    def __post_init__(self):
        if not 0.0 <= self.offset <= 1.0:
            raise ValueError(f"Keyframe offset must be in [0, 1], got {self.offset!r}")
        if not 0.0 <= self.opacity <= 1.0:
            raise ValueError(f"Keyframe opacity must be in [0, 1], got {self.opacity!r}")


@dataclass(frozen=True)
class AnimeClip:
    """One animated segment bound to exactly one panel."""

    id: str
    panel_id: str
    duration_ms: float
    keyframes: tuple[Keyframe, ...]

    def __post_init__(self):
        if self.duration_ms <= 0:
            raise ValueError(
                f"Clip {self.id!r}: duration_ms must be positive, got {self.duration_ms!r}"
            )
        # Accept any sequence but store a tuple so the record stays hashable.
        object.__setattr__(self, "keyframes", tuple(self.keyframes))
        if not self.keyframes:
            raise ValueError(f"Clip {self.id!r}: at least one keyframe is required")


@dataclass(frozen=True)
class StoryBeat:
    panel_id: str
    narration: str
    tone: str = "neutral"


# ── Derived values ────────────────────────────────────────────────


@dataclass(frozen=True)
class FrameState:
    """Interpolated visual state for one frame of a clip."""

    translate_x: float
    translate_y: float
    scale: float
    opacity: float


def total_duration(clips) -> float:
    """Sum of clip durations in milliseconds (0 for an empty timeline)."""
    return sum(clip.duration_ms for clip in clips)
