"""Playback session wiring loader, scheduler, compositor and capture.

Data flow per tick:

    scheduler.tick() ──▶ draw_clip(clip, progress)
                            ├─ loader.get(panel_id)        (bitmap)
                            ├─ interpolate(clip, progress) (state)
                            ├─ composite_frame(...)        (pixels)
                            └─ surface.present(frame) ──▶ capture (if active)

The session holds the only mutable state: the bitmap cache (inside the
loader) and the clock fields (inside the scheduler). Replacing the clip
list invalidates in-flight loads and discards any active capture.
"""

import logging
import time
from pathlib import Path
from typing import Callable

from .capture import (
    ARTIFACT_NAME, CAPTURE_FPS, STOP_GUARD_MS,
    CaptureArtifact, CaptureController, FfmpegEncoder,
)
from .compositor import SURFACE_SIZE, composite_frame
from .interpolate import interpolate
from .loader import AssetLoader
from .models import AnimeClip, Panel, StoryBeat
from .scheduler import PlaybackState, TimelineScheduler, monotonic_ms
from .surface import Surface

logger = logging.getLogger(__name__)


class PlaybackSession:
    """One playback/export session over an immutable clip list.

    Args:
        size: Output surface resolution (W, H).
        fps: Host loop and capture frame rate.
        output_dir: Where exported artifacts are written.
        filename: Artifact filename.
        clock: Millisecond clock shared by scheduler and capture.
        loader: Asset loader; a default AssetLoader if omitted.
        encoder_factory: Capture encoder constructor.
        timer_factory: Capture fallback timer constructor.
        guard_ms: Capture fallback margin; None disables the wall-clock guard.
    """

    def __init__(
        self,
        size: tuple[int, int] = SURFACE_SIZE,
        fps: int = CAPTURE_FPS,
        output_dir: str | Path = ".",
        filename: str = ARTIFACT_NAME,
        clock: Callable[[], float] = monotonic_ms,
        loader: AssetLoader | None = None,
        encoder_factory=FfmpegEncoder,
        timer_factory=None,
        guard_ms: float | None = STOP_GUARD_MS,
    ):
        self.fps = fps
        self.surface = Surface(size)
        self.loader = loader or AssetLoader()
        self.scheduler = TimelineScheduler(
            [], draw=self.draw_clip, clear=self.surface.clear, clock=clock,
        )
        capture_kwargs = {}
        if timer_factory is not None:
            capture_kwargs["timer_factory"] = timer_factory
        self.capture = CaptureController(
            self.scheduler, self.surface,
            output_dir=output_dir, filename=filename,
            encoder_factory=encoder_factory, fps=fps, clock=clock,
            guard_ms=guard_ms,
            **capture_kwargs,
        )
        self.panels: tuple[Panel, ...] = ()
        self.clips: tuple[AnimeClip, ...] = ()
        self.beats: dict[str, StoryBeat] = {}

    # ── Content ──────────────────────────────────────────────────

    def replace(
        self,
        panels: list[Panel],
        clips: list[AnimeClip],
        beats: list[StoryBeat] = (),
    ) -> bool:
        """Swap in a new clip set and load its panels.

        Returns:
            True once every referenced panel is decoded (ready to play).

        Raises:
            LoadError: A referenced panel failed to decode.
        """
        self.capture.discard()
        self.capture.release_artifact()
        self.panels = tuple(panels)
        self.clips = tuple(clips)
        self.beats = {beat.panel_id: beat for beat in beats}
        self.scheduler.clips = list(self.clips)
        logger.info(
            "Session replaced: %d panel(s), %d clip(s), %.0fms",
            len(self.panels), len(self.clips), self.total_duration,
        )
        return self.loader.load(list(self.clips), list(self.panels))

    @property
    def ready(self) -> bool:
        return bool(self.clips) and self.loader.ready

    @property
    def total_duration(self) -> float:
        return self.scheduler.total_duration

    @property
    def state(self) -> PlaybackState:
        return self.scheduler.state

    @property
    def artifact(self) -> CaptureArtifact | None:
        return self.capture.artifact

    # ── Drawing ──────────────────────────────────────────────────

    def draw_clip(self, clip: AnimeClip, progress: float) -> None:
        """Composite one frame of clip at progress and present it.

        Raises:
            MissingPanelForClip: The clip's panel has no decoded bitmap.
        """
        bitmap = self.loader.get(clip.panel_id)
        state = interpolate(clip, progress)
        frame = composite_frame(
            bitmap, state, self.beats.get(clip.panel_id), self.surface.size,
        )
        self.surface.present(frame)

    # ── Playback control ─────────────────────────────────────────

    def play(self) -> bool:
        if not self.ready:
            logger.debug("play() ignored: session not ready")
            return False
        return self.scheduler.play()

    def pause(self) -> bool:
        return self.scheduler.pause()

    def toggle(self) -> bool:
        if self.scheduler.state is PlaybackState.PLAYING:
            return self.pause()
        return self.play()

    def reset(self) -> None:
        self.capture.discard()
        self.capture.release_artifact()
        self.scheduler.reset()

    def export(self) -> bool:
        """Start a capture of the whole timeline. False if not started."""
        if not self.ready:
            logger.debug("export() ignored: session not ready")
            return False
        return self.capture.start()

    def run(self, sleep: Callable[[float], None] = time.sleep) -> None:
        """Drive the render loop until playback stops."""
        self.scheduler.run(fps=self.fps, sleep=sleep)

    def status(self) -> str:
        return self.scheduler.status()

    def close(self) -> None:
        self.capture.discard()
        self.loader.close()
