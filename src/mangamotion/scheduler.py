"""Timeline scheduler: the virtual playback clock and render loop driver.

State machine:

    IDLE ──play──▶ PLAYING ──pause──▶ PAUSED ──play──▶ PLAYING
                      │
                      └──elapsed >= total──▶ FINISHED ──reset──▶ IDLE

The clock state is just (state, start_ref, pause_offset). Playing
anchors start_ref = now - pause_offset, so resuming continues exactly
where pausing left off. Each tick maps elapsed time to (clip, local
progress) and hands that to the draw callback; drawing is the only side
effect and lives outside this module.

All times are milliseconds.
"""

import enum
import logging
import time
from typing import Callable

from .models import AnimeClip, total_duration

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
DrawFn = Callable[[AnimeClip, float], None]


# ── Clocks ───────────────────────────────────────────────────────


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class SteppedClock:
    """Virtual clock that only advances when the host loop sleeps.

    Pass ``clock`` as the scheduler clock and ``clock.sleep`` as the run
    loop's sleep to play a timeline deterministically and faster than
    real time.
    """

    def __init__(self, step_ms: float = 1000.0 / 30, start_ms: float = 0.0):
        self.step_ms = step_ms
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> None:
        self.now_ms += ms

    def sleep(self, _seconds: float | None = None) -> None:
        self.advance(self.step_ms)


# ── Timeline math ────────────────────────────────────────────────


def locate_clip(clips: list[AnimeClip], elapsed: float) -> tuple[int, float]:
    """Map elapsed timeline time to (clip index, local progress).

    Scans clips in order accumulating durations; the first clip whose
    [start, start + duration] interval contains elapsed wins, so a time
    exactly on a boundary resolves to the earlier clip at progress 1.

    Raises:
        ValueError: clips is empty.
    """
    if not clips:
        raise ValueError("Cannot locate a clip in an empty timeline")

    clip_start = 0.0
    for i, clip in enumerate(clips):
        clip_end = clip_start + clip.duration_ms
        if clip_start <= elapsed <= clip_end:
            progress = (elapsed - clip_start) / clip.duration_ms
            return i, min(1.0, max(0.0, progress))
        clip_start = clip_end

    if elapsed < 0:
        return 0, 0.0
    return len(clips) - 1, 1.0


# ── Scheduler ────────────────────────────────────────────────────


class PlaybackState(enum.Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    FINISHED = "finished"


class TimelineScheduler:
    """Owns playback state for one timeline and drives per-frame draws.

    Args:
        clips: Ordered clip list.
        draw: Called as draw(clip, local_progress) once per tick.
        clear: Called on reset to blank the drawing surface.
        clock: Millisecond clock; monotonic_ms by default.
    """

    def __init__(
        self,
        clips: list[AnimeClip],
        draw: DrawFn,
        clear: Callable[[], None] | None = None,
        clock: Clock = monotonic_ms,
    ):
        self._clips = list(clips)
        self._draw = draw
        self._clear = clear
        self.clock = clock
        self._finish_listeners: list[Callable[[], None]] = []

        self.state = PlaybackState.IDLE
        self.start_ref: float | None = None
        self.pause_offset = 0.0
        self.current_index = 0
        self.current_progress = 0.0

    # ── Timeline ─────────────────────────────────────────────────

    @property
    def clips(self) -> list[AnimeClip]:
        return list(self._clips)

    @clips.setter
    def clips(self, clips: list[AnimeClip]) -> None:
        """Swap the timeline. Playback resets to IDLE."""
        self.reset()
        self._clips = list(clips)

    @property
    def total_duration(self) -> float:
        return total_duration(self._clips)

    def add_finish_listener(self, listener: Callable[[], None]) -> None:
        self._finish_listeners.append(listener)

    def elapsed(self, now: float | None = None) -> float:
        """Timeline time at now (the frozen position while paused)."""
        if self.state is PlaybackState.PLAYING and self.start_ref is not None:
            now = self.clock() if now is None else now
            return now - self.start_ref
        if self.state is PlaybackState.FINISHED:
            return self.total_duration
        return self.pause_offset

    # ── Transitions ──────────────────────────────────────────────

    def play(self, now: float | None = None) -> bool:
        """IDLE/PAUSED -> PLAYING. Returns False if the call was ignored."""
        if self.state not in (PlaybackState.IDLE, PlaybackState.PAUSED):
            return False
        if not self._clips:
            logger.debug("play() ignored: empty timeline")
            return False
        now = self.clock() if now is None else now
        self.start_ref = now - self.pause_offset
        self.state = PlaybackState.PLAYING
        logger.debug("Playing from %.1fms", self.pause_offset)
        return True

    def pause(self, now: float | None = None) -> bool:
        """PLAYING -> PAUSED, remembering elapsed time. No frame is drawn."""
        if self.state is not PlaybackState.PLAYING:
            return False
        now = self.clock() if now is None else now
        self.pause_offset = min(now - self.start_ref, self.total_duration)
        self.state = PlaybackState.PAUSED
        logger.debug("Paused at %.1fms", self.pause_offset)
        return True

    def toggle(self, now: float | None = None) -> bool:
        if self.state is PlaybackState.PLAYING:
            return self.pause(now)
        return self.play(now)

    def reset(self) -> None:
        """Any state -> IDLE, clock rewound, surface cleared."""
        self.state = PlaybackState.IDLE
        self.start_ref = None
        self.pause_offset = 0.0
        self.current_index = 0
        self.current_progress = 0.0
        if self._clear is not None:
            self._clear()

    # ── Loop ─────────────────────────────────────────────────────

    def tick(self, now: float | None = None) -> bool:
        """Advance one frame.

        Returns:
            True if another tick should be scheduled.
        """
        if self.state is not PlaybackState.PLAYING:
            return False

        now = self.clock() if now is None else now
        elapsed = now - self.start_ref

        if elapsed >= self.total_duration:
            last = len(self._clips) - 1
            self.current_index, self.current_progress = last, 1.0
            self._draw(self._clips[last], 1.0)
            self.state = PlaybackState.FINISHED
            logger.info("Timeline finished (%.0fms)", self.total_duration)
            for listener in list(self._finish_listeners):
                listener()
            return False

        index, progress = locate_clip(self._clips, elapsed)
        self.current_index, self.current_progress = index, progress
        self._draw(self._clips[index], progress)
        return True

    def run(self, fps: float = 30, sleep: Callable[[float], None] = time.sleep) -> None:
        """Host loop: tick once per frame interval until playback stops."""
        interval = 1.0 / fps
        while self.tick():
            sleep(interval)

    def status(self) -> str:
        """Human-readable position, e.g. 'Clip 2/5 · 40%'."""
        if not self._clips:
            return "Awaiting clips"
        return (
            f"Clip {self.current_index + 1}/{len(self._clips)} · "
            f"{self.current_progress * 100:.0f}%"
        )
