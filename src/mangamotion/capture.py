"""Capture controller: taps the surface into a fixed-rate video encoder.

Capture flow:
  1. start(): rewind the scheduler, open the encoder, subscribe to the
     surface, arm a fallback timer at total + STOP_GUARD_MS, play.
  2. Every presented frame is sampled onto a CAPTURE_FPS grid (the
     latest frame is repeated to fill gaps) and written to ffmpeg.
  3. ffmpeg's stdout is read on a background thread; each read is one
     encoded chunk, buffered in arrival order.
  4. stop() (scheduler finish, or the fallback timer): close the
     encoder, join the chunks, write the artifact.

Encoding uses the ffmpeg binary shipped with imageio-ffmpeg, driven as
a subprocess with raw rgb24 frames on stdin and a WebM/VP9 stream on
stdout.
"""

import logging
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import imageio_ffmpeg
import numpy as np

from .scheduler import TimelineScheduler, monotonic_ms
from .surface import Surface

logger = logging.getLogger(__name__)

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()

CAPTURE_FPS = 30
STOP_GUARD_MS = 600
ARTIFACT_NAME = "manga-anime-agent.webm"
ARTIFACT_MIME = "video/webm"
CHUNK_SIZE = 64 * 1024
GRID_EPSILON = 1e-6              # absorbs float drift in clock steps of 1000/fps


# ── Encoder ──────────────────────────────────────────────────────


class FfmpegEncoder:
    """Streams raw frames through ffmpeg, emitting encoded chunks.

    Args:
        size: (W, H) of incoming frames. Both should be even for yuv420p.
        fps: Output frame rate.
        codec: ffmpeg video codec.
        container: ffmpeg muxer name.
    """

    def __init__(
        self,
        size: tuple[int, int],
        fps: int = CAPTURE_FPS,
        codec: str = "libvpx-vp9",
        container: str = "webm",
    ):
        self.size = size
        self.fps = fps
        self.codec = codec
        self.container = container
        self._proc: subprocess.Popen | None = None
        self._reader: threading.Thread | None = None
        self._stderr_reader: threading.Thread | None = None
        self._stderr = bytearray()

    def command(self) -> list[str]:
        w, h = self.size
        return [
            _FFMPEG, "-y", "-loglevel", "error",
            "-f", "rawvideo", "-pix_fmt", "rgb24",
            "-s", f"{w}x{h}", "-r", str(self.fps),
            "-i", "pipe:0",
            "-an",
            "-c:v", self.codec, "-pix_fmt", "yuv420p",
            "-deadline", "realtime", "-cpu-used", "8", "-b:v", "2M",
            "-f", self.container, "pipe:1",
        ]

    def start(self, on_chunk: Callable[[bytes], None]) -> None:
        self._proc = subprocess.Popen(
            self.command(),
            stdin=subprocess.PIPE, stdout=subprocess.PIPE, stderr=subprocess.PIPE,
        )
        proc = self._proc

        def _pump_stdout():
            while True:
                chunk = proc.stdout.read1(CHUNK_SIZE)
                if not chunk:
                    break
                on_chunk(chunk)

        def _pump_stderr():
            for line in proc.stderr:
                self._stderr.extend(line)

        self._reader = threading.Thread(target=_pump_stdout, name="ffmpeg-stdout", daemon=True)
        self._stderr_reader = threading.Thread(target=_pump_stderr, name="ffmpeg-stderr", daemon=True)
        self._reader.start()
        self._stderr_reader.start()

    def write(self, frame: np.ndarray) -> None:
        self._proc.stdin.write(np.ascontiguousarray(frame, dtype=np.uint8).tobytes())

    def finish(self) -> None:
        """Flush and wait for ffmpeg. Every chunk has been delivered on return.

        Raises:
            subprocess.CalledProcessError: ffmpeg exited non-zero.
        """
        proc = self._proc
        proc.stdin.close()
        returncode = proc.wait()
        self._reader.join()
        self._stderr_reader.join()
        if returncode != 0:
            raise subprocess.CalledProcessError(
                returncode, self.command(), stderr=bytes(self._stderr),
            )

    def abort(self) -> None:
        proc = self._proc
        if proc is None or proc.poll() is not None:
            return
        proc.kill()
        proc.wait()


EncoderFactory = Callable[[tuple[int, int], int], FfmpegEncoder]


# ── Artifact ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class CaptureArtifact:
    path: Path
    size_bytes: int
    frames: int
    mime_type: str = ARTIFACT_MIME


# ── Controller ───────────────────────────────────────────────────


class CaptureController:
    """Records one play-through of the scheduler's timeline.

    Args:
        scheduler: Timeline to rewind, play, and watch for FINISHED.
        surface: Frame stream to tap.
        output_dir: Directory the artifact is written to.
        filename: Deterministic artifact name.
        encoder_factory: Called as factory(size, fps); FfmpegEncoder by default.
        fps: Fixed capture rate.
        guard_ms: Fallback stop margin added to the timeline duration, or
            None for no wall-clock fallback (virtual-clock exports).
        clock: Millisecond clock used to place frames on the fps grid.
        timer_factory: threading.Timer-compatible constructor.
    """

    def __init__(
        self,
        scheduler: TimelineScheduler,
        surface: Surface,
        output_dir: str | Path = ".",
        filename: str = ARTIFACT_NAME,
        encoder_factory: EncoderFactory = FfmpegEncoder,
        fps: int = CAPTURE_FPS,
        guard_ms: float | None = STOP_GUARD_MS,
        clock: Callable[[], float] = monotonic_ms,
        timer_factory=threading.Timer,
    ):
        self.scheduler = scheduler
        self.surface = surface
        self.output_dir = Path(output_dir)
        self.filename = filename
        self.fps = fps
        self.guard_ms = guard_ms
        self.clock = clock
        self._encoder_factory = encoder_factory
        self._timer_factory = timer_factory

        self._lock = threading.Lock()
        self._active = False
        self._encoder = None
        self._timer = None
        self._unsubscribe = None
        self._chunks: list[bytes] = []
        self._frames_written = 0
        self._started_at: float | None = None
        self._stopped = threading.Event()
        self._stopped.set()
        self.error: BaseException | None = None
        self.artifact: CaptureArtifact | None = None

        scheduler.add_finish_listener(self._on_finished)

    @property
    def active(self) -> bool:
        return self._active

    @property
    def frames_written(self) -> int:
        return self._frames_written

    # ── Control ──────────────────────────────────────────────────

    def start(self) -> bool:
        """Begin a capture from the start of the timeline.

        Returns:
            False (and does nothing) if a capture is already active or
            the timeline is empty.
        """
        with self._lock:
            if self._active:
                logger.debug("Capture already active, start() ignored")
                return False
            if not self.scheduler.clips:
                logger.debug("start() ignored: empty timeline")
                return False

            self.release_artifact()
            self._chunks = []
            self._frames_written = 0
            self._started_at = None
            self.error = None

            encoder = self._encoder_factory(self.surface.size, self.fps)
            encoder.start(self._on_chunk)
            self._encoder = encoder
            self._active = True
            self._stopped.clear()

        self.scheduler.reset()
        self._unsubscribe = self.surface.subscribe(self._on_frame)

        total = self.scheduler.total_duration
        if self.guard_ms is not None:
            self._timer = self._timer_factory((total + self.guard_ms) / 1000.0, self._on_timeout)
            self._timer.daemon = True
            self._timer.start()

        logger.info("Capture started (%.0fms timeline, %d fps)", total, self.fps)
        self.scheduler.play()
        return True

    def stop(self) -> CaptureArtifact | None:
        """Finish encoding and expose the artifact. No-op when idle."""
        encoder = self._detach()
        if encoder is None:
            return None
        try:
            return self._finish(encoder)
        except Exception as exc:
            self.error = exc
            raise
        finally:
            self._stopped.set()

    def wait(self, timeout: float | None = None) -> CaptureArtifact | None:
        """Block until the current capture has fully stopped.

        A stop triggered by the fallback timer runs on the timer thread;
        this returns once its artifact is written (or the capture was
        discarded). Returns immediately when no capture was started.

        Raises:
            TimeoutError: The capture is still finishing after timeout.
            subprocess.CalledProcessError: The encoder failed while
                stopping.
        """
        if not self._stopped.wait(timeout):
            raise TimeoutError("Capture still finishing")
        if self.error is not None:
            raise self.error
        return self.artifact

    def _finish(self, encoder) -> CaptureArtifact | None:
        encoder.finish()
        data = b"".join(self._chunks)
        if not data:
            logger.warning("Capture produced no data; no artifact written")
            return None

        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / self.filename
        path.write_bytes(data)
        self.artifact = CaptureArtifact(
            path=path, size_bytes=len(data), frames=self._frames_written,
        )
        self._chunks = []
        logger.info(
            "Capture written: %s (%d bytes, %d frames)",
            path, len(data), self._frames_written,
        )
        return self.artifact

    def discard(self) -> None:
        """Abort an active capture without producing an artifact."""
        encoder = self._detach()
        if encoder is None:
            return
        encoder.abort()
        self._chunks = []
        self._stopped.set()
        logger.info("Capture discarded")

    def release_artifact(self) -> None:
        """Invalidate the previously exposed artifact and delete its file."""
        if self.artifact is None:
            return
        self.artifact.path.unlink(missing_ok=True)
        logger.debug("Released artifact %s", self.artifact.path)
        self.artifact = None

    # ── Internals ────────────────────────────────────────────────

    def _detach(self):
        """Mark inactive and disconnect timer and surface. Returns the encoder."""
        with self._lock:
            if not self._active:
                return None
            self._active = False
            encoder, self._encoder = self._encoder, None
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None
            return encoder

    def _on_frame(self, frame: np.ndarray) -> None:
        with self._lock:
            if not self._active:
                return
            now = self.clock()
            if self._started_at is None:
                self._started_at = now
            due = int((now - self._started_at) * self.fps / 1000.0 + GRID_EPSILON) + 1
            while self._frames_written < due:
                self._encoder.write(frame)
                self._frames_written += 1

    def _on_chunk(self, chunk: bytes) -> None:
        self._chunks.append(chunk)

    def _on_finished(self) -> None:
        if self._active:
            self.stop()

    def _on_timeout(self) -> None:
        if self._active:
            logger.warning("Capture fallback timer fired before the timeline finished")
            try:
                self.stop()
            except Exception:
                # Kept on self.error and re-raised by wait() on the host thread.
                logger.exception("Capture failed to finish on the fallback timer")
