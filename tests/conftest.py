"""Shared test fixtures for mangamotion tests."""

import pytest
import yaml
from PIL import Image

from mangamotion.models import AnimeClip, Keyframe, Panel, StoryBeat, Transform


# Small surface so compositing stays fast; even dims for yuv420p.
SMALL_SIZE = (160, 90)


def make_clip(clip_id="c1", panel_id="p1", duration_ms=1000, keyframes=None):
    """Clip with a gentle push-in unless keyframes are given."""
    if keyframes is None:
        keyframes = [
            Keyframe(offset=0.0, transform=Transform(0, 0, 1.0), opacity=1.0),
            Keyframe(offset=1.0, transform=Transform(-5, -5, 1.1), opacity=1.0),
        ]
    return AnimeClip(id=clip_id, panel_id=panel_id, duration_ms=duration_ms, keyframes=keyframes)


class FakeEncoder:
    """Stands in for FfmpegEncoder: one chunk per written frame."""

    instances = []

    def __init__(self, size, fps):
        self.size = size
        self.fps = fps
        self.frames = []
        self.started = False
        self.finished = False
        self.aborted = False
        self._on_chunk = None
        FakeEncoder.instances.append(self)

    def start(self, on_chunk):
        self.started = True
        self._on_chunk = on_chunk

    def write(self, frame):
        self.frames.append(frame)
        self._on_chunk(f"frame{len(self.frames)};".encode())

    def finish(self):
        self.finished = True

    def abort(self):
        self.aborted = True


class FakeTimer:
    """threading.Timer stand-in that fires only when told to."""

    instances = []

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        FakeTimer.instances.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function()


@pytest.fixture(autouse=True)
def _reset_fakes():
    FakeEncoder.instances.clear()
    FakeTimer.instances.clear()
    yield


@pytest.fixture
def panel_image(tmp_path):
    """Write a 200x100 solid-red PNG and return its path."""
    path = tmp_path / "panel-red.png"
    Image.new("RGB", (200, 100), (220, 30, 30)).save(path)
    return path


@pytest.fixture
def panels(tmp_path):
    """Two panels backed by real PNG files (red and blue)."""
    red = tmp_path / "p1.png"
    blue = tmp_path / "p2.png"
    Image.new("RGB", (200, 100), (220, 30, 30)).save(red)
    Image.new("RGB", (100, 200), (30, 30, 220)).save(blue)
    return [
        Panel(id="p1", image_ref=str(red), width=200, height=100, emphasis=0.8),
        Panel(id="p2", image_ref=str(blue), width=100, height=200, emphasis=0.3),
    ]


@pytest.fixture
def clips():
    return [
        make_clip("c1", "p1", duration_ms=1000),
        make_clip("c2", "p2", duration_ms=500),
    ]


@pytest.fixture
def beats():
    return [StoryBeat(panel_id="p1", narration="The rain does not stop.", tone="tense")]


@pytest.fixture
def write_manifest(tmp_path):
    """Return a function that writes a manifest dict to YAML and returns its path."""
    def _write(content: dict, name: str = "session.yaml"):
        path = tmp_path / name
        path.write_text(yaml.dump(content))
        return path
    return _write
