"""Tests for the session data model."""

import pytest

from mangamotion.models import (
    AnimeClip, Keyframe, Panel, StoryBeat, Transform, total_duration,
)

from conftest import make_clip


class TestPanel:
    def test_defaults(self):
        panel = Panel(id="p1", image_ref="a.png", width=10, height=20)
        assert panel.emphasis == 0.5

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError, match="width and height"):
            Panel(id="p1", image_ref="a.png", width=0, height=20)

    def test_rejects_emphasis_out_of_range(self):
        with pytest.raises(ValueError, match="emphasis"):
            Panel(id="p1", image_ref="a.png", width=10, height=20, emphasis=1.5)

    def test_is_frozen(self):
        panel = Panel(id="p1", image_ref="a.png", width=10, height=20)
        with pytest.raises(AttributeError):
            panel.width = 5


class TestKeyframe:
    def test_default_transform_is_identity(self):
        kf = Keyframe(offset=0.0)
        assert kf.transform == Transform(0.0, 0.0, 1.0)
        assert kf.opacity == 1.0

    @pytest.mark.parametrize("offset", [-0.1, 1.01])
    def test_rejects_offset_out_of_range(self, offset):
        with pytest.raises(ValueError, match="offset"):
            Keyframe(offset=offset)

    def test_rejects_opacity_out_of_range(self):
        with pytest.raises(ValueError, match="opacity"):
            Keyframe(offset=0.5, opacity=2.0)

    def test_rejects_negative_scale(self):
        with pytest.raises(ValueError, match="scale"):
            Transform(scale=-1.0)


class TestAnimeClip:
    def test_keyframes_stored_as_tuple(self):
        clip = make_clip()
        assert isinstance(clip.keyframes, tuple)
        assert len(clip.keyframes) == 2

    def test_clip_is_hashable(self):
        assert hash(make_clip()) == hash(make_clip())

    def test_rejects_zero_duration(self):
        with pytest.raises(ValueError, match="duration_ms"):
            make_clip(duration_ms=0)

    def test_rejects_empty_keyframes(self):
        with pytest.raises(ValueError, match="at least one keyframe"):
            AnimeClip(id="c1", panel_id="p1", duration_ms=100, keyframes=[])


class TestStoryBeat:
    def test_default_tone(self):
        assert StoryBeat(panel_id="p1", narration="...").tone == "neutral"


class TestTotalDuration:
    def test_sums_durations(self):
        clips = [make_clip("a", duration_ms=1000), make_clip("b", duration_ms=250)]
        assert total_duration(clips) == 1250

    def test_empty_timeline(self):
        assert total_duration([]) == 0
