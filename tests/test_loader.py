"""Tests for concurrent panel loading."""

import base64
import io
import threading

import pytest
from PIL import Image

from mangamotion.errors import LoadError, MissingPanelForClip
from mangamotion.loader import AssetLoader, decode_image, referenced_panel_ids
from mangamotion.models import Panel

from conftest import make_clip


def _png_data_url(color=(0, 200, 0), size=(8, 4)):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


class TestDecodeImage:
    def test_decodes_path_as_rgba(self, panel_image):
        img = decode_image(str(panel_image))
        assert img.mode == "RGBA"
        assert img.size == (200, 100)

    def test_decodes_base64_data_url(self):
        img = decode_image(_png_data_url(size=(8, 4)))
        assert img.size == (8, 4)
        assert img.getpixel((0, 0)) == (0, 200, 0, 255)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(OSError):
            decode_image(str(tmp_path / "nope.png"))

    def test_malformed_data_url_raises(self):
        with pytest.raises(ValueError, match="separator"):
            decode_image("data:image/png;base64")

    def test_undecodable_bytes_raise(self, tmp_path):
        bad = tmp_path / "bad.png"
        bad.write_bytes(b"not an image")
        with pytest.raises(OSError):
            decode_image(str(bad))


class TestReferencedPanelIds:
    def test_duplicates_collapsed_in_first_use_order(self):
        clips = [make_clip("a", "p2"), make_clip("b", "p1"), make_clip("c", "p2")]
        assert referenced_panel_ids(clips) == ["p2", "p1"]


class TestAssetLoader:
    def test_load_commits_all_bitmaps(self, panels, clips):
        loader = AssetLoader()
        assert loader.load(clips, panels) is True
        assert loader.ready
        assert set(loader.bitmaps) == {"p1", "p2"}
        assert loader.get("p2").size == (100, 200)
        loader.close()

    def test_duplicate_references_decode_once(self, panels):
        calls = []

        def counting(ref):
            calls.append(ref)
            return Image.new("RGBA", (4, 4))

        loader = AssetLoader(decoder=counting)
        clips = [make_clip("a", "p1"), make_clip("b", "p1"), make_clip("c", "p1")]
        assert loader.load(clips, panels) is True
        assert len(calls) == 1
        loader.close()

    def test_unreferenced_panels_are_not_decoded(self, panels):
        loader = AssetLoader()
        loader.load([make_clip("a", "p1")], panels)
        assert set(loader.bitmaps) == {"p1"}
        loader.close()

    def test_failure_is_all_or_nothing(self, panels, clips, tmp_path):
        broken = [panels[0], Panel(id="p2", image_ref=str(tmp_path / "gone.png"), width=1, height=1)]
        loader = AssetLoader()
        with pytest.raises(LoadError, match="p2"):
            loader.load(clips, broken)
        assert not loader.ready
        assert loader.bitmaps == {}
        loader.close()

    def test_failure_chains_original_error(self, panels, clips):
        def explode(ref):
            raise OSError("disk on fire")

        loader = AssetLoader(decoder=explode)
        with pytest.raises(LoadError) as excinfo:
            loader.load(clips, panels)
        assert isinstance(excinfo.value.__cause__, OSError)
        loader.close()

    def test_unknown_panel_record(self, panels):
        loader = AssetLoader()
        with pytest.raises(LoadError, match="ghost"):
            loader.load([make_clip("a", "ghost")], panels)
        assert not loader.ready
        loader.close()

    def test_empty_clip_list_never_ready(self, panels, clips):
        loader = AssetLoader()
        loader.load(clips, panels)
        assert loader.load([], panels) is False
        assert not loader.ready
        assert loader.bitmaps == {}
        loader.close()

    def test_get_missing_panel(self):
        loader = AssetLoader()
        with pytest.raises(MissingPanelForClip) as excinfo:
            loader.get("p9")
        assert excinfo.value.panel_id == "p9"
        assert "p9" in str(excinfo.value)
        # Still a KeyError for callers that treat the cache as a mapping.
        assert isinstance(excinfo.value, KeyError)
        loader.close()

    def test_each_load_bumps_generation(self, panels, clips):
        loader = AssetLoader()
        loader.load(clips, panels)
        loader.load(clips, panels)
        assert loader.generation == 2
        loader.close()


class TestStaleBatches:
    def test_stale_batch_never_overwrites_newer(self):
        """A slow first batch finishing after a newer one is discarded."""
        release = threading.Event()
        entered = threading.Event()

        def decoder(ref):
            if ref == "slow":
                entered.set()
                assert release.wait(timeout=5)
            return Image.new("RGBA", (2, 2), (255, 0, 0, 255) if ref == "slow" else (0, 0, 255, 255))

        old_panels = [Panel(id="p1", image_ref="slow", width=2, height=2)]
        new_panels = [Panel(id="p1", image_ref="fast", width=2, height=2)]
        clips = [make_clip("a", "p1")]

        loader = AssetLoader(decoder=decoder)
        stale = loader.submit(clips, old_panels)
        assert entered.wait(timeout=5)

        assert loader.load(clips, new_panels) is True
        release.set()

        assert stale.result(timeout=5) is False
        assert loader.ready
        assert loader.get("p1").getpixel((0, 0)) == (0, 0, 255, 255)
        loader.close()

    def test_stale_failure_is_not_reported(self):
        release = threading.Event()
        entered = threading.Event()

        def decoder(ref):
            if ref == "broken":
                entered.set()
                assert release.wait(timeout=5)
                raise OSError("corrupt")
            return Image.new("RGBA", (2, 2))

        clips = [make_clip("a", "p1")]
        loader = AssetLoader(decoder=decoder)
        stale = loader.submit(clips, [Panel(id="p1", image_ref="broken", width=2, height=2)])
        assert entered.wait(timeout=5)

        loader.load(clips, [Panel(id="p1", image_ref="ok", width=2, height=2)])
        release.set()

        assert stale.result(timeout=5) is False
        assert loader.ready
        loader.close()

    def test_invalidate_drops_readiness(self, panels, clips):
        loader = AssetLoader()
        loader.load(clips, panels)
        loader.invalidate()
        assert not loader.ready
        assert loader.bitmaps == {}
        loader.close()
