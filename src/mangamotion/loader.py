"""Concurrent, all-or-nothing panel bitmap decoding.

Every panel referenced by at least one clip is decoded in parallel
(duplicates collapsed by id). The cache is populated only when all of
them succeed. Each batch takes a generation number; a batch commits only
if its generation is still the newest when it finishes, so a slow stale
batch can never overwrite the cache of a newer one.
"""

import base64
import io
import logging
import threading
import urllib.parse
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable

from PIL import Image

from .errors import LoadError, MissingPanelForClip
from .models import AnimeClip, Panel

logger = logging.getLogger(__name__)

Decoder = Callable[[str], Image.Image]


# ── Decoding ─────────────────────────────────────────────────────


def decode_image(ref: str) -> Image.Image:
    """Decode a panel image reference into a fully-loaded RGBA image.

    Accepts a filesystem path or a ``data:`` URL (base64 or
    percent-encoded payload).

    Raises:
        OSError: File missing or not a decodable image.
        ValueError: Malformed data URL.
    """
    if ref.startswith("data:"):
        header, sep, payload = ref.partition(",")
        if not sep:
            raise ValueError("Malformed data URL: missing ',' separator")
        if header.endswith(";base64"):
            data = base64.b64decode(payload, validate=True)
        else:
            data = urllib.parse.unquote_to_bytes(payload)
        source = io.BytesIO(data)
    else:
        source = Path(ref)

    with Image.open(source) as img:
        img.load()
        return img.convert("RGBA")


def referenced_panel_ids(clips: list[AnimeClip]) -> list[str]:
    """Distinct panel ids referenced by clips, in first-use order."""
    return list(dict.fromkeys(clip.panel_id for clip in clips))


# ── Loader ───────────────────────────────────────────────────────


class AssetLoader:
    """Owns the panel-id -> bitmap cache for one session."""

    def __init__(self, decoder: Decoder = decode_image, max_workers: int = 8):
        self._decoder = decoder
        self._max_workers = max_workers
        self._lock = threading.Lock()
        self._generation = 0
        self._cache: dict[str, Image.Image] = {}
        self._ready = False
        self._batches = ThreadPoolExecutor(max_workers=2, thread_name_prefix="asset-batch")

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def bitmaps(self) -> dict[str, Image.Image]:
        with self._lock:
            return dict(self._cache)

    def get(self, panel_id: str) -> Image.Image:
        try:
            return self._cache[panel_id]
        except KeyError:
            raise MissingPanelForClip(panel_id) from None

    def invalidate(self) -> int:
        """Start a new generation: clear the cache and drop readiness."""
        with self._lock:
            self._generation += 1
            self._cache = {}
            self._ready = False
            return self._generation

    def load(self, clips: list[AnimeClip], panels: list[Panel]) -> bool:
        """Decode every referenced panel and commit them as one batch.

        Returns:
            True if this batch committed, False if there was nothing to
            load or a newer batch superseded this one.

        Raises:
            LoadError: This (still current) batch failed; readiness stays
                false and the cache stays empty.
        """
        generation = self.invalidate()
        if not clips:
            logger.debug("Empty clip list, cache cleared (generation %d)", generation)
            return False

        panel_ids = referenced_panel_ids(clips)
        by_id = {panel.id: panel for panel in panels}
        unknown = [pid for pid in panel_ids if pid not in by_id]
        if unknown:
            raise LoadError(f"No panel record for referenced panel(s): {', '.join(unknown)}")

        logger.info("Loading %d panel(s) (generation %d)", len(panel_ids), generation)
        results: dict[str, Image.Image] = {}
        failures: list[tuple[str, Exception]] = []
        workers = min(self._max_workers, len(panel_ids))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="asset-decode") as pool:
            futures = {pid: pool.submit(self._decoder, by_id[pid].image_ref) for pid in panel_ids}
            for pid, future in futures.items():
                try:
                    results[pid] = future.result()
                except Exception as exc:
                    failures.append((pid, exc))

        with self._lock:
            if generation != self._generation:
                logger.info(
                    "Discarding stale batch %d (current generation %d)",
                    generation, self._generation,
                )
                return False
            if failures:
                pid, exc = failures[0]
                names = ", ".join(p for p, _ in failures)
                raise LoadError(f"Failed to decode panel(s) {names}: {exc}") from exc
            self._cache = results
            self._ready = True

        logger.info("Panels ready (generation %d)", generation)
        return True

    def submit(self, clips: list[AnimeClip], panels: list[Panel]) -> Future:
        """Run load() in the background. The future resolves to its result."""
        return self._batches.submit(self.load, list(clips), list(panels))

    def close(self) -> None:
        self._batches.shutdown(wait=True)
