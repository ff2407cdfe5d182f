"""Session manifest loader.

Parses a YAML manifest describing the panels, clips and story beats of
one playback session, resolves ${path} variables, validates references
and converts everything into immutable model records.

Schema:
  video:
    resolution: [1280, 720]    # optional, default shown
    fps: 30                    # optional
  output:
    dir: ./renders             # optional, default "."
    filename: manga-anime-agent.webm
  paths:
    panels: /data/panels
  panels:
    - {id: p1, image: "${panels}/p1.png", width: 800, height: 600, emphasis: 0.7}
  clips:
    - id: c1
      panel: p1
      duration_ms: 2400
      keyframes:
        - {offset: 0, translate: [0, 0], scale: 1, opacity: 1}
        - {offset: 1, transform: "translate3d(-5%, -5%, 0) scale(1.1)"}
  beats:
    - {panel: p1, narration: "The rain does not stop.", tone: tense}

Keyframe transforms are either structured (translate/scale fields) or a
legacy CSS transform string. Strings are parsed here, once; the
interpolator only ever sees Transform records. Structured fields win
when both are given.
"""

import logging
import re
from pathlib import Path

import yaml

from .capture import ARTIFACT_NAME, CAPTURE_FPS
from .common import resolve_path_vars
from .compositor import SURFACE_SIZE
from .models import AnimeClip, Keyframe, Panel, StoryBeat, Transform

logger = logging.getLogger(__name__)


# ── Valid values ──────────────────────────────────────────────────

VALID_TONES = {
    "calm", "tense", "action", "dramatic", "comedic",
    "mysterious", "melancholic", "hopeful", "neutral",
}

SUPPORTED_TRANSFORM_FUNCTIONS = {"translate", "translate3d", "scale"}

_TRANSFORM_FN_RE = re.compile(r"([a-zA-Z0-9]+)\(([^)]*)\)")
_NUMBER_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?|-?\.\d+)\s*(%|px)?\s*$")


# ── Transform strings ─────────────────────────────────────────────


def _parse_number(arg: str, context: str) -> tuple[float, str | None]:
    match = _NUMBER_RE.match(arg)
    if not match:
        raise ValueError(f"{context}: cannot parse number '{arg.strip()}'")
    return float(match.group(1)), match.group(2)


def parse_transform(text: str) -> Transform:
    """Parse a CSS-style transform string into a Transform.

    Supports translate3d(x%, y%, z), translate(x%, y%) and scale(s).
    Translation must be in percent (or unitless, read as percent).

    Raises:
        ValueError: Unsupported function (e.g. rotate) or bad arguments.
    """
    translate_x, translate_y, scale = 0.0, 0.0, 1.0
    remainder = _TRANSFORM_FN_RE.sub("", text).strip()
    if remainder:
        raise ValueError(f"Transform '{text}': unexpected text '{remainder}'")

    for name, raw_args in _TRANSFORM_FN_RE.findall(text):
        context = f"Transform '{text}'"
        if name not in SUPPORTED_TRANSFORM_FUNCTIONS:
            raise ValueError(
                f"{context}: unsupported function '{name}'. "
                f"Valid: {sorted(SUPPORTED_TRANSFORM_FUNCTIONS)}"
            )
        args = raw_args.split(",")
        if name == "scale":
            if len(args) != 1:
                raise ValueError(f"{context}: scale() takes exactly one argument")
            scale, _ = _parse_number(args[0], context)
            continue

        expected = 3 if name == "translate3d" else 2
        if len(args) != expected:
            raise ValueError(f"{context}: {name}() takes {expected} arguments")
        (translate_x, unit_x), (translate_y, unit_y) = (
            _parse_number(args[0], context), _parse_number(args[1], context),
        )
        if "px" in (unit_x, unit_y):
            raise ValueError(f"{context}: translation must be a percentage, not px")
        if name == "translate3d":
            _parse_number(args[2], context)

    return Transform(translate_x=translate_x, translate_y=translate_y, scale=scale)


# ── Record builders ───────────────────────────────────────────────


def _require(entry: dict, key: str, prefix: str):
    if key not in entry:
        raise ValueError(f"{prefix}: missing required field '{key}'")
    return entry[key]


def _build_panel(entry: dict, index: int, paths: dict) -> Panel:
    prefix = f"Panel {index}"
    try:
        return Panel(
            id=str(_require(entry, "id", prefix)),
            image_ref=resolve_path_vars(str(_require(entry, "image", prefix)), paths),
            width=int(_require(entry, "width", prefix)),
            height=int(_require(entry, "height", prefix)),
            emphasis=float(entry.get("emphasis", 0.5)),
        )
    except (TypeError, ValueError) as exc:
        if str(exc).startswith(prefix):
            raise
        raise ValueError(f"{prefix}: {exc}") from exc


def _build_keyframe(entry: dict, prefix: str) -> Keyframe:
    base = Transform()
    if "transform" in entry:
        try:
            base = parse_transform(str(entry["transform"]))
        except ValueError as exc:
            raise ValueError(f"{prefix}: {exc}") from exc

    translate_x, translate_y = base.translate_x, base.translate_y
    if "translate" in entry:
        translate = entry["translate"]
        if not isinstance(translate, list) or len(translate) != 2:
            raise ValueError(f"{prefix}: 'translate' must be a list of two numbers [x, y]")
        translate_x, translate_y = float(translate[0]), float(translate[1])

    transform = Transform(
        translate_x=translate_x,
        translate_y=translate_y,
        scale=float(entry.get("scale", base.scale)),
    )
    return Keyframe(
        offset=float(_require(entry, "offset", prefix)),
        transform=transform,
        opacity=float(entry.get("opacity", 1.0)),
    )


def _build_clip(entry: dict, index: int, panel_ids: set[str]) -> AnimeClip:
    prefix = f"Clip {index}"
    panel_id = str(_require(entry, "panel", prefix))
    if panel_id not in panel_ids:
        raise ValueError(f"{prefix}: references unknown panel '{panel_id}'")

    keyframes_raw = _require(entry, "keyframes", prefix)
    if not isinstance(keyframes_raw, list) or not keyframes_raw:
        raise ValueError(f"{prefix}: 'keyframes' must be a non-empty list")

    try:
        keyframes = [
            _build_keyframe(kf, f"{prefix}, keyframe {j}")
            for j, kf in enumerate(keyframes_raw)
        ]
        clip = AnimeClip(
            id=str(_require(entry, "id", prefix)),
            panel_id=panel_id,
            duration_ms=float(_require(entry, "duration_ms", prefix)),
            keyframes=keyframes,
        )
    except (TypeError, ValueError) as exc:
        if str(exc).startswith(prefix):
            raise
        raise ValueError(f"{prefix}: {exc}") from exc

    _warn_keyframe_order(clip, prefix)
    return clip


def _warn_keyframe_order(clip: AnimeClip, prefix: str) -> None:
    """Log (but tolerate) keyframe sequences the interpolator has to repair."""
    offsets = [kf.offset for kf in clip.keyframes]
    if len(offsets) < 2:
        logger.warning("%s: only one keyframe, clip will be static", prefix)
    if any(b < a for a, b in zip(offsets, offsets[1:])):
        logger.warning("%s: keyframe offsets are not sorted %s", prefix, offsets)
    if min(offsets) != 0.0 or max(offsets) != 1.0:
        logger.warning("%s: keyframes do not span 0..1 %s", prefix, offsets)


def _build_beat(entry: dict, index: int, panel_ids: set[str]) -> StoryBeat:
    prefix = f"Beat {index}"
    panel_id = str(_require(entry, "panel", prefix))
    if panel_id not in panel_ids:
        raise ValueError(f"{prefix}: references unknown panel '{panel_id}'")
    tone = entry.get("tone", "neutral")
    if tone not in VALID_TONES:
        raise ValueError(
            f"{prefix}: invalid tone '{tone}'. Valid: {sorted(VALID_TONES)}"
        )
    return StoryBeat(
        panel_id=panel_id,
        narration=str(_require(entry, "narration", prefix)),
        tone=tone,
    )


def _check_unique(ids: list[str], kind: str) -> None:
    seen = set()
    for i, ident in enumerate(ids):
        if ident in seen:
            raise ValueError(f"{kind} {i}: duplicate id '{ident}'")
        seen.add(ident)


# ── Manifest loading ──────────────────────────────────────────────


def parse_manifest(raw: dict) -> dict:
    """Validate and normalize an already-parsed manifest dict.

    Returns:
        Dict with keys video (resolution tuple, fps), output (dir Path,
        filename), panels, clips, beats (lists of model records).

    Raises:
        ValueError: Missing fields, bad values, or dangling references.
    """
    raw = raw or {}
    config = {}

    video = dict(raw.get("video") or {})
    resolution = tuple(video.get("resolution", SURFACE_SIZE))
    if len(resolution) != 2 or any(not isinstance(v, int) or v <= 0 for v in resolution):
        raise ValueError(f"video.resolution must be two positive integers, got {list(resolution)}")
    fps = video.get("fps", CAPTURE_FPS)
    if not isinstance(fps, int) or fps <= 0:
        raise ValueError(f"video.fps must be a positive integer, got {fps!r}")
    config["video"] = {"resolution": resolution, "fps": fps}

    paths = raw.get("paths", {})

    output = dict(raw.get("output") or {})
    config["output"] = {
        "dir": Path(resolve_path_vars(str(output.get("dir", ".")), paths)),
        "filename": str(output.get("filename", ARTIFACT_NAME)),
    }

    panels = [_build_panel(p, i, paths) for i, p in enumerate(raw.get("panels") or [])]
    _check_unique([p.id for p in panels], "Panel")
    panel_ids = {p.id for p in panels}

    clips = [_build_clip(c, i, panel_ids) for i, c in enumerate(raw.get("clips") or [])]
    _check_unique([c.id for c in clips], "Clip")

    beats = [_build_beat(b, i, panel_ids) for i, b in enumerate(raw.get("beats") or [])]
    beat_panels = {}
    for i, beat in enumerate(beats):
        if beat.panel_id in beat_panels:
            raise ValueError(
                f"Beat {i}: panel '{beat.panel_id}' already has a beat "
                f"(beat {beat_panels[beat.panel_id]})"
            )
        beat_panels[beat.panel_id] = i

    config["panels"] = panels
    config["clips"] = clips
    config["beats"] = beats
    return config


def load_manifest(manifest_path: str | Path) -> dict:
    """Load, validate, and normalize a session manifest file.

    Raises:
        ValueError: Invalid manifest content.
        FileNotFoundError: Missing manifest file.
    """
    with open(manifest_path) as f:
        raw = yaml.safe_load(f)
    return parse_manifest(raw)


# ── Path validation ───────────────────────────────────────────────


def validate_paths(config: dict) -> None:
    """Check that every panel image file exists on disk.

    data: URLs are skipped. Reports all missing paths at once.

    Raises:
        FileNotFoundError: Lists all missing files.
    """
    missing = [
        panel.image_ref for panel in config["panels"]
        if not panel.image_ref.startswith("data:") and not Path(panel.image_ref).exists()
    ]
    if missing:
        msg = f"Missing {len(missing)} file(s):\n"
        for p in missing:
            msg += f"  - {p}\n"
        raise FileNotFoundError(msg)
