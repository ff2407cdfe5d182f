"""CLI for offline rendering.

Renders the timeline through moviepy without a playback clock, or a
single frame to an image with --at.

Usage:
    mangamotion render --manifest session.yaml --output preview.mp4
    mangamotion render --manifest session.yaml --output frame.png --at 1500
"""

import argparse
import time

from .loader import AssetLoader
from .manifest import load_manifest, validate_paths
from .play_cli import configure_logging
from .render import render_still, render_timeline


def render(manifest_path: str, output_path: str, at_ms: float | None = None) -> None:
    """Render a manifest's timeline (or one frame of it) to output_path."""
    config = load_manifest(manifest_path)
    validate_paths(config)
    clips = config["clips"]
    if not clips:
        print("No clips to render.")
        return

    loader = AssetLoader()
    try:
        loader.load(clips, config["panels"])
        bitmaps = loader.bitmaps
    finally:
        loader.close()

    beats = {beat.panel_id: beat for beat in config["beats"]}
    video = config["video"]

    if at_ms is not None:
        path = render_still(clips, bitmaps, beats, at_ms, output_path, video["resolution"])
        print(f"Done: {path} (frame at {at_ms:.0f}ms)")
        return

    w, h = video["resolution"]
    print(f"Resolution: {w}x{h}, {video['fps']}fps")
    print(f"Writing to: {output_path}")
    t0 = time.monotonic()
    render_timeline(clips, bitmaps, beats, output_path, fps=video["fps"], surface_size=(w, h))
    print(f"\nDone: {output_path} ({time.monotonic() - t0:.1f}s wall)")


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Render a session manifest offline to video or a still frame.",
    )
    parser.add_argument(
        "--manifest", required=True,
        help="Path to YAML session manifest",
    )
    parser.add_argument(
        "--output", required=True,
        help="Output video path (.webm/.mp4), or image path with --at",
    )
    parser.add_argument(
        "--at", type=float, default=None,
        help="Render only the frame at this timeline time (ms)",
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Enable debug logging",
    )
    args = parser.parse_args(args)
    configure_logging(args.verbose)
    render(args.manifest, args.output, at_ms=args.at)


if __name__ == "__main__":
    main()
