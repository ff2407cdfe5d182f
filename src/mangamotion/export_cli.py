"""CLI for capture export.

Plays the timeline from the start with the capture controller attached
and writes the encoded WebM artifact to the manifest's output directory.
The capture stops when the timeline finishes, or at the latest
600ms after its nominal end.

Usage:
    mangamotion export --manifest session.yaml
    mangamotion export --manifest session.yaml --output-dir renders/

    # Virtual clock: frames are produced as fast as they can be drawn
    mangamotion export --manifest session.yaml --offline
"""

import argparse
import time

from .manifest import load_manifest, validate_paths
from .play_cli import configure_logging, open_session, print_summary
from .scheduler import SteppedClock


def export(manifest_path: str, output_dir: str | None = None, offline: bool = False) -> None:
    """Capture one play-through of a manifest's timeline."""
    config = load_manifest(manifest_path)
    validate_paths(config)
    if output_dir:
        config["output"]["dir"] = output_dir
    print_summary(config)
    if not config["clips"]:
        print("No clips to export.")
        return

    session_kwargs = {}
    sleep = time.sleep
    if offline:
        clock = SteppedClock(step_ms=1000.0 / config["video"]["fps"])
        session_kwargs["clock"] = clock
        # Wall-clock fallback would cut a virtual-clock export short.
        session_kwargs["guard_ms"] = None
        sleep = clock.sleep

    session = open_session(config, **session_kwargs)
    try:
        t0 = time.monotonic()
        session.export()
        session.run(sleep=sleep)
        artifact = session.capture.wait()
        elapsed = time.monotonic() - t0
        if artifact is None:
            print("\nCapture produced no output.")
            return
        print(
            f"\nDone: {artifact.path} ({artifact.size_bytes} bytes, "
            f"{artifact.frames} frames, {elapsed:.1f}s wall)"
        )
    finally:
        session.close()


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Export a session manifest's timeline to WebM.",
    )
    parser.add_argument(
        "--manifest", required=True,
        help="Path to YAML session manifest",
    )
    parser.add_argument(
        "--output-dir",
        help="Directory for the artifact (overrides output.dir)",
    )
    parser.add_argument(
        "--offline", action="store_true",
        help="Use a virtual clock instead of real-time playback",
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Enable debug logging",
    )
    args = parser.parse_args(args)
    configure_logging(args.verbose)
    export(args.manifest, output_dir=args.output_dir, offline=args.offline)


if __name__ == "__main__":
    main()
