"""CLI for live playback.

Loads a session manifest, decodes every referenced panel, and plays the
timeline in real time on the 30 fps host loop, printing the position
whenever the active clip changes.

Usage:
    mangamotion play --manifest session.yaml

    # Validate only (manifest + panel files, no playback)
    mangamotion play --manifest session.yaml --validate
"""

import argparse
import logging
import time

from .manifest import load_manifest, validate_paths
from .session import PlaybackSession


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def open_session(config: dict, **session_kwargs) -> PlaybackSession:
    """Build a session from a loaded manifest and load its panels.

    Raises:
        LoadError: A referenced panel failed to decode.
    """
    video = config["video"]
    output = config["output"]
    session = PlaybackSession(
        size=video["resolution"],
        fps=video["fps"],
        output_dir=output["dir"],
        filename=output["filename"],
        **session_kwargs,
    )
    session.replace(config["panels"], config["clips"], config["beats"])
    return session


def print_summary(config: dict) -> None:
    clips = config["clips"]
    total_ms = sum(c.duration_ms for c in clips)
    print(
        f"{len(config['panels'])} panels, {len(clips)} clips, "
        f"{len(config['beats'])} beats · {total_ms / 1000:.1f}s runtime"
    )
    for i, clip in enumerate(clips):
        print(f"  {i}: {clip.id} -> {clip.panel_id} ({clip.duration_ms:.0f}ms, {len(clip.keyframes)} keyframes)")


def play(manifest_path: str) -> None:
    """Play a manifest's timeline in real time."""
    config = load_manifest(manifest_path)
    validate_paths(config)
    print_summary(config)
    if not config["clips"]:
        print("No clips to play.")
        return

    session = open_session(config)
    last_index = None

    def _sleep(interval):
        nonlocal last_index
        index = session.scheduler.current_index
        if index != last_index:
            print(f"  {session.status()}", flush=True)
            last_index = index
        time.sleep(interval)

    try:
        session.play()
        session.run(sleep=_sleep)
        print(f"\nDone: {session.status()} ({session.state.value})")
    finally:
        session.close()


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Play a session manifest in real time.",
    )
    parser.add_argument(
        "--manifest", required=True,
        help="Path to YAML session manifest",
    )
    parser.add_argument(
        "--validate", action="store_true",
        help="Validate manifest only (check panel files, don't play)",
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Enable debug logging",
    )
    args = parser.parse_args(args)
    configure_logging(args.verbose)

    if args.validate:
        config = load_manifest(args.manifest)
        validate_paths(config)
        print("Manifest valid: ", end="")
        print_summary(config)
        print("All paths verified.")
        return

    play(args.manifest)


if __name__ == "__main__":
    main()
