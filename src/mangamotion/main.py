"""Subcommand dispatcher for mangamotion.

Usage:
    mangamotion play    --manifest session.yaml
    mangamotion export  --manifest session.yaml [--output-dir renders/]
    mangamotion render  --manifest session.yaml --output preview.mp4
"""

import argparse
import sys


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="mangamotion",
        description="Timeline playback, export and offline rendering of animated panels.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Register subcommands. Each delegates to its own module's main().
    subparsers.add_parser("play", help="Play the timeline in real time")
    subparsers.add_parser("export", help="Play the timeline and capture it to WebM")
    subparsers.add_parser("render", help="Render the timeline (or one frame) offline")

    # Parse only the subcommand name, pass the rest to the subcommand's parser.
    parsed, remaining = parser.parse_known_args(args)

    if parsed.command is None:
        parser.print_help()
        sys.exit(1)

    if parsed.command == "play":
        from .play_cli import main as play_main
        play_main(remaining)
    elif parsed.command == "export":
        from .export_cli import main as export_main
        export_main(remaining)
    elif parsed.command == "render":
        from .render_cli import main as render_main
        render_main(remaining)


if __name__ == "__main__":
    main()
