"""Session-level errors.

Validation problems in manifests and records raise ValueError, missing
files raise FileNotFoundError. The classes here cover the playback
contract itself.
"""


class MangaMotionError(Exception):
    """Base class for playback errors."""


class LoadError(MangaMotionError):
    """A referenced panel image could not be decoded.

    The whole batch fails: readiness stays false and no partial cache is
    kept.
    """


class MissingPanelForClip(MangaMotionError, KeyError):
    """A clip references a panel id that has no decoded bitmap."""

    def __init__(self, panel_id: str):
        super().__init__(panel_id)
        self.panel_id = panel_id

    def __str__(self):
        return f"No decoded bitmap for panel '{self.panel_id}'"
