"""The fixed-resolution drawing surface and its live frame stream.

The compositor's output is presented here. Subscribers (the capture
controller) receive every presented frame in order. Clearing blanks the
surface without emitting a frame.
"""

import logging
from typing import Callable

import numpy as np

from .compositor import SURFACE_SIZE

logger = logging.getLogger(__name__)

FrameSink = Callable[[np.ndarray], None]


class Surface:
    def __init__(self, size: tuple[int, int] = SURFACE_SIZE):
        self.size = size
        self._sinks: list[FrameSink] = []
        self.frames_presented = 0
        self.frame = self._blank()

    @property
    def shape(self) -> tuple[int, int, int]:
        w, h = self.size
        return (h, w, 3)

    def _blank(self) -> np.ndarray:
        return np.zeros(self.shape, dtype=np.uint8)

    def present(self, frame: np.ndarray) -> None:
        """Show a composited frame and forward it to every subscriber."""
        if frame.shape != self.shape:
            raise ValueError(
                f"Frame shape {frame.shape} does not match surface {self.shape}"
            )
        self.frame = frame
        self.frames_presented += 1
        for sink in list(self._sinks):
            sink(frame)

    def clear(self) -> None:
        self.frame = self._blank()

    def subscribe(self, sink: FrameSink) -> Callable[[], None]:
        """Register a frame sink. Returns a callable that unsubscribes it."""
        self._sinks.append(sink)
        logger.debug("Surface sink added (%d active)", len(self._sinks))

        def _unsubscribe():
            if sink in self._sinks:
                self._sinks.remove(sink)

        return _unsubscribe
