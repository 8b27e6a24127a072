"""
Captured frames as handed from a source to the scan pipeline.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np


@dataclass
class FrameData:
    """
    One frame plus where and when it was captured.

    The engine keeps the FrameData of the request in flight so the secondary
    decoder crops from exactly the pixels the detector saw.

    Attributes:
        frame: uint8 pixels, BGR, BGRA or single-channel.
        width: Pixel width; detections come back in this space.
        height: Pixel height.
        timestamp: Unix capture time, reported with results.
        captured_at: Monotonic capture time, used for result deduplication.
        frame_index: Count of frames read from the source since it opened.
        source: source_id of the producing source.
    """
    frame: np.ndarray
    width: int
    height: int
    timestamp: float
    frame_index: int = 0
    source: Optional[str] = None
    captured_at: float = field(default_factory=time.monotonic)

    @classmethod
    def from_numpy(
        cls,
        frame: np.ndarray,
        timestamp: float,
        frame_index: int = 0,
        source: Optional[str] = None,
    ) -> "FrameData":
        """Wrap an array, taking width and height from its shape."""
        height, width = frame.shape[:2]
        return cls(frame, width, height, timestamp, frame_index, source)

    @property
    def channels(self) -> int:
        return 1 if self.frame.ndim == 2 else int(self.frame.shape[2])

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height)"""
        return (self.width, self.height)
