"""
Frame sampling and tensor packing.

Frames are taken on a fixed cadence rather than at capture rate, stretched to
the square model input and packed as a planar float32 RGB tensor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import cv2
import numpy as np

from models.frame import FrameData


def frame_to_tensor(image: np.ndarray, size: int) -> np.ndarray:
    """
    Convert a frame into a [1, 3, size, size] float32 tensor.

    The frame is stretched to size x size (no letterboxing), converted to RGB
    with any alpha channel dropped, scaled to [0, 1] and laid out as all R
    values, then all G, then all B.

    Args:
        image: BGR, BGRA or grayscale uint8 frame.
        size: Model input edge length.
    """
    resized = cv2.resize(image, (size, size), interpolation=cv2.INTER_LINEAR)

    if resized.ndim == 2:
        rgb = cv2.cvtColor(resized, cv2.COLOR_GRAY2RGB)
    elif resized.shape[2] == 4:
        rgb = cv2.cvtColor(resized, cv2.COLOR_BGRA2RGB)
    else:
        rgb = cv2.cvtColor(resized, cv2.COLOR_BGR2RGB)

    chw = np.transpose(rgb.astype(np.float32) / 255.0, (2, 0, 1))
    return np.ascontiguousarray(chw[None, ...])


@dataclass
class Sample:
    """A sampled frame and the tensor built from it."""
    frame: FrameData
    tensor: np.ndarray


class FrameSampler:
    """
    Throttled frame sampler with single-request back-pressure.

    A tick is due every interval_ms. When a tick comes due while the previous
    request is still outstanding it is skipped and rescheduled, never queued.

    Example:
        sampler = FrameSampler(input_size=640, interval_ms=150)
        sample = sampler.try_sample(source.read, now=time.monotonic())
        if sample is not None:
            worker.submit(...)
        ...
        sampler.release()  # once the response arrives
    """

    def __init__(self, input_size: int = 640, interval_ms: int = 150):
        self.input_size = input_size
        self.interval_s = interval_ms / 1000.0
        self._next_due: float = 0.0
        self._outstanding = False
        self.skipped = 0

    @property
    def outstanding(self) -> bool:
        """True while a submitted tensor has not been answered."""
        return self._outstanding

    def due(self, now: float) -> bool:
        return now >= self._next_due

    def try_sample(
        self,
        read_frame: Callable[[], Optional[FrameData]],
        now: float,
    ) -> Optional[Sample]:
        """
        Take a sample if a tick is due and nothing is in flight.

        Args:
            read_frame: Callable returning the current frame, or None.
            now: Monotonic time in seconds.

        Returns:
            The sample to submit, or None when not due, skipped or no frame.
        """
        if not self.due(now):
            return None
        self._next_due = now + self.interval_s

        if self._outstanding:
            self.skipped += 1
            logging.debug("Sampling tick skipped, inference still outstanding")
            return None

        frame_data = read_frame()
        if frame_data is None:
            return None

        tensor = frame_to_tensor(frame_data.frame, self.input_size)
        self._outstanding = True
        return Sample(frame=frame_data, tensor=tensor)

    def release(self) -> None:
        """Mark the outstanding request as answered."""
        self._outstanding = False

    def reset(self) -> None:
        """Make the next tick due immediately."""
        self._next_due = 0.0
