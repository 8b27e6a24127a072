"""
Frame source contract for the scan pipeline.

The engine asks its source for "the frame right now" once per sampling tick.
A USB camera, a video file and a test fixture all satisfy it the same way.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional

from models.frame import FrameData


@dataclass
class ObservationConfig:
    """
    Settings shared by every frame source.

    Attributes:
        source_id: Name stamped on each FrameData (e.g. "camera-0").
        resolution: Requested (width, height); None leaves the device default.
        fps: Requested capture rate; None leaves the device default.
        metadata: Anything source-specific.
    """
    source_id: str = "default"
    resolution: Optional[tuple[int, int]] = None
    fps: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class ObservationSource(ABC):
    """
    A camera-like thing the scan loop can poll.

    The engine opens a source only after the model has loaded and closes it
    in the same teardown that stops the inference worker, so close() may run
    on a source that never opened or was already closed.

        with OpenCVSource(config) as source:
            frame_data = source.read()
    """

    def __init__(self, config: ObservationConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0

    @property
    def source_id(self) -> str:
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def frame_index(self) -> int:
        """Frames handed out since the last open()."""
        return self._frame_index

    @abstractmethod
    def open(self) -> None:
        """
        Acquire the device or file.

        Raises:
            RuntimeError: If it cannot be acquired.
        """

    @abstractmethod
    def read(self) -> Optional[FrameData]:
        """Current frame, or None when nothing can be read this tick."""

    @abstractmethod
    def close(self) -> None:
        """Release the device. Must tolerate repeated calls."""

    def __enter__(self) -> "ObservationSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[FrameData]:
        """Yield frames until read() comes back empty."""
        if not self._is_open:
            raise RuntimeError("Source must be open before iterating")
        frame_data = self.read()
        while frame_data is not None:
            yield frame_data
            frame_data = self.read()
