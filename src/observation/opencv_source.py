"""
OpenCV-based observation source.

Supports:
- USB webcams (device_id as int, e.g. 0)
- Video files and stream URLs (device_id as str)
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import cv2
import numpy as np

from models.frame import FrameData
from .base import ObservationSource, ObservationConfig


@dataclass
class OpenCVSourceConfig(ObservationConfig):
    """
    Configuration for cv2.VideoCapture sources.

    Attributes:
        device_id: Camera index (int), or file path / stream URL (str).
        buffer_size: Capture buffer size; 1 keeps frames fresh on live cameras.
        max_retries: Attempts when opening the device.
        rotate: Rotation in degrees (0, 90, 180, 270).
        flip_horizontal: Mirror frames left/right.
        flip_vertical: Mirror frames top/bottom.
    """
    device_id: Union[int, str] = 0
    buffer_size: int = 1
    max_retries: int = 3
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_camera_config(cls, camera_cfg: Dict[str, Any], source_id: str = "camera") -> "OpenCVSourceConfig":
        """Adapter: Create from the `camera` section of the YAML config."""
        resolution = camera_cfg.get("resolution")
        if resolution:
            resolution = tuple(resolution)

        return cls(
            source_id=source_id,
            resolution=resolution,
            fps=camera_cfg.get("fps"),
            device_id=camera_cfg.get("device_id", 0),
            buffer_size=camera_cfg.get("buffer_size", 1),
            max_retries=camera_cfg.get("max_retries", 3),
            rotate=camera_cfg.get("rotate", 0) or 0,
            flip_horizontal=camera_cfg.get("flip_horizontal", False),
            flip_vertical=camera_cfg.get("flip_vertical", False),
        )


class OpenCVSource(ObservationSource):
    """
    Frame source backed by cv2.VideoCapture.

    Example:
        config = OpenCVSourceConfig(device_id=0, resolution=(1280, 720))
        with OpenCVSource(config) as source:
            frame_data = source.read()
    """

    def __init__(self, config: OpenCVSourceConfig):
        super().__init__(config)
        self._opencv_config = config
        self._cap: Optional[cv2.VideoCapture] = None

    @property
    def device_id(self) -> Union[int, str]:
        return self._opencv_config.device_id

    @property
    def is_file(self) -> bool:
        return isinstance(self.device_id, str) and os.path.exists(self.device_id)

    def open(self) -> None:
        if self._is_open:
            return

        cfg = self._opencv_config
        for attempt in range(1, cfg.max_retries + 1):
            self._cap = cv2.VideoCapture(self.device_id)
            if self._cap.isOpened():
                break
            self._cap.release()
            self._cap = None
            if attempt < cfg.max_retries:
                wait_time = min(2 ** attempt, 10)
                logging.warning(
                    f"Failed to open device {self.device_id} "
                    f"(attempt {attempt}/{cfg.max_retries}), retrying in {wait_time}s"
                )
                time.sleep(wait_time)
        else:
            raise RuntimeError(
                f"Failed to open device {self.device_id} after {cfg.max_retries} attempts"
            )

        if isinstance(self.device_id, int):
            if cfg.resolution:
                w, h = cfg.resolution
                self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
                self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
            if cfg.fps:
                self._cap.set(cv2.CAP_PROP_FPS, cfg.fps)
            self._cap.set(cv2.CAP_PROP_BUFFERSIZE, cfg.buffer_size)
            logging.info(
                f"Camera actual settings - Resolution: "
                f"({self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)}x{self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)}), "
                f"FPS: {self._cap.get(cv2.CAP_PROP_FPS)}"
            )

        self._is_open = True
        self._frame_index = 0
        logging.info(f"OpenCVSource opened: source_id={self.source_id}, device={self.device_id}")

    def read(self) -> Optional[FrameData]:
        if not self._is_open or self._cap is None:
            return None

        ret, frame = self._cap.read()
        if not ret or frame is None:
            if self.is_file:
                logging.info("End of video file reached")
            else:
                logging.warning(f"Failed to read frame from {self.device_id}")
            return None

        frame = self._apply_transforms(frame)
        self._frame_index += 1
        return FrameData.from_numpy(
            frame,
            timestamp=time.time(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def _apply_transforms(self, frame: np.ndarray) -> np.ndarray:
        cfg = self._opencv_config

        if cfg.rotate == 90:
            frame = cv2.rotate(frame, cv2.ROTATE_90_CLOCKWISE)
        elif cfg.rotate == 180:
            frame = cv2.rotate(frame, cv2.ROTATE_180)
        elif cfg.rotate == 270:
            frame = cv2.rotate(frame, cv2.ROTATE_90_COUNTERCLOCKWISE)

        if cfg.flip_horizontal and cfg.flip_vertical:
            frame = cv2.flip(frame, -1)
        elif cfg.flip_horizontal:
            frame = cv2.flip(frame, 1)
        elif cfg.flip_vertical:
            frame = cv2.flip(frame, 0)

        return frame

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        if self._is_open:
            logging.info(f"OpenCVSource closed: source_id={self.source_id}")
        self._is_open = False


def probe_cameras(max_devices: int = 5) -> List[int]:
    """Return the camera indices in [0, max_devices) that can be opened."""
    found: List[int] = []
    for index in range(max_devices):
        cap = cv2.VideoCapture(index)
        try:
            if cap.isOpened():
                found.append(index)
        finally:
            cap.release()
    return found


def create_source_from_config(camera_cfg: Dict[str, Any], source_id: Optional[str] = None) -> OpenCVSource:
    """Factory: build an OpenCVSource from the `camera` config section."""
    device_id = camera_cfg.get("device_id", 0)
    config = OpenCVSourceConfig.from_camera_config(camera_cfg, source_id=source_id or f"camera-{device_id}")
    return OpenCVSource(config)
