"""
Coordinate mapping between model input space and source frame pixels.

The sampler stretches the whole frame into the square model input (no
letterboxing), so each axis scales independently.
"""

from __future__ import annotations

from typing import Iterable, List

from models.detection import BoundingBox, Detection


class CoordinateMapper:
    """Maps model-space boxes onto a frame of a given size."""

    def __init__(self, model_size: int, frame_width: int, frame_height: int):
        if model_size <= 0:
            raise ValueError(f"model_size must be positive, got {model_size}")
        self.model_size = model_size
        self.frame_width = frame_width
        self.frame_height = frame_height

    def _x(self, value: float) -> float:
        return value * self.frame_width / self.model_size

    def _y(self, value: float) -> float:
        return value * self.frame_height / self.model_size

    def to_frame(self, cx: float, cy: float, w: float, h: float) -> BoundingBox:
        """Convert a model-space center/size box to a frame-space corner box."""
        return BoundingBox(
            x=self._x(cx - w / 2),
            y=self._y(cy - h / 2),
            w=self._x(w),
            h=self._y(h),
        )

    def scale_box(self, bbox: BoundingBox) -> BoundingBox:
        """Scale a model-space corner box to frame space."""
        return BoundingBox(
            x=self._x(bbox.x),
            y=self._y(bbox.y),
            w=self._x(bbox.w),
            h=self._y(bbox.h),
        )

    def clamp(self, bbox: BoundingBox) -> BoundingBox:
        """Clip both corners of a frame-space box to the frame bounds."""
        x1 = min(max(bbox.x, 0.0), float(self.frame_width))
        y1 = min(max(bbox.y, 0.0), float(self.frame_height))
        x2 = min(max(bbox.x2, 0.0), float(self.frame_width))
        y2 = min(max(bbox.y2, 0.0), float(self.frame_height))
        return BoundingBox.from_xyxy(x1, y1, x2, y2)

    def clamp_detections(self, detections: Iterable[Detection]) -> List[Detection]:
        """Clamp every detection to the frame, dropping boxes left with no area."""
        out: List[Detection] = []
        for det in detections:
            bbox = self.clamp(det.bbox)
            if bbox.w <= 0 or bbox.h <= 0:
                continue
            out.append(det.with_bbox(bbox))
        return out
