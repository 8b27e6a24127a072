"""
Detection models for barcode region candidates.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class BoundingBox:
    """
    An axis-aligned box in corner + size form.

    Attributes:
        x: Left edge.
        y: Top edge.
        w: Width.
        h: Height.
    """
    x: float
    y: float
    w: float
    h: float

    @property
    def x2(self) -> float:
        return self.x + self.w

    @property
    def y2(self) -> float:
        return self.y + self.h

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.w / 2, self.y + self.h / 2)

    @property
    def area(self) -> float:
        return max(0.0, self.w) * max(0.0, self.h)

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return as (x, y, w, h) tuple."""
        return (self.x, self.y, self.w, self.h)

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        """Return as (x1, y1, x2, y2) tuple."""
        return (self.x, self.y, self.x2, self.y2)

    @classmethod
    def from_center(cls, cx: float, cy: float, w: float, h: float) -> "BoundingBox":
        """Create from center + size form."""
        return cls(x=cx - w / 2, y=cy - h / 2, w=w, h=h)

    @classmethod
    def from_xyxy(cls, x1: float, y1: float, x2: float, y2: float) -> "BoundingBox":
        """Create from (x1, y1, x2, y2) corners."""
        return cls(x=x1, y=y1, w=x2 - x1, h=y2 - y1)


@dataclass(frozen=True)
class Detection:
    """
    A candidate barcode region.

    Attributes:
        bbox: Box in frame-pixel coordinates.
        confidence: Max class score for the slot (0-1).
        class_id: Index of the winning class.
        class_name: Human-readable class label.
    """
    bbox: BoundingBox
    confidence: float
    class_id: Optional[int] = None
    class_name: Optional[str] = None

    @property
    def x(self) -> float:
        return self.bbox.x

    @property
    def y(self) -> float:
        return self.bbox.y

    @property
    def w(self) -> float:
        return self.bbox.w

    @property
    def h(self) -> float:
        return self.bbox.h

    def with_bbox(self, bbox: BoundingBox) -> "Detection":
        return replace(self, bbox=bbox)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x": self.bbox.x,
            "y": self.bbox.y,
            "w": self.bbox.w,
            "h": self.bbox.h,
            "confidence": self.confidence,
            "class_id": self.class_id,
            "class_name": self.class_name,
        }
