"""
DecodedResult model for payloads extracted from detected regions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from .detection import Detection


@dataclass(frozen=True)
class DecodedResult:
    """
    A payload successfully decoded from one detected region.

    Attributes:
        payload: Decoded symbol text.
        detection: The region the payload was read from.
        timestamp: Unix timestamp of the source frame.
    """
    payload: str
    detection: Detection
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "payload": self.payload,
            "detection": self.detection.to_dict(),
            "timestamp": self.timestamp,
        }
