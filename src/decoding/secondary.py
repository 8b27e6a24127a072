"""
Secondary decoding of detected regions.

Each surviving detection is cropped from the source frame with a padding
margin and handed to a symbol decoder. A region only produces a result when
its payload actually decodes; detector confidence never stands in for it.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, List, Optional, Tuple

import numpy as np

from models.detection import BoundingBox, Detection
from models.result import DecodedResult
from .symbol import SymbolDecoder


def padded_region(
    bbox: BoundingBox,
    padding: int,
    frame_width: int,
    frame_height: int,
) -> Optional[Tuple[int, int, int, int]]:
    """
    Expand a box by padding on every side and clip it to the frame.

    Both the origin and the far corner are clipped, so the region never
    extends past the frame edge.

    Returns:
        (x, y, w, h) in integer pixels, or None if nothing is left.
    """
    x1 = max(0, int(math.floor(bbox.x - padding)))
    y1 = max(0, int(math.floor(bbox.y - padding)))
    x2 = min(frame_width, int(math.ceil(bbox.x2 + padding)))
    y2 = min(frame_height, int(math.ceil(bbox.y2 + padding)))

    if x2 <= x1 or y2 <= y1:
        return None
    return (x1, y1, x2 - x1, y2 - y1)


def crop_region(image: np.ndarray, bbox: BoundingBox, padding: int) -> Optional[np.ndarray]:
    """Return the padded, clipped crop of image around bbox, or None."""
    frame_height, frame_width = image.shape[:2]
    region = padded_region(bbox, padding, frame_width, frame_height)
    if region is None:
        return None
    x, y, w, h = region
    return image[y:y + h, x:x + w]


class SecondaryDecoder:
    """
    Decodes payloads from the regions of one frame.

    Example:
        decoder = SecondaryDecoder(PyzbarSymbolDecoder(), padding=40)
        results = decoder.decode_all(frame_data.frame, detections, frame_data.timestamp)
    """

    def __init__(self, symbol_decoder: SymbolDecoder, padding: int = 40):
        self.symbol_decoder = symbol_decoder
        self.padding = padding
        self.misses = 0

    def decode_region(self, image: np.ndarray, detection: Detection) -> Optional[str]:
        crop = crop_region(image, detection.bbox, self.padding)
        if crop is None:
            return None
        try:
            return self.symbol_decoder.decode(crop)
        except Exception as e:
            logging.warning(f"Symbol decoder error: {e}")
            return None

    def decode_all(
        self,
        image: np.ndarray,
        detections: Iterable[Detection],
        timestamp: float,
    ) -> List[DecodedResult]:
        """Try every region independently and return the ones that decoded."""
        results: List[DecodedResult] = []
        for detection in detections:
            payload = self.decode_region(image, detection)
            if payload is None:
                self.misses += 1
                continue
            results.append(DecodedResult(payload=payload, detection=detection, timestamp=timestamp))
        return results
