"""
Barcode Scan Pipeline - Detection Module

Raw output decoding, non-max suppression and coordinate mapping.
"""

from .decoder import DetectionDecoder, OutputLayout, RawOutput, select_layout
from .mapper import CoordinateMapper
from .nms import iou, non_max_suppression

__all__ = [
    "DetectionDecoder",
    "OutputLayout",
    "RawOutput",
    "select_layout",
    "CoordinateMapper",
    "iou",
    "non_max_suppression",
]
