"""
Payload decoding for detected barcode regions.
"""

from .secondary import SecondaryDecoder, crop_region, padded_region
from .symbol import PyzbarSymbolDecoder, SymbolDecoder

__all__ = [
    "SecondaryDecoder",
    "crop_region",
    "padded_region",
    "PyzbarSymbolDecoder",
    "SymbolDecoder",
]
