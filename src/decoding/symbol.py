"""
Symbol decoders: read the payload of a barcode from an image region.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence

import cv2
import numpy as np


class SymbolDecoder(Protocol):
    def decode(self, image: np.ndarray) -> Optional[str]:
        """Return the decoded payload, or None when nothing could be read."""
        ...


class PyzbarSymbolDecoder(SymbolDecoder):
    """
    ZBar-based decoder.

    Converts the region to grayscale and returns the first symbol ZBar finds.
    symbol_types restricts the search (e.g. ["EAN13", "CODE128"]); None means all.
    """

    def __init__(self, symbol_types: Optional[Sequence[str]] = None):
        try:
            from pyzbar import pyzbar  # type: ignore
        except ImportError as e:  # pragma: no cover
            raise ImportError(
                "pyzbar is not installed (or the zbar shared library is missing). "
                "Install with `pip install pyzbar` and the system zbar package."
            ) from e

        self._pyzbar = pyzbar
        self._symbols = (
            [pyzbar.ZBarSymbol[name] for name in symbol_types] if symbol_types else None
        )

    def decode(self, image: np.ndarray) -> Optional[str]:
        if image is None or image.size == 0:
            return None

        if image.ndim == 3:
            code = cv2.COLOR_BGRA2GRAY if image.shape[2] == 4 else cv2.COLOR_BGR2GRAY
            gray = cv2.cvtColor(image, code)
        else:
            gray = image

        symbols = self._pyzbar.decode(gray, symbols=self._symbols)
        for symbol in symbols:
            payload = symbol.data.decode("utf-8", errors="replace")
            if payload:
                logging.debug(f"Decoded {symbol.type} symbol: {payload}")
                return payload
        return None
