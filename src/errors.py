"""
Error types for the scan pipeline.

Only ModelLoadError is allowed to reach the top-level status. Everything else
is a per-frame condition that the pipeline absorbs and counts.
"""

from __future__ import annotations

from typing import Optional, Tuple


class ScannerError(Exception):
    """Base class for scan pipeline errors."""


class ModelLoadError(ScannerError):
    """
    The detection model could not be loaded.

    Fatal to the detection loop until an explicit reload succeeds.
    """

    def __init__(self, message: str, model_path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.model_path = model_path


class InferenceError(ScannerError):
    """A single inference pass failed. The frame is dropped."""


class MalformedOutputShape(ScannerError):
    """The raw model output does not have a shape the decoder understands."""

    def __init__(self, dims: Tuple[int, ...], reason: str):
        super().__init__(f"Malformed output dims {tuple(dims)}: {reason}")
        self.dims = tuple(dims)
        self.reason = reason
