"""
Inference backend interface.

Backends take one [1, 3, S, S] tensor and return the model's raw output.
Decoding into detections happens outside the backend.
"""

from __future__ import annotations

from typing import Protocol

import numpy as np

from detection.decoder import RawOutput


class InferenceBackend(Protocol):
    def run(self, tensor: np.ndarray) -> RawOutput:
        ...
