"""
ONNX Runtime inference backend.

Loads a YOLO-style detection model exported to ONNX and runs single tensors
through it. Only the first model input and first model output are used.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from typing import List

import numpy as np

from detection.decoder import RawOutput
from errors import InferenceError, ModelLoadError
from .backend import InferenceBackend


@dataclass(frozen=True)
class OnnxConfig:
    model_path: str
    providers: List[str] = field(default_factory=lambda: ["CPUExecutionProvider"])


class OnnxBackend(InferenceBackend):
    def __init__(self, cfg: OnnxConfig):
        self.cfg = cfg
        try:
            import onnxruntime as ort  # type: ignore
        except ImportError as e:  # pragma: no cover
            raise ModelLoadError(
                "onnxruntime is not installed. Install with `pip install onnxruntime`.",
                model_path=cfg.model_path,
            ) from e

        if not cfg.model_path or not os.path.exists(cfg.model_path):
            raise ModelLoadError(f"Model file not found: {cfg.model_path}", model_path=cfg.model_path)

        options = ort.SessionOptions()
        options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL

        start = time.time()
        try:
            self._session = ort.InferenceSession(
                cfg.model_path, sess_options=options, providers=list(cfg.providers)
            )
        except Exception as e:
            raise ModelLoadError(f"Model load failed: {e}", model_path=cfg.model_path) from e

        self.input_name = self._session.get_inputs()[0].name
        self.output_name = self._session.get_outputs()[0].name
        logging.info(
            f"ONNX model loaded in {time.time() - start:.2f}s: {cfg.model_path} "
            f"(input={self.input_name}, output={self.output_name}, "
            f"providers={self._session.get_providers()})"
        )

    def run(self, tensor: np.ndarray) -> RawOutput:
        try:
            outputs = self._session.run([self.output_name], {self.input_name: tensor})
        except Exception as e:
            raise InferenceError(f"Inference failed: {e}") from e
        return RawOutput.from_array(outputs[0])
