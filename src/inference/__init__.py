"""
Inference layer: model backends and the worker thread that owns them.
"""

from .backend import InferenceBackend
from .onnx_backend import OnnxBackend, OnnxConfig
from .worker import (
    InferenceWorker,
    InferRequest,
    InferenceFailed,
    InferenceResult,
    LoadModel,
    ModelLoaded,
    ModelLoadFailed,
    create_onnx_backend,
)

__all__ = [
    "InferenceBackend",
    "OnnxBackend",
    "OnnxConfig",
    "InferenceWorker",
    "InferRequest",
    "InferenceFailed",
    "InferenceResult",
    "LoadModel",
    "ModelLoaded",
    "ModelLoadFailed",
    "create_onnx_backend",
]
