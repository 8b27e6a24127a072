"""
Typed models for the barcode scan pipeline.
"""

from .frame import FrameData
from .detection import Detection, BoundingBox
from .result import DecodedResult
from .status import PipelineStatus, PipelineStats, StatusLevel
from .config import (
    Config,
    CameraConfig,
    ModelConfig,
    DetectionConfig,
    SamplingConfig,
    DecodingConfig,
    PipelineSettings,
    WebConfig,
)

__all__ = [
    # Frame
    "FrameData",
    # Detection
    "Detection",
    "BoundingBox",
    "DecodedResult",
    # Status
    "PipelineStatus",
    "PipelineStats",
    "StatusLevel",
    # Config
    "Config",
    "CameraConfig",
    "ModelConfig",
    "DetectionConfig",
    "SamplingConfig",
    "DecodingConfig",
    "PipelineSettings",
    "WebConfig",
]
