"""
Pipeline module for the barcode scan system.

The pipeline orchestrates the full processing flow:
- Throttled frame sampling from an observation source
- Inference, output decoding and NMS on the worker thread
- Coordinate clamping, payload decoding and deduplication on the capture side
"""

from .engine import (
    FrameDetections,
    PipelineConfig,
    PipelineEngine,
    PipelineSnapshot,
    create_engine_from_config,
)

__all__ = [
    "FrameDetections",
    "PipelineConfig",
    "PipelineEngine",
    "PipelineSnapshot",
    "create_engine_from_config",
]
