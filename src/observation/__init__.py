"""
Observation layer: where frames come from.

Each source implements the ObservationSource interface and returns FrameData.
"""

from .base import ObservationSource, ObservationConfig
from .opencv_source import OpenCVSource, OpenCVSourceConfig, create_source_from_config, probe_cameras

__all__ = [
    "ObservationSource",
    "ObservationConfig",
    "OpenCVSource",
    "OpenCVSourceConfig",
    "create_source_from_config",
    "probe_cameras",
]
