"""
Frame sampling for the scan pipeline.
"""

from .sampler import FrameSampler, Sample, frame_to_tensor

__all__ = ["FrameSampler", "Sample", "frame_to_tensor"]
