"""
Status and PipelineStats models for pipeline monitoring.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional
import time


class StatusLevel(str, Enum):
    """Pipeline status levels."""
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"
    STOPPED = "stopped"


@dataclass(frozen=True)
class PipelineStatus:
    """
    Top-level status signal handed to consumers.

    Attributes:
        level: Current status level.
        message: Error message when level is ERROR.
        timestamp: Unix timestamp of the transition.
    """
    level: StatusLevel
    message: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def loading(cls) -> "PipelineStatus":
        return cls(StatusLevel.LOADING)

    @classmethod
    def ready(cls) -> "PipelineStatus":
        return cls(StatusLevel.READY)

    @classmethod
    def error(cls, message: str) -> "PipelineStatus":
        return cls(StatusLevel.ERROR, message=message)

    @classmethod
    def stopped(cls) -> "PipelineStatus":
        return cls(StatusLevel.STOPPED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.level.value,
            "message": self.message,
            "timestamp": self.timestamp,
        }

    @property
    def is_ready(self) -> bool:
        return self.level == StatusLevel.READY


@dataclass
class PipelineStats:
    """
    Aggregate per-frame counters. Per-frame conditions only surface here and in logs.
    """
    frames_sampled: int = 0
    ticks_skipped: int = 0
    read_failures: int = 0
    consecutive_failures: int = 0
    inference_requests: int = 0
    inference_failures: int = 0
    malformed_outputs: int = 0
    stale_responses: int = 0
    source_failures: int = 0
    detections: int = 0
    decode_misses: int = 0
    results_accepted: int = 0
    duplicates_suppressed: int = 0
    start_time: float = field(default_factory=time.time)
    last_stats_log_time: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d.pop("last_stats_log_time")
        return d
