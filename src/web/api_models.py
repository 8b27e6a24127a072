from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class StatsSummary(BaseModel):
    frames_sampled: int = 0
    ticks_skipped: int = 0
    read_failures: int = 0
    inference_requests: int = 0
    inference_failures: int = 0
    malformed_outputs: int = 0
    stale_responses: int = 0
    source_failures: int = 0
    detections: int = 0
    decode_misses: int = 0
    results_accepted: int = 0
    duplicates_suppressed: int = 0
    uptime_seconds: int = 0


class StatusResponse(BaseModel):
    status: str = Field(..., description="loading|ready|error|stopped")
    message: Optional[str] = Field(None, description="Error message when status is error")
    timestamp: float
    in_flight: bool = Field(False, description="True while an inference request is outstanding")
    stats: StatsSummary


class DetectionModel(BaseModel):
    x: float
    y: float
    w: float
    h: float
    confidence: float
    class_id: Optional[int] = None
    class_name: Optional[str] = None


class DetectionsResponse(BaseModel):
    """
    Latest answered frame, for overlay drawing.
    Coordinates are in the pixel space of a frame_width x frame_height frame.
    """
    frame_width: int
    frame_height: int
    timestamp: float
    frame_index: int
    source: Optional[str] = None
    detections: List[DetectionModel] = Field(default_factory=list)


class ResultModel(BaseModel):
    payload: str
    timestamp: float
    detection: DetectionModel


class ResultsResponse(BaseModel):
    results: List[ResultModel] = Field(default_factory=list, description="Newest first")


class ReloadResponse(BaseModel):
    accepted: bool
    status: str
