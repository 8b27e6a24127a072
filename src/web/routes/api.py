from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Request

from models.detection import Detection
from pipeline.engine import PipelineEngine
from ..api_models import (
    DetectionModel,
    DetectionsResponse,
    ReloadResponse,
    ResultModel,
    ResultsResponse,
    StatsSummary,
    StatusResponse,
)

router = APIRouter()


def _engine(request: Request) -> PipelineEngine:
    engine: Optional[PipelineEngine] = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Pipeline not running")
    return engine


def _detection_model(det: Detection) -> DetectionModel:
    return DetectionModel(**det.to_dict())


def _stats_summary(stats: Dict[str, Any], now: Optional[float] = None) -> StatsSummary:
    now = now if now is not None else time.time()
    start_time = stats.get("start_time") or now
    fields = {k: v for k, v in stats.items() if k in StatsSummary.model_fields}
    return StatsSummary(uptime_seconds=int(max(0.0, now - start_time)), **fields)


@router.get("/status", response_model=StatusResponse)
def status(request: Request):
    """
    Pipeline status signal plus aggregate counters.
    - status: loading|ready|error|stopped
    - message: load error text when status is error
    """
    engine = _engine(request)
    snap = engine.snapshot()
    return StatusResponse(
        **snap.status.to_dict(),
        in_flight=engine.in_flight,
        stats=_stats_summary(snap.stats),
    )


@router.get("/detections", response_model=DetectionsResponse)
def detections(request: Request):
    snap = _engine(request).snapshot()
    if snap.detections is None:
        raise HTTPException(status_code=404, detail="No frame processed yet")
    frame = snap.detections
    return DetectionsResponse(
        frame_width=frame.frame_width,
        frame_height=frame.frame_height,
        timestamp=frame.timestamp,
        frame_index=frame.frame_index,
        source=frame.source,
        detections=[_detection_model(d) for d in frame.detections],
    )


@router.get("/results", response_model=ResultsResponse)
def results(request: Request):
    snap = _engine(request).snapshot()
    return ResultsResponse(
        results=[
            ResultModel(
                payload=r.payload,
                timestamp=r.timestamp,
                detection=_detection_model(r.detection),
            )
            for r in snap.results
        ]
    )


@router.post("/model/reload", response_model=ReloadResponse)
def reload_model(request: Request):
    """Request one retry of a failed model load."""
    engine = _engine(request)
    if not engine.request_reload():
        raise HTTPException(
            status_code=409,
            detail=f"Reload only allowed in error state (status={engine.status.level.value})",
        )
    logging.info("Model reload requested via API")
    return ReloadResponse(accepted=True, status=engine.status.level.value)


@router.post("/camera/{device_id}")
def switch_camera(device_id: int, request: Request):
    """Switch capture to another camera index."""
    engine = _engine(request)
    source_factory = getattr(request.app.state, "source_factory", None)
    if source_factory is None:
        raise HTTPException(status_code=501, detail="Camera switching not configured")
    engine.request_source_switch(source_factory(device_id))
    logging.info(f"Camera switch to device {device_id} requested via API")
    return {"accepted": True, "device_id": device_id}
