"""
Inference worker thread.

The worker owns the loaded model and runs inference, output decoding and
non-max suppression off the capture thread. The two sides talk only through
queues: a single-slot request queue in, an unbounded response queue out.
Tensors are handed over with the request and never touched again by the
sender.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Union

import numpy as np

from detection.decoder import DetectionDecoder
from detection.nms import non_max_suppression
from errors import MalformedOutputShape, ModelLoadError
from models.config import ModelConfig
from models.detection import Detection
from .backend import InferenceBackend
from .onnx_backend import OnnxBackend, OnnxConfig


# Requests (capture -> worker)

@dataclass(frozen=True)
class LoadModel:
    model: ModelConfig
    load_id: int = 0


@dataclass(frozen=True)
class InferRequest:
    session_id: int
    request_id: int
    tensor: np.ndarray
    frame_width: int
    frame_height: int


# Responses (worker -> capture)

@dataclass(frozen=True)
class ModelLoaded:
    load_id: int = 0
    load_seconds: float = 0.0


@dataclass(frozen=True)
class ModelLoadFailed:
    message: str
    load_id: int = 0


@dataclass(frozen=True)
class InferenceResult:
    session_id: int
    request_id: int
    detections: List[Detection] = field(default_factory=list)
    malformed: bool = False
    latency_ms: float = 0.0


@dataclass(frozen=True)
class InferenceFailed:
    session_id: int
    request_id: int
    message: str


WorkerResponse = Union[ModelLoaded, ModelLoadFailed, InferenceResult, InferenceFailed]
BackendFactory = Callable[[ModelConfig], InferenceBackend]

_STOP = object()


def create_onnx_backend(model_cfg: ModelConfig) -> InferenceBackend:
    """Default backend factory."""
    return OnnxBackend(OnnxConfig(model_path=model_cfg.path, providers=list(model_cfg.providers)))


class InferenceWorker:
    """
    Background thread that owns one model.

    Example:
        worker = InferenceWorker(DetectionDecoder(), iou_threshold=0.45)
        worker.start()
        worker.load_model(model_cfg)
        response = worker.poll(timeout=60)   # ModelLoaded / ModelLoadFailed
        worker.submit(InferRequest(...))
        ...
        worker.stop()
    """

    def __init__(
        self,
        decoder: DetectionDecoder,
        iou_threshold: float = 0.45,
        backend_factory: BackendFactory = create_onnx_backend,
    ):
        self._decoder = decoder
        self._iou_threshold = iou_threshold
        self._backend_factory = backend_factory
        self._requests: "queue.Queue[object]" = queue.Queue(maxsize=1)
        self._responses: "queue.Queue[WorkerResponse]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        # Only read and written on the worker thread.
        self._backend: Optional[InferenceBackend] = None
        self.submitted = 0

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_alive:
            return
        self._thread = threading.Thread(target=self._loop, name="inference-worker", daemon=True)
        self._thread.start()
        logging.info("Inference worker started")

    def load_model(self, model_cfg: ModelConfig, load_id: int = 0) -> None:
        """
        Ask the worker to (re)load the model.

        The answer arrives via poll() tagged with the same load_id, so an
        answer to an attempt the caller already gave up on can be told apart.
        """
        self._requests.put(LoadModel(model_cfg, load_id))

    def submit(self, request: InferRequest) -> None:
        """
        Hand a tensor to the worker.

        Raises:
            RuntimeError: If a request is already waiting in the slot.
        """
        try:
            self._requests.put_nowait(request)
        except queue.Full:
            raise RuntimeError("An inference request is already queued")
        self.submitted += 1

    def poll(self, timeout: Optional[float] = None) -> Optional[WorkerResponse]:
        """
        Fetch the next response.

        Args:
            timeout: None or 0 returns immediately; otherwise wait up to timeout seconds.
        """
        try:
            if not timeout:
                return self._responses.get_nowait()
            return self._responses.get(timeout=timeout)
        except queue.Empty:
            return None

    def stop(self, timeout: float = 2.0) -> None:
        """Stop the thread and drop the model. Safe to call multiple times."""
        if self._thread is None:
            return
        try:
            self._requests.put(_STOP, timeout=timeout)
        except queue.Full:
            logging.warning("Inference worker busy, abandoning it")
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logging.warning("Inference worker did not stop in time")
        else:
            logging.info("Inference worker stopped")
        self._thread = None

    def _loop(self) -> None:
        while True:
            message = self._requests.get()
            if message is _STOP:
                break
            if isinstance(message, LoadModel):
                self._responses.put(self._load(message))
            elif isinstance(message, InferRequest):
                self._responses.put(self._infer(message))
            else:
                logging.warning(f"Inference worker ignoring unknown message {message!r}")
        self._backend = None

    def _load(self, message: LoadModel) -> WorkerResponse:
        start = time.time()
        self._backend = None
        try:
            self._backend = self._backend_factory(message.model)
        except ModelLoadError as e:
            logging.error(f"Model load failed: {e.message}")
            return ModelLoadFailed(message=e.message, load_id=message.load_id)
        except Exception as e:
            logging.error(f"Model load failed: {e}")
            return ModelLoadFailed(message=f"Model load failed: {e}", load_id=message.load_id)
        return ModelLoaded(load_id=message.load_id, load_seconds=time.time() - start)

    def _infer(self, request: InferRequest) -> WorkerResponse:
        if self._backend is None:
            return InferenceFailed(request.session_id, request.request_id, "Model not loaded")

        start = time.time()
        try:
            raw = self._backend.run(request.tensor)
        except Exception as e:
            logging.warning(f"Inference failed for request {request.request_id}: {e}")
            return InferenceFailed(request.session_id, request.request_id, str(e))

        try:
            candidates = self._decoder.decode(raw, request.frame_width, request.frame_height)
        except MalformedOutputShape as e:
            logging.warning(f"{e}; emitting no detections for request {request.request_id}")
            return InferenceResult(
                session_id=request.session_id,
                request_id=request.request_id,
                malformed=True,
                latency_ms=(time.time() - start) * 1000.0,
            )
        except Exception as e:
            logging.warning(f"Output decoding failed for request {request.request_id}: {e}")
            return InferenceFailed(request.session_id, request.request_id, f"Output decoding failed: {e}")

        try:
            detections = non_max_suppression(candidates, self._iou_threshold)
        except Exception as e:
            logging.warning(f"NMS failed for request {request.request_id}: {e}")
            return InferenceFailed(request.session_id, request.request_id, f"NMS failed: {e}")

        return InferenceResult(
            session_id=request.session_id,
            request_id=request.request_id,
            detections=detections,
            latency_ms=(time.time() - start) * 1000.0,
        )
