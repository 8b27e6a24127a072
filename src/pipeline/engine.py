"""
Pipeline engine for the barcode scan system.

The engine is the capture-side controller. It samples frames from an
ObservationSource, hands tensors to the InferenceWorker, and turns the
worker's answers into overlay detections and decoded results. It owns all
scan state; nothing is shared with the worker except the messages passed
through its queues.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from decoding.secondary import SecondaryDecoder
from decoding.symbol import PyzbarSymbolDecoder, SymbolDecoder
from detection.decoder import DetectionDecoder
from detection.mapper import CoordinateMapper
from inference.worker import (
    BackendFactory,
    InferenceFailed,
    InferenceResult,
    InferenceWorker,
    InferRequest,
    ModelLoaded,
    ModelLoadFailed,
    WorkerResponse,
    create_onnx_backend,
)
from models.config import Config, ModelConfig
from models.detection import Detection
from models.frame import FrameData
from models.result import DecodedResult
from models.status import PipelineStats, PipelineStatus, StatusLevel
from observation.base import ObservationSource
from observation.opencv_source import create_source_from_config
from results.dedup import ScanState
from sampling.sampler import FrameSampler, Sample


@dataclass
class PipelineConfig:
    """
    Configuration for the pipeline engine.

    Attributes:
        input_size: Square model input edge, in pixels.
        sampling_interval_ms: Delay between sampling ticks.
        max_consecutive_failures: Frame read failures in a row before stopping.
        stats_log_interval: Seconds between stats log messages.
        poll_interval_ms: Idle wait between loop iterations.
        load_timeout_s: How long to wait for the model before giving up.
        wait_for_reload: Keep the loop alive after a load failure so an
            explicit reload can be requested (e.g. through the web API).
    """
    input_size: int = 640
    sampling_interval_ms: int = 150
    max_consecutive_failures: int = 10
    stats_log_interval: float = 60.0
    poll_interval_ms: int = 5
    load_timeout_s: float = 60.0
    wait_for_reload: bool = False


@dataclass(frozen=True)
class FrameDetections:
    """Detections for one frame, in that frame's pixel space, for overlay drawing."""
    detections: Tuple[Detection, ...]
    frame_width: int
    frame_height: int
    timestamp: float
    frame_index: int = 0
    source: Optional[str] = None


@dataclass(frozen=True)
class PipelineSnapshot:
    """Immutable view of the engine for other threads."""
    status: PipelineStatus
    stats: Dict[str, Any]
    detections: Optional[FrameDetections]
    results: Tuple[DecodedResult, ...]


@dataclass(frozen=True)
class _Pending:
    request_id: int
    session_id: int
    frame: FrameData


class PipelineEngine:
    """
    Capture-side scan loop.

    Model loading gates sampling: the source is only opened once the worker
    reports the model as loaded. At most one inference request is in flight.
    Responses tagged with a superseded session (after switch_source) are
    dropped. close() always tears down the worker and the source together.

    Example:
        engine = create_engine_from_config(config)
        engine.add_result_callback(lambda r: print(r.payload))
        engine.run()
    """

    def __init__(
        self,
        source: ObservationSource,
        worker: InferenceWorker,
        secondary: SecondaryDecoder,
        scan_state: ScanState,
        model_config: ModelConfig,
        config: PipelineConfig,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self.worker = worker
        self.secondary = secondary
        self.scan_state = scan_state
        self.model_config = model_config
        self.config = config
        self._clock = clock
        self.sampler = FrameSampler(config.input_size, config.sampling_interval_ms)
        self.stats = PipelineStats()
        self.status = PipelineStatus.stopped()

        self._running = False
        self._source_open = False
        self._session_id = 0
        self._request_seq = 0
        self._load_seq = 0
        self._pending: Optional[_Pending] = None
        self._latest_detections: Optional[FrameDetections] = None
        self._published_results: Tuple[DecodedResult, ...] = ()

        # Written from other threads, applied on the capture thread.
        self._reload_requested = threading.Event()
        self._switch_requests: "queue.Queue[ObservationSource]" = queue.Queue(maxsize=1)

        self._status_callbacks: List[Callable[[PipelineStatus], None]] = []
        self._detection_callbacks: List[Callable[[FrameDetections], None]] = []
        self._result_callbacks: List[Callable[[DecodedResult], None]] = []

    # Consumers

    def add_status_callback(self, callback: Callable[[PipelineStatus], None]) -> None:
        self._status_callbacks.append(callback)

    def add_detection_callback(self, callback: Callable[[FrameDetections], None]) -> None:
        """Called once per answered frame, including frames with no detections."""
        self._detection_callbacks.append(callback)

    def add_result_callback(self, callback: Callable[[DecodedResult], None]) -> None:
        """Called for every decoded payload that passes deduplication."""
        self._result_callbacks.append(callback)

    @property
    def session_id(self) -> int:
        return self._session_id

    @property
    def in_flight(self) -> bool:
        return self._pending is not None

    def snapshot(self) -> PipelineSnapshot:
        return PipelineSnapshot(
            status=self.status,
            stats=self.stats.to_dict(),
            detections=self._latest_detections,
            results=self._published_results,
        )

    # Lifecycle

    def start(self) -> bool:
        """
        Start the worker and load the model, then open the source.

        Returns:
            True when the pipeline is ready to sample.
        """
        self.stats = PipelineStats()
        self.worker.start()
        return self._load_model()

    def reload_model(self) -> bool:
        """
        Retry a failed model load once.

        Only valid in the error state; each call makes exactly one attempt.
        """
        if self.status.level != StatusLevel.ERROR:
            logging.warning(f"Reload ignored, pipeline is {self.status.level.value}")
            return False
        logging.info("Reloading model on request")
        self.worker.start()
        return self._load_model()

    def request_reload(self) -> bool:
        """Thread-safe: ask the loop to retry the model load."""
        if self.status.level != StatusLevel.ERROR:
            return False
        self._reload_requested.set()
        return True

    def request_source_switch(self, source: ObservationSource) -> None:
        """Thread-safe: ask the loop to switch to another source."""
        try:
            self._switch_requests.get_nowait()
        except queue.Empty:
            pass
        self._switch_requests.put_nowait(source)

    def switch_source(self, source: ObservationSource) -> None:
        """
        Replace the frame source and start a new session.

        Any request still in flight stays outstanding until its response
        arrives, but that response is discarded: its coordinates belong to the
        old source.
        """
        old = self.source
        try:
            old.close()
        except Exception as e:
            logging.warning(f"Error closing source: {e}")

        self._session_id += 1
        self.source = source
        self._source_open = False
        self._latest_detections = None
        self.sampler.reset()
        logging.info(f"Switched to source {source.source_id} (session {self._session_id})")

        if not self.status.is_ready:
            return
        if self._try_open_source(source):
            return

        # Fall back to the previous source; if that fails too, sampling stays
        # paused until the next switch.
        self.source = old
        if self._try_open_source(old):
            logging.warning(f"Switch to {source.source_id} failed, staying on {old.source_id}")
        else:
            logging.error("No usable source, sampling paused until the next switch")

    def run(self) -> None:
        """
        Run the scan loop until stopped, interrupted or the source fails.
        """
        self._running = True
        try:
            if not self.start() and not self.config.wait_for_reload:
                logging.error("Model not loaded, scan loop not started")
                return

            poll_timeout = self.config.poll_interval_ms / 1000.0
            while self._running:
                if self.status.level == StatusLevel.ERROR:
                    if self._reload_requested.wait(timeout=0.5):
                        self._reload_requested.clear()
                        self.reload_model()
                    continue

                self.step()
                if self.stats.consecutive_failures >= self.config.max_consecutive_failures:
                    logging.error(
                        f"Too many consecutive failures ({self.stats.consecutive_failures}), stopping"
                    )
                    break

                self._handle_periodic_tasks()
                self.poll_responses(timeout=poll_timeout)

        except KeyboardInterrupt:
            logging.info("Pipeline interrupted by user")
        except Exception as e:
            logging.exception(f"Pipeline error: {e}")
        finally:
            self.close()

    def stop(self) -> None:
        """Signal the loop to stop after the current iteration."""
        self._running = False

    def close(self) -> None:
        """Stop the worker and close the source. Always both."""
        self._running = False

        try:
            self.worker.stop()
        except Exception as e:
            logging.warning(f"Error stopping inference worker: {e}")

        try:
            self.source.close()
        except Exception as e:
            logging.warning(f"Error closing source: {e}")

        self._source_open = False
        self._pending = None
        self.sampler.release()

        if self.status.level != StatusLevel.ERROR:
            self._set_status(PipelineStatus.stopped())

        logging.info(f"Pipeline stopped: {self.stats.to_dict()}")

    # Capture-side loop

    def step(self, now: Optional[float] = None) -> None:
        """
        One loop iteration: apply requests, handle answers, maybe sample.

        Args:
            now: Monotonic time in seconds; defaults to the engine clock.
        """
        if now is None:
            now = self._clock()

        self._apply_switch_request()
        self.poll_responses()

        if self.status.is_ready and not self.worker.is_alive:
            self._worker_died()

        if not self.status.is_ready or not self._source_open:
            return

        skipped_before = self.sampler.skipped
        sample = self.sampler.try_sample(self._read_frame, now)
        self.stats.ticks_skipped += self.sampler.skipped - skipped_before
        if sample is not None:
            self._submit(sample)

    def poll_responses(self, timeout: float = 0.0) -> int:
        """
        Handle every response waiting from the worker.

        Args:
            timeout: How long to wait for the first response.

        Returns:
            Number of responses handled.
        """
        handled = 0
        response = self.worker.poll(timeout=timeout)
        while response is not None:
            self._handle_response(response)
            handled += 1
            response = self.worker.poll()
        return handled

    def _read_frame(self) -> Optional[FrameData]:
        frame_data = self.source.read()
        if frame_data is None:
            self.stats.read_failures += 1
            self.stats.consecutive_failures += 1
            logging.warning(
                f"Frame read failed ({self.stats.consecutive_failures}/"
                f"{self.config.max_consecutive_failures})"
            )
            return None
        self.stats.consecutive_failures = 0
        return frame_data

    def _submit(self, sample: Sample) -> None:
        self._request_seq += 1
        request = InferRequest(
            session_id=self._session_id,
            request_id=self._request_seq,
            tensor=sample.tensor,
            frame_width=sample.frame.width,
            frame_height=sample.frame.height,
        )
        try:
            self.worker.submit(request)
        except RuntimeError as e:
            logging.warning(f"Frame dropped: {e}")
            self.sampler.release()
            return

        self._pending = _Pending(
            request_id=request.request_id,
            session_id=request.session_id,
            frame=sample.frame,
        )
        self.stats.frames_sampled += 1
        self.stats.inference_requests += 1

    def _handle_response(self, response: WorkerResponse) -> None:
        if isinstance(response, (ModelLoaded, ModelLoadFailed)):
            logging.debug(f"Ignoring model response outside of a load: {response}")
            return

        pending = self._pending
        if pending is None or response.request_id != pending.request_id:
            logging.debug(f"Ignoring response for unknown request {response.request_id}")
            return

        self._pending = None
        self.sampler.release()

        if response.session_id != self._session_id:
            self.stats.stale_responses += 1
            logging.debug(
                f"Discarding response from superseded session {response.session_id} "
                f"(current {self._session_id})"
            )
            return

        if isinstance(response, InferenceFailed):
            self.stats.inference_failures += 1
            logging.warning(f"Inference failed, frame dropped: {response.message}")
            return

        if isinstance(response, InferenceResult):
            if response.malformed:
                self.stats.malformed_outputs += 1
            self._handle_detections(pending.frame, response.detections)

    def _handle_detections(self, frame_data: FrameData, detections: List[Detection]) -> None:
        mapper = CoordinateMapper(self.config.input_size, frame_data.width, frame_data.height)
        detections = mapper.clamp_detections(detections)
        self.stats.detections += len(detections)

        overlay = FrameDetections(
            detections=tuple(detections),
            frame_width=frame_data.width,
            frame_height=frame_data.height,
            timestamp=frame_data.timestamp,
            frame_index=frame_data.frame_index,
            source=frame_data.source,
        )
        self._latest_detections = overlay
        self._notify(self._detection_callbacks, overlay)

        if not detections:
            return

        decoded = self.secondary.decode_all(frame_data.frame, detections, frame_data.timestamp)
        self.stats.decode_misses += len(detections) - len(decoded)

        for result in decoded:
            if not self.scan_state.offer(result, frame_data.captured_at):
                self.stats.duplicates_suppressed += 1
                continue
            self.stats.results_accepted += 1
            self._published_results = tuple(self.scan_state.history.items())
            logging.info(f"Payload decoded: {result.payload} (confidence={result.detection.confidence:.2f})")
            self._notify(self._result_callbacks, result)

    # Internals

    def _load_model(self) -> bool:
        self._set_status(PipelineStatus.loading())
        self._load_seq += 1
        load_id = self._load_seq
        self.worker.load_model(self.model_config, load_id=load_id)

        deadline = time.monotonic() + self.config.load_timeout_s
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return self._fail_load(
                    f"Model load timed out after {self.config.load_timeout_s:g}s"
                )
            response = self.worker.poll(timeout=remaining)
            if isinstance(response, (ModelLoaded, ModelLoadFailed)) and response.load_id != load_id:
                logging.debug(f"Ignoring answer to abandoned load {response.load_id}")
                continue
            if isinstance(response, ModelLoaded):
                logging.info(f"Model ready ({response.load_seconds:.2f}s)")
                break
            if isinstance(response, ModelLoadFailed):
                return self._fail_load(response.message)
            if response is not None:
                self._handle_response(response)

        self._set_status(PipelineStatus.ready())
        if not self._source_open:
            self._open_source()
        return True

    def _worker_died(self) -> None:
        """The worker thread is gone; drop the request it held and surface the fault."""
        if self._pending is not None:
            self.stats.inference_failures += 1
            self._pending = None
        self.sampler.release()
        logging.error("Inference worker stopped unexpectedly")
        self._set_status(PipelineStatus.error("Inference worker stopped unexpectedly"))

    def _fail_load(self, message: str) -> bool:
        logging.error(f"Model load failed: {message}")
        self._set_status(PipelineStatus.error(message))
        return False

    def _open_source(self) -> None:
        self.source.open()
        self._source_open = True
        self.stats.consecutive_failures = 0
        logging.info(f"Pipeline sampling from source={self.source.source_id}")

    def _try_open_source(self, source: ObservationSource) -> bool:
        try:
            self._open_source()
        except Exception as e:
            self.stats.source_failures += 1
            logging.error(f"Failed to open source {source.source_id}: {e}")
            self._source_open = False
            return False
        return True

    def _apply_switch_request(self) -> None:
        try:
            source = self._switch_requests.get_nowait()
        except queue.Empty:
            return
        self.switch_source(source)

    def _set_status(self, status: PipelineStatus) -> None:
        self.status = status
        logging.info(
            f"Pipeline status: {status.level.value}"
            + (f" ({status.message})" if status.message else "")
        )
        self._notify(self._status_callbacks, status)

    def _notify(self, callbacks: List[Callable[[Any], None]], payload: Any) -> None:
        for callback in callbacks:
            try:
                callback(payload)
            except Exception as e:
                logging.warning(f"Callback error: {e}")

    def _handle_periodic_tasks(self) -> None:
        now = time.time()
        if now - self.stats.last_stats_log_time >= self.config.stats_log_interval:
            logging.info(
                f"Pipeline stats: sampled={self.stats.frames_sampled}, "
                f"skipped={self.stats.ticks_skipped}, "
                f"detections={self.stats.detections}, "
                f"results={self.stats.results_accepted}, "
                f"inference_failures={self.stats.inference_failures}, "
                f"malformed={self.stats.malformed_outputs}"
            )
            self.stats.last_stats_log_time = now


def create_engine_from_config(
    config: Dict[str, Any],
    source: Optional[ObservationSource] = None,
    backend_factory: Optional[BackendFactory] = None,
    symbol_decoder: Optional[SymbolDecoder] = None,
) -> PipelineEngine:
    """
    Factory function to create a PipelineEngine from the loaded config dict.

    Args:
        config: Full application config dict (see config/default.yaml).
        source: Frame source; defaults to an OpenCV source from `camera`.
        backend_factory: Model loader run on the worker; defaults to ONNX Runtime.
        symbol_decoder: Payload decoder; defaults to pyzbar.
    """
    cfg = Config.from_dict(config)

    if source is None:
        source = create_source_from_config(cfg.camera.to_dict())

    decoder = DetectionDecoder(
        conf_threshold=cfg.detection.conf_threshold,
        input_size=cfg.model.input_size,
        class_names=cfg.model.class_names,
    )
    worker = InferenceWorker(
        decoder,
        iou_threshold=cfg.detection.iou_threshold,
        backend_factory=backend_factory or create_onnx_backend,
    )

    secondary = SecondaryDecoder(
        symbol_decoder if symbol_decoder is not None else PyzbarSymbolDecoder(),
        padding=cfg.decoding.roi_padding_px,
    )
    scan_state = ScanState.create(
        cooldown_ms=cfg.decoding.cooldown_ms,
        history_size=cfg.decoding.history_size,
    )

    pipeline_config = PipelineConfig(
        input_size=cfg.model.input_size,
        sampling_interval_ms=cfg.sampling.interval_ms,
        max_consecutive_failures=cfg.pipeline.max_consecutive_failures,
        stats_log_interval=cfg.pipeline.stats_log_interval,
        poll_interval_ms=cfg.pipeline.poll_interval_ms,
        load_timeout_s=cfg.model.load_timeout_s,
        wait_for_reload=cfg.pipeline.wait_for_reload,
    )

    return PipelineEngine(source, worker, secondary, scan_state, cfg.model, pipeline_config)
