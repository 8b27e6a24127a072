"""
Tests for the inference worker thread.
"""

import numpy as np
import pytest

from detection.decoder import DetectionDecoder
from errors import ModelLoadError
from fakes import FakeBackend, backend_factory, failing_factory, make_output
from inference.onnx_backend import OnnxBackend, OnnxConfig
from inference.worker import (
    InferenceFailed,
    InferenceResult,
    InferenceWorker,
    InferRequest,
    ModelLoaded,
    ModelLoadFailed,
    create_onnx_backend,
)
from models.config import ModelConfig


def _request(request_id=1, session_id=0, width=1280, height=720):
    return InferRequest(
        session_id=session_id,
        request_id=request_id,
        tensor=np.zeros((1, 3, 640, 640), dtype=np.float32),
        frame_width=width,
        frame_height=height,
    )


@pytest.fixture
def make_worker():
    workers = []

    def _make(factory, iou_threshold=0.45):
        worker = InferenceWorker(DetectionDecoder(), iou_threshold=iou_threshold, backend_factory=factory)
        workers.append(worker)
        return worker

    yield _make

    for worker in workers:
        worker.stop()


class TestInferenceWorker:
    def test_load_then_infer(self, make_worker):
        backend = FakeBackend(make_output([(320, 320, 100, 60, 0.9)]))
        worker = make_worker(backend_factory(backend))
        worker.start()

        worker.load_model(ModelConfig(path="model.onnx"))
        assert isinstance(worker.poll(timeout=2), ModelLoaded)

        worker.submit(_request(request_id=7, session_id=3))
        response = worker.poll(timeout=2)

        assert isinstance(response, InferenceResult)
        assert response.request_id == 7
        assert response.session_id == 3
        assert len(response.detections) == 1
        assert response.detections[0].x == pytest.approx(540.0)
        assert len(backend.tensors) == 1

    def test_load_failure_reported(self, make_worker):
        worker = make_worker(failing_factory("Model file not found: missing.onnx"))
        worker.start()

        worker.load_model(ModelConfig(path="missing.onnx"))
        response = worker.poll(timeout=2)

        assert isinstance(response, ModelLoadFailed)
        assert "missing.onnx" in response.message

    def test_load_answers_carry_load_id(self, make_worker):
        backend = FakeBackend()

        def factory(model_cfg):
            if model_cfg.path == "missing.onnx":
                return failing_factory()(model_cfg)
            return backend

        worker = make_worker(factory)
        worker.start()

        worker.load_model(ModelConfig(path="model.onnx"), load_id=3)
        loaded = worker.poll(timeout=2)
        assert isinstance(loaded, ModelLoaded)
        assert loaded.load_id == 3

        worker.load_model(ModelConfig(path="missing.onnx"), load_id=4)
        failed = worker.poll(timeout=2)
        assert isinstance(failed, ModelLoadFailed)
        assert failed.load_id == 4

    def test_infer_without_model_fails(self, make_worker):
        worker = make_worker(backend_factory(FakeBackend()))
        worker.start()

        worker.submit(_request())
        response = worker.poll(timeout=2)

        assert isinstance(response, InferenceFailed)

    def test_backend_error_fails_one_request(self, make_worker):
        worker = make_worker(backend_factory(FakeBackend(error=RuntimeError("boom"))))
        worker.start()
        worker.load_model(ModelConfig(path="model.onnx"))
        worker.poll(timeout=2)

        worker.submit(_request())
        response = worker.poll(timeout=2)

        assert isinstance(response, InferenceFailed)
        assert "boom" in response.message
        assert worker.is_alive

    def test_malformed_output_yields_empty_result(self, make_worker):
        worker = make_worker(backend_factory(FakeBackend(np.zeros((1, 6, 6), dtype=np.float32))))
        worker.start()
        worker.load_model(ModelConfig(path="model.onnx"))
        worker.poll(timeout=2)

        worker.submit(_request())
        response = worker.poll(timeout=2)

        assert isinstance(response, InferenceResult)
        assert response.malformed is True
        assert response.detections == []

    def test_undecodable_output_fails_one_request(self, make_worker):
        output = np.full((1, 5, 8400), "x", dtype=object)
        worker = make_worker(backend_factory(FakeBackend(output)))
        worker.start()
        worker.load_model(ModelConfig(path="model.onnx"))
        worker.poll(timeout=2)

        worker.submit(_request(request_id=9))
        response = worker.poll(timeout=2)

        assert isinstance(response, InferenceFailed)
        assert response.request_id == 9
        assert "decoding" in response.message
        assert worker.is_alive

        worker.submit(_request(request_id=10))
        assert isinstance(worker.poll(timeout=2), InferenceFailed)

    def test_overlapping_candidates_suppressed(self, make_worker):
        output = make_output([(320, 320, 100, 100, 0.9), (325, 325, 100, 100, 0.6)])
        worker = make_worker(backend_factory(FakeBackend(output)))
        worker.start()
        worker.load_model(ModelConfig(path="model.onnx"))
        worker.poll(timeout=2)

        worker.submit(_request(width=640, height=640))
        response = worker.poll(timeout=2)

        assert [d.confidence for d in response.detections] == [pytest.approx(0.9)]

    def test_request_slot_holds_one(self, make_worker):
        worker = make_worker(backend_factory(FakeBackend()))

        worker.submit(_request(request_id=1))
        with pytest.raises(RuntimeError):
            worker.submit(_request(request_id=2))
        assert worker.submitted == 1

    def test_poll_is_non_blocking_by_default(self, make_worker):
        worker = make_worker(backend_factory(FakeBackend()))
        assert worker.poll() is None

    def test_stop_is_idempotent(self, make_worker):
        worker = make_worker(backend_factory(FakeBackend()))
        worker.start()
        assert worker.is_alive

        worker.stop()
        worker.stop()

        assert not worker.is_alive


class TestOnnxBackend:
    def test_missing_model_file(self, tmp_path):
        with pytest.raises(ModelLoadError):
            OnnxBackend(OnnxConfig(model_path=str(tmp_path / "missing.onnx")))

    def test_default_factory_raises_model_load_error(self, tmp_path):
        with pytest.raises(ModelLoadError):
            create_onnx_backend(ModelConfig(path=str(tmp_path / "missing.onnx")))
