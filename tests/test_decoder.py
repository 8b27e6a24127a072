"""
Tests for raw output decoding.
"""

import numpy as np
import pytest

from detection.decoder import DetectionDecoder, OutputLayout, RawOutput, select_layout
from errors import MalformedOutputShape
from fakes import make_output


class TestSelectLayout:
    def test_features_first(self):
        assert select_layout((1, 5, 8400)) == OutputLayout.FEATURES_FIRST

    def test_detections_first(self):
        assert select_layout((1, 8400, 5)) == OutputLayout.DETECTIONS_FIRST

    @pytest.mark.parametrize("dims", [
        (5, 8400),
        (1, 1, 5, 8400),
        (2, 5, 8400),
        (1, 6, 6),
        (1, 4, 8400),
    ])
    def test_malformed_dims(self, dims):
        with pytest.raises(MalformedOutputShape) as exc_info:
            select_layout(dims)
        assert exc_info.value.dims == dims


class TestDetectionDecoder:
    def test_single_detection_scaled_to_frame(self):
        """A 640 model box lands on a 1280x720 frame with each axis scaled."""
        output = make_output([(320, 320, 100, 60, 0.9)])
        decoder = DetectionDecoder(conf_threshold=0.25, input_size=640)

        detections = decoder.decode(RawOutput.from_array(output), 1280, 720)

        assert len(detections) == 1
        det = detections[0]
        assert det.x == pytest.approx(540.0)
        assert det.y == pytest.approx(326.25)
        assert det.w == pytest.approx(200.0)
        assert det.h == pytest.approx(67.5)
        assert det.confidence == pytest.approx(0.9)
        assert det.class_id == 0
        assert det.class_name == "barcode"

    def test_both_layouts_decode_identically(self):
        rows = [(100, 200, 40, 20, 0.8), (400, 300, 60, 30, 0.6)]
        decoder = DetectionDecoder()

        a = decoder.decode(RawOutput.from_array(make_output(rows, features_first=True)), 640, 640)
        b = decoder.decode(RawOutput.from_array(make_output(rows, features_first=False)), 640, 640)

        assert [d.bbox for d in a] == [d.bbox for d in b]
        assert [d.confidence for d in a] == [d.confidence for d in b]

    def test_threshold_is_strict(self):
        output = make_output([(320, 320, 10, 10, 0.25), (100, 100, 10, 10, 0.26)])
        decoder = DetectionDecoder(conf_threshold=0.25)

        detections = decoder.decode(RawOutput.from_array(output), 640, 640)

        assert len(detections) == 1
        assert detections[0].confidence == pytest.approx(0.26)

    def test_raising_threshold_never_adds_detections(self):
        rows = [(50 + 40 * i, 320, 20, 20, 0.1 * i) for i in range(1, 10)]
        output = RawOutput.from_array(make_output(rows))

        counts = [
            len(DetectionDecoder(conf_threshold=t).decode(output, 640, 640))
            for t in (0.0, 0.2, 0.45, 0.7, 0.95)
        ]

        assert counts == sorted(counts, reverse=True)

    def test_best_class_wins(self):
        output = make_output([(320, 320, 50, 50, 0.3, 0.7)])
        decoder = DetectionDecoder(class_names={0: "qr", 1: "ean13"})

        det = decoder.decode(RawOutput.from_array(output), 640, 640)[0]

        assert det.class_id == 1
        assert det.class_name == "ean13"
        assert det.confidence == pytest.approx(0.7)

    def test_unknown_class_name_falls_back_to_id(self):
        output = make_output([(320, 320, 50, 50, 0.1, 0.9)])
        det = DetectionDecoder().decode(RawOutput.from_array(output), 640, 640)[0]
        assert det.class_name == "1"

    def test_empty_output(self):
        detections = DetectionDecoder().decode(RawOutput.from_array(make_output([])), 640, 480)
        assert detections == []

    def test_buffer_size_mismatch(self):
        raw = RawOutput(data=np.zeros(10, dtype=np.float32), dims=(1, 5, 8400))
        with pytest.raises(MalformedOutputShape):
            DetectionDecoder().decode(raw, 640, 640)

    def test_flat_buffer_is_read_with_dims(self):
        output = make_output([(320, 320, 100, 60, 0.9)])
        raw = RawOutput(data=output.reshape(-1), dims=(1, 5, 8400))

        detections = DetectionDecoder().decode(raw, 1280, 720)

        assert len(detections) == 1
        assert detections[0].x == pytest.approx(540.0)
