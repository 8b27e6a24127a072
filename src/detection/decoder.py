"""
Raw model output decoding.

YOLO-style exporters disagree on output orientation: some emit
[1, num_detections, num_features], others [1, num_features, num_detections].
The layout is chosen per output from its dims and never assumed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from errors import MalformedOutputShape
from models.detection import Detection
from .mapper import CoordinateMapper

# cx, cy, w, h
BOX_FEATURES = 4


@dataclass(frozen=True)
class RawOutput:
    """
    Model output buffer plus the dims the engine declared for it.

    data may be flat; dims describe how to read it.
    """
    data: np.ndarray
    dims: Tuple[int, ...]

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "RawOutput":
        arr = np.asarray(arr)
        return cls(data=arr.reshape(-1), dims=tuple(int(d) for d in arr.shape))


class OutputLayout(str, Enum):
    """Orientation of a rank-3 detection output."""
    DETECTIONS_FIRST = "detections_first"  # [1, N, F]
    FEATURES_FIRST = "features_first"      # [1, F, N]

    def slots(self, grid: np.ndarray) -> np.ndarray:
        """Return the 2-D output as one row per detection slot."""
        if self is OutputLayout.DETECTIONS_FIRST:
            return grid
        return grid.T


def select_layout(dims: Sequence[int]) -> OutputLayout:
    """
    Pick the output orientation from declared dims.

    The larger trailing dimension is the detection count.

    Raises:
        MalformedOutputShape: If dims cannot be a single-batch detection output.
    """
    dims = tuple(dims)
    if len(dims) != 3:
        raise MalformedOutputShape(dims, "expected rank 3")
    if dims[0] != 1:
        raise MalformedOutputShape(dims, "batch dimension must be 1")

    a, b = dims[1], dims[2]
    if a == b:
        raise MalformedOutputShape(dims, "trailing dimensions are equal, orientation is ambiguous")
    if min(a, b) < BOX_FEATURES + 1:
        raise MalformedOutputShape(dims, "need 4 box values and at least one class score")

    return OutputLayout.DETECTIONS_FIRST if a > b else OutputLayout.FEATURES_FIRST


class DetectionDecoder:
    """
    Turns a RawOutput into frame-space candidate detections.

    Example:
        decoder = DetectionDecoder(conf_threshold=0.25, input_size=640)
        candidates = decoder.decode(raw, frame_width=1280, frame_height=720)
    """

    def __init__(
        self,
        conf_threshold: float = 0.25,
        input_size: int = 640,
        class_names: Optional[Dict[int, str]] = None,
    ):
        self.conf_threshold = conf_threshold
        self.input_size = input_size
        self.class_names = class_names if class_names is not None else {0: "barcode"}

    def slot_matrix(self, raw: RawOutput) -> np.ndarray:
        """
        Reshape raw output into an (N, F) float array.

        Raises:
            MalformedOutputShape: On unknown dims or a buffer/dims mismatch.
        """
        layout = select_layout(raw.dims)
        data = np.asarray(raw.data, dtype=np.float32).reshape(-1)
        expected = int(np.prod(raw.dims))
        if data.size != expected:
            raise MalformedOutputShape(
                raw.dims, f"buffer holds {data.size} values, dims imply {expected}"
            )
        grid = data.reshape(raw.dims[1], raw.dims[2])
        logging.debug(f"Output dims {raw.dims} decoded as {layout.value}")
        return layout.slots(grid)

    def decode(self, raw: RawOutput, frame_width: int, frame_height: int) -> List[Detection]:
        """
        Decode all slots whose best class score exceeds the threshold.

        Returns:
            Unordered list of detections in frame-pixel coordinates.

        Raises:
            MalformedOutputShape: If the output cannot be interpreted.
        """
        slots = self.slot_matrix(raw)
        scores = slots[:, BOX_FEATURES:]
        class_ids = scores.argmax(axis=1)
        confidences = scores.max(axis=1)
        keep = np.flatnonzero(confidences > self.conf_threshold)

        mapper = CoordinateMapper(self.input_size, frame_width, frame_height)
        out: List[Detection] = []
        for i in keep:
            cx, cy, w, h = (float(v) for v in slots[i, :BOX_FEATURES])
            class_id = int(class_ids[i])
            out.append(
                Detection(
                    bbox=mapper.to_frame(cx, cy, w, h),
                    confidence=float(confidences[i]),
                    class_id=class_id,
                    class_name=self.class_names.get(class_id, str(class_id)),
                )
            )
        return out
