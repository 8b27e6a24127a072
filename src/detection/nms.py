"""
Greedy non-max suppression over axis-aligned boxes.
"""

from __future__ import annotations

from typing import List, Sequence

from models.detection import BoundingBox, Detection


def iou(box_a: BoundingBox, box_b: BoundingBox) -> float:
    """
    Calculate Intersection over Union (IoU) between two boxes.

    Returns:
        IoU value between 0 and 1 (0 for disjoint boxes or an empty union).
    """
    x1_i = max(box_a.x, box_b.x)
    y1_i = max(box_a.y, box_b.y)
    x2_i = min(box_a.x2, box_b.x2)
    y2_i = min(box_a.y2, box_b.y2)

    if x2_i <= x1_i or y2_i <= y1_i:
        return 0.0

    intersection = (x2_i - x1_i) * (y2_i - y1_i)
    union = box_a.area + box_b.area - intersection

    if union <= 0:
        return 0.0

    return intersection / union


def non_max_suppression(
    detections: Sequence[Detection],
    iou_threshold: float = 0.45,
) -> List[Detection]:
    """
    Keep the most confident box of every overlapping group.

    Candidates are visited by confidence, highest first; ties keep their input
    order. A box is suppressed when its IoU with an already kept box exceeds
    iou_threshold.

    Args:
        detections: Candidates for one frame, in any order.
        iou_threshold: Overlap above which the weaker box is dropped.

    Returns:
        Surviving detections, sorted by confidence descending.
    """
    ordered = sorted(detections, key=lambda d: d.confidence, reverse=True)
    kept: List[Detection] = []

    for candidate in ordered:
        if all(iou(candidate.bbox, k.bbox) <= iou_threshold for k in kept):
            kept.append(candidate)

    return kept
