"""Geometry helper utilities for bounding boxes in xyxy format."""
from __future__ import annotations

from typing import Sequence, Tuple

BBox = Sequence[float]


def bbox_area(bbox: BBox) -> float:
    x1, y1, x2, y2 = bbox
    return float((x2 - x1) * (y2 - y1))


def center_to_corners(cx: float, cy: float, width: float, height: float) -> Tuple[float, float, float, float]:
    """Convert a center/size box into ``(x1, y1, x2, y2)``."""

    return (cx - width / 2.0, cy - height / 2.0, cx + width / 2.0, cy + height / 2.0)


def intersection_area(box1: BBox, box2: BBox) -> float:
    """Return the overlapping area of two boxes, zero when they are disjoint."""

    overlap_w = min(box1[2], box2[2]) - max(box1[0], box2[0])
    overlap_h = min(box1[3], box2[3]) - max(box1[1], box2[1])
    # Both lengths clamp independently; two negatives must not multiply into a positive area.
    return float(max(0.0, overlap_w) * max(0.0, overlap_h))


def union_area(box1: BBox, box2: BBox) -> float:
    return bbox_area(box1) + bbox_area(box2) - intersection_area(box1, box2)


def iou(box1: BBox, box2: BBox) -> float:
    """Return intersection-over-union of two boxes.

    Degenerate pairs whose union is zero (for example two zero-area boxes)
    yield 0.0 rather than dividing by zero.
    """

    union = union_area(box1, box2)
    if union <= 0:
        return 0.0
    return intersection_area(box1, box2) / union
