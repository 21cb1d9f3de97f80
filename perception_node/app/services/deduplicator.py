"""Greedy non-maximum suppression over decoded detections."""
from __future__ import annotations

import logging
from typing import Iterable, List

from ..models import Detection
from ..utils.geometry import iou

LOGGER = logging.getLogger(__name__)

DEFAULT_IOU_THRESHOLD = 0.7


class Deduplicator:
    """Keeps the most confident detection of each overlapping cluster.

    Suppression is global by default: an overlapping detection of another
    class is dropped just like a duplicate of the same class. ``per_class``
    restricts comparisons to detections sharing a label.
    """

    def __init__(self, iou_threshold: float = DEFAULT_IOU_THRESHOLD, per_class: bool = False) -> None:
        self.iou_threshold = iou_threshold
        self.per_class = per_class

    def apply(self, detections: Iterable[Detection]) -> List[Detection]:
        # sorted() is stable, so equal confidences keep decoder order
        pool = sorted(detections, key=lambda detection: detection.confidence, reverse=True)
        candidates = len(pool)
        kept: List[Detection] = []
        while pool:
            selected = pool.pop(0)
            kept.append(selected)
            pool = [other for other in pool if not self._suppresses(selected, other)]
        LOGGER.debug("Suppression kept %d of %d detections", len(kept), candidates)
        return kept

    def _suppresses(self, selected: Detection, other: Detection) -> bool:
        if self.per_class and selected.class_name != other.class_name:
            return False
        return iou(selected.bbox, other.bbox) >= self.iou_threshold
