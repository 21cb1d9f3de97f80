"""Convert raw YOLOv8 output tensors into pixel-space detections."""
from __future__ import annotations

import logging
from typing import List, Sequence

import numpy as np

from ..errors import ConfigurationError, InferenceError
from ..models import Detection
from ..utils.geometry import center_to_corners
from ..utils.rounding import round_half_away

LOGGER = logging.getLogger(__name__)

BOX_COLUMNS = 4


def validate_label_table(column_count: int, labels: Sequence[str]) -> None:
    """Raise when the tensor's class columns do not match the label table."""

    expected = BOX_COLUMNS + len(labels)
    if column_count != expected:
        raise ConfigurationError(
            f"Model output has {column_count} columns but label table {tuple(labels)} expects {expected}"
        )


def output_rows(output: np.ndarray, labels: Sequence[str]) -> np.ndarray:
    """Return the output tensor as ``N`` rows of ``[cx, cy, w, h, score_0 ... score_K-1]``.

    Batched YOLOv8 exports are always ``(1, 4 + K, N)`` and get transposed.
    A 2-D tensor may come in either orientation.
    """

    rows = np.asarray(output, dtype=np.float32)
    columns = BOX_COLUMNS + len(labels)
    if rows.ndim == 3 and rows.shape[0] == 1:
        rows = rows[0].T
    elif rows.ndim == 2:
        if rows.shape[1] != columns and rows.shape[0] == columns:
            rows = rows.T
    else:
        raise ConfigurationError(f"Unsupported model output shape {np.shape(output)}")
    validate_label_table(rows.shape[1], labels)
    return rows


class DetectionDecoder:
    """Filters tensor rows by confidence and maps them to original image coordinates."""

    def __init__(self, labels: Sequence[str], confidence_threshold: float, model_size: int = 640) -> None:
        if not labels:
            raise ConfigurationError("Label table must not be empty")
        self.labels = tuple(labels)
        self.confidence_threshold = confidence_threshold
        self.model_size = model_size

    def decode(self, output: np.ndarray, image_width: int, image_height: int) -> List[Detection]:
        """Return detections in tensor row order, without deduplication."""

        rows = output_rows(output, self.labels)
        if not np.isfinite(rows).all():
            raise InferenceError("Model output contains non-finite values")
        scale_x = float(image_width) / self.model_size
        scale_y = float(image_height) / self.model_size
        detections: List[Detection] = []
        for row in rows:
            scores = row[BOX_COLUMNS:]
            # argmax keeps the first index on ties
            class_id = int(np.argmax(scores))
            score = float(scores[class_id])
            if score < self.confidence_threshold:
                continue
            cx, cy, width, height = (float(value) for value in row[:BOX_COLUMNS])
            bbox = center_to_corners(cx * scale_x, cy * scale_y, width * scale_x, height * scale_y)
            detections.append(
                Detection(
                    bbox=list(bbox),
                    confidence=round_half_away(score, 1),
                    class_id=class_id,
                    class_name=self.labels[class_id],
                )
            )
        LOGGER.debug("Decoded %d candidates from %d rows", len(detections), len(rows))
        return detections
