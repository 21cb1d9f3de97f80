"""Shared data models for the perception node."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple

NOTHING_LABEL = "nothing"


class ModelVariant(str, Enum):
    """Detector variants shipped with the node, each with its own label table."""

    A = "A"
    B = "B"

    @property
    def labels(self) -> Tuple[str, ...]:
        return _VARIANT_LABELS[self]

    @property
    def model_filename(self) -> str:
        return _VARIANT_MODELS[self]


_VARIANT_LABELS: Dict[ModelVariant, Tuple[str, ...]] = {
    ModelVariant.A: ("hen", "bucket", "cone"),
    ModelVariant.B: ("pylon", "person", "roktrack"),
}

_VARIANT_MODELS: Dict[ModelVariant, str] = {
    ModelVariant.A: "hen_bucket_cone_yolov8_nano_fixed_640_640.onnx",
    ModelVariant.B: "roktrack_yolov8_nano_fixed_640_640.onnx",
}


class PreviewMode(str, Enum):
    NONE = "none"
    LOW = "low"
    MED = "med"
    HIGH = "high"


@dataclass
class Detection:
    """Represents a single detected object in original-image pixel space."""

    bbox: Sequence[float]
    confidence: float
    class_id: int
    class_name: str
    distance: Optional[float] = None

    @property
    def height(self) -> float:
        return float(self.bbox[3] - self.bbox[1])

    @classmethod
    def nothing(cls) -> "Detection":
        """Synthetic entry reported when no detection survives a tick."""

        return cls(bbox=[0.0, 0.0, 0.0, 0.0], confidence=1.0, class_id=-1, class_name=NOTHING_LABEL, distance=0.0)

    def to_report_entry(self) -> Dict[str, Any]:
        return {
            "box_location": [float(value) for value in self.bbox],
            "otype": self.class_name,
            "prob": float(self.confidence),
            "dist": float(self.distance) if self.distance is not None else 0.0,
        }
