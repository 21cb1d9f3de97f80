"""Distance estimation from apparent object height."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Mapping

import yaml

from ..errors import ConfigurationError
from ..models import NOTHING_LABEL, Detection
from ..utils.rounding import round_half_away

LOGGER = logging.getLogger(__name__)

CM_IN_METER = 100.0

DEFAULT_HEIGHT_MULTIPLIERS: Dict[str, float] = {
    "cone": 1.0,
    "pylon": 1.0,
    "bucket": 2.3,
    "hen": 2.0,
    NOTHING_LABEL: 0.0,
}


@dataclass(frozen=True)
class DistanceModel:
    """Cubic fit ``dist_cm = A*n^3 + B*n^2 + C*n + D`` over normalized pixel height ``n``.

    Heights are normalized per class so that objects of different physical
    size share the curve fitted for cones. Labels missing from the table
    are used unscaled.
    """

    a: float = -5.86230652281417e-05
    b: float = 0.041512419539938
    c: float = -9.70395960666584
    d: float = 877.331591326026
    height_multipliers: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_HEIGHT_MULTIPLIERS))
    default_multiplier: float = 1.0

    @classmethod
    def from_yaml(cls, path: Path) -> "DistanceModel":
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = yaml.safe_load(handle) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"Unable to read distance model {path}: {exc}") from exc

        coefficients = payload.get("coefficients", {}) or {}
        multipliers = dict(DEFAULT_HEIGHT_MULTIPLIERS)
        for label, value in (payload.get("height_multipliers", {}) or {}).items():
            multipliers[str(label)] = float(value)
        # "nothing" never contributes a height, whatever the file says
        multipliers[NOTHING_LABEL] = 0.0
        try:
            model = cls(
                a=float(coefficients.get("a", cls.a)),
                b=float(coefficients.get("b", cls.b)),
                c=float(coefficients.get("c", cls.c)),
                d=float(coefficients.get("d", cls.d)),
                height_multipliers=multipliers,
                default_multiplier=float(payload.get("default_multiplier", 1.0)),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid distance model values in {path}: {exc}") from exc
        LOGGER.info("Loaded distance model from %s", path)
        return model

    def normalize(self, pixel_height: float, label: str) -> float:
        if label == NOTHING_LABEL:
            return 0.0
        return pixel_height * self.height_multipliers.get(label, self.default_multiplier)

    def estimate(self, pixel_height: float, label: str) -> float:
        """Return the distance in meters at centimeter resolution."""

        n = self.normalize(pixel_height, label)
        raw_cm = self.a * n ** 3 + self.b * n ** 2 + self.c * n + self.d
        return round_half_away(raw_cm) / CM_IN_METER

    def annotate(self, detections: Iterable[Detection]) -> None:
        """Attach a distance to every detection in place."""

        for detection in detections:
            detection.distance = self.estimate(detection.height, detection.class_name)


def estimate_distance(pixel_height: float, label: str, model: DistanceModel | None = None) -> float:
    return (model or DistanceModel()).estimate(pixel_height, label)
