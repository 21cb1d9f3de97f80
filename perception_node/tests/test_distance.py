from __future__ import annotations

from pathlib import Path

import pytest

from perception_node.app.config.settings import NodeSettings
from perception_node.app.errors import ConfigurationError
from perception_node.app.models import Detection
from perception_node.app.services.distance import DistanceModel, estimate_distance


def test_zero_height_cone_is_polynomial_intercept() -> None:
    assert estimate_distance(0, "cone") == 8.77


def test_nothing_label_ignores_height() -> None:
    assert estimate_distance(250.0, "nothing") == 8.77


def test_cone_distance_at_centimeter_resolution() -> None:
    # 877.33 - 272.92 + 32.84 - 1.30 = 635.94 cm
    assert estimate_distance(28.125, "cone") == 6.36


def test_class_multiplier_normalizes_height() -> None:
    model = DistanceModel()
    assert model.normalize(10.0, "bucket") == pytest.approx(23.0)
    assert model.normalize(10.0, "hen") == pytest.approx(20.0)
    assert estimate_distance(10.0, "hen") == estimate_distance(20.0, "cone")


def test_unknown_label_uses_height_unscaled() -> None:
    assert estimate_distance(40.0, "person") == estimate_distance(40.0, "pylon")


def test_annotate_sets_distance_from_box_height() -> None:
    detection = Detection(bbox=[270.0, 87.1875, 370.0, 115.3125], confidence=0.9, class_id=2, class_name="cone")

    DistanceModel().annotate([detection])

    assert detection.distance == 6.36


def test_bundled_yaml_matches_defaults() -> None:
    loaded = DistanceModel.from_yaml(NodeSettings().distance_model_path)
    assert loaded.estimate(0, "cone") == 8.77
    assert loaded.height_multipliers["bucket"] == 2.3
    assert loaded.height_multipliers["nothing"] == 0.0


def test_yaml_overrides(tmp_path: Path) -> None:
    path = tmp_path / "distance.yaml"
    path.write_text(
        "\n".join(
            [
                "coefficients:",
                "  a: 0",
                "  b: 0",
                "  c: -1",
                "  d: 500",
                "height_multipliers:",
                "  person: 0.5",
            ]
        )
    )

    model = DistanceModel.from_yaml(path)

    assert model.estimate(100.0, "person") == 4.5
    assert model.estimate(100.0, "cone") == 4.0


def test_missing_yaml_is_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        DistanceModel.from_yaml(tmp_path / "missing.yaml")
