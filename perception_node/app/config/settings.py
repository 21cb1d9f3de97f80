"""Configuration utilities for the perception node."""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..models import ModelVariant, PreviewMode
from ..utils.rounding import round_half_away


class NodeSettings(BaseSettings):
    """Node configuration sourced from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="PERCEPTION_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        protected_namespaces=(),
    )

    fps: float = Field(default=0.5, gt=0.0, description="Ticks per second of the perception loop.")
    confidence_threshold: float = Field(default=0.4, ge=0.0, le=1.0)
    model_variant: ModelVariant = Field(default=ModelVariant.A)
    preview_mode: PreviewMode = Field(default=PreviewMode.HIGH)
    verbose: bool = Field(default=False)

    model_dir: Path = Field(default=Path("models"), description="Directory holding variant ONNX files.")
    model_path: Optional[Path] = Field(default=None, description="Explicit ONNX file overriding the variant default.")
    model_input_size: int = Field(default=640, gt=0)
    execution_providers: List[str] = Field(default_factory=lambda: ["CPUExecutionProvider"])

    camera_devices: List[str] = Field(default_factory=lambda: ["/dev/video0", "/dev/video1"])
    frame_width: int = Field(default=640, gt=0)
    frame_height: int = Field(default=360, gt=0)
    camera_fps: int = Field(default=30, gt=0)
    warmup_frames: int = Field(default=3, ge=0)
    snapshot_path: Optional[Path] = Field(default=None, description="Write each used frame here when set.")

    iou_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    per_class_nms: bool = Field(default=False, description="Only suppress overlaps within the same class.")
    jpeg_quality: int = Field(default=80, ge=1, le=100)
    distance_model_path: Path = Field(
        default=Path(__file__).resolve().parent / "distance_model.yaml",
        description="Distance polynomial and per-class height multipliers.",
    )

    publish_endpoint: Optional[str] = Field(default=None, description="Report relay base URL.")
    publish_timeout: float = Field(default=5.0, gt=0.0)
    report_topic: str = Field(default="detections")
    preview_topic: str = Field(default="image/compressed")
    log_format: str = Field(default="text", pattern="^(text|json)$")

    @field_validator("model_dir", "model_path", "snapshot_path", "distance_model_path", mode="before")
    @classmethod
    def _expand_path(cls, value: Optional[str | Path]) -> Optional[Path]:
        if value is None:
            return None
        return Path(value).expanduser()

    @property
    def period_ms(self) -> int:
        return int(round_half_away(1000.0 / self.fps))

    @property
    def period_seconds(self) -> float:
        return self.period_ms / 1000.0


def load_settings(**overrides: object) -> NodeSettings:
    """Return node settings, applying optional overrides."""

    return NodeSettings(**overrides)
