from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RelaySettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    history_size: int = Field(default=50, ge=1)
    report_topics: List[str] = Field(default_factory=lambda: ["detections"])
    max_payload_bytes: int = Field(default=2_000_000, ge=1)


def get_settings() -> RelaySettings:
    return RelaySettings()
