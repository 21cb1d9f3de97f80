from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class ReportEntry(BaseModel):
    box_location: List[float] = Field(min_length=4, max_length=4)
    otype: str
    prob: float = Field(ge=0.0, le=1.0)
    dist: float

    @field_validator("otype")
    @classmethod
    def _non_empty_label(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("otype must not be empty")
        return value


class TopicMessage(BaseModel):
    topic: str
    sequence: int
    received_at: datetime
    content_type: str
    size: int
    format: Optional[str] = None
    frame_id: Optional[str] = None
    timestamp: Optional[str] = None
    report: Optional[List[ReportEntry]] = None


class TopicSummary(BaseModel):
    topic: str
    messages: int
    last_received_at: Optional[datetime] = None
