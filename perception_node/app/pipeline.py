"""Per-tick perception cycle and the fixed-period loop that drives it."""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from .errors import RecoverableStageError, SerializationError
from .models import Detection
from .services.decoder import DetectionDecoder
from .services.deduplicator import Deduplicator
from .services.distance import DistanceModel
from .services.preview import PreviewEncoder
from .services.transport import PREVIEW_TOPIC, REPORT_TOPIC, Publisher, preview_metadata

LOGGER = logging.getLogger(__name__)


class FrameSource(Protocol):
    def capture(self, warmup_frames: int = ...) -> bytes:
        ...


class InferenceEngine(Protocol):
    def prepare(self, frame_bytes: bytes) -> Tuple[np.ndarray, int, int]:
        ...

    def run(self, tensor: np.ndarray) -> np.ndarray:
        ...


def serialize_report(detections: Sequence[Detection]) -> str:
    """Render the detection report, substituting the "nothing" entry when empty."""

    entries = [detection.to_report_entry() for detection in detections] or [Detection.nothing().to_report_entry()]
    try:
        return json.dumps(entries, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"Unable to serialize report: {exc}") from exc


@dataclass
class PipelineContext:
    """Everything a tick needs; owned exclusively by one pipeline."""

    camera: FrameSource
    engine: InferenceEngine
    publisher: Publisher
    decoder: DetectionDecoder
    deduplicator: Deduplicator
    distance_model: DistanceModel
    preview_encoder: PreviewEncoder
    warmup_frames: int = 3
    report_topic: str = REPORT_TOPIC
    preview_topic: str = PREVIEW_TOPIC
    verbose: bool = False
    tick_count: int = 0


class PerceptionPipeline:
    """Runs capture → preview → inference → decode → suppress → distance → publish."""

    def __init__(
        self,
        context: PipelineContext,
        period_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.context = context
        self.period_seconds = period_seconds
        self._clock = clock
        self._sleep = sleep

    def detect(self, frame_bytes: bytes) -> List[Detection]:
        """Inference plus post-processing for one frame."""

        ctx = self.context
        tensor, image_width, image_height = ctx.engine.prepare(frame_bytes)
        output = ctx.engine.run(tensor)
        candidates = ctx.decoder.decode(output, image_width, image_height)
        detections = ctx.deduplicator.apply(candidates)
        ctx.distance_model.annotate(detections)
        return detections

    def run_tick(self) -> Optional[str]:
        """Execute one cycle; return the published report, or None when the tick was abandoned."""

        ctx = self.context
        ctx.tick_count += 1
        tick = ctx.tick_count
        try:
            frame_bytes = ctx.camera.capture(ctx.warmup_frames)
            if ctx.preview_encoder.enabled:
                preview = ctx.preview_encoder.encode(frame_bytes)
                ctx.publisher.publish(ctx.preview_topic, preview, preview_metadata(tick))
            detections = self.detect(frame_bytes)
            report = serialize_report(detections)
            ctx.publisher.publish(ctx.report_topic, report.encode("utf-8"))
        except RecoverableStageError as exc:
            LOGGER.warning("Tick %d abandoned at %s stage: %s", tick, exc.stage, exc)
            return None
        LOGGER.log(logging.INFO if ctx.verbose else logging.DEBUG, "Tick %d published: %s", tick, report)
        return report

    def run_forever(self, max_ticks: Optional[int] = None) -> int:
        """Fire ticks on a fixed period until ``max_ticks`` ticks have run.

        A tick that overruns its period delays the next one; missed periods
        are skipped rather than queued, so ticks never overlap or burst.
        """

        LOGGER.info("Perception loop started with period %.3fs", self.period_seconds)
        ticks = 0
        next_fire = self._clock()
        while max_ticks is None or ticks < max_ticks:
            now = self._clock()
            if now < next_fire:
                self._sleep(next_fire - now)
            self.run_tick()
            ticks += 1
            next_fire += self.period_seconds
            now = self._clock()
            if self.period_seconds <= 0:
                next_fire = now
            elif next_fire < now:
                missed = int((now - next_fire) // self.period_seconds) + 1
                LOGGER.debug("Tick overran its period; skipping %d slot(s)", missed)
                next_fire += missed * self.period_seconds
        return ticks
