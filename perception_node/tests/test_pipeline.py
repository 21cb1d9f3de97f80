from __future__ import annotations

import json
from typing import List, Optional, Tuple

import numpy as np

from perception_node.app.errors import CaptureError, InferenceError
from perception_node.app.models import Detection, ModelVariant, PreviewMode
from perception_node.app.pipeline import PerceptionPipeline, PipelineContext, serialize_report
from perception_node.app.services.decoder import DetectionDecoder
from perception_node.app.services.deduplicator import Deduplicator
from perception_node.app.services.distance import DistanceModel
from perception_node.app.services.preview import PreviewEncoder

SENTINEL = '[{"box_location":[0.0,0.0,0.0,0.0],"otype":"nothing","prob":1.0,"dist":0.0}]'


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeCamera:
    def __init__(self, results: list, clock: Optional[FakeClock] = None, duration: float = 0.0) -> None:
        self.results = list(results)
        self.clock = clock
        self.duration = duration
        self.warmups: List[int] = []

    def capture(self, warmup_frames: int = 3) -> bytes:
        self.warmups.append(warmup_frames)
        if self.clock is not None:
            self.clock.now += self.duration
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


class FakeEngine:
    def __init__(self, output: np.ndarray, size: Tuple[int, int] = (640, 360)) -> None:
        self.output = output
        self.size = size
        self.error: Optional[Exception] = None

    def prepare(self, frame_bytes: bytes) -> Tuple[np.ndarray, int, int]:
        return np.zeros((1, 3, 640, 640), dtype=np.float32), self.size[0], self.size[1]

    def run(self, tensor: np.ndarray) -> np.ndarray:
        if self.error is not None:
            raise self.error
        return self.output


class RecordingPublisher:
    def __init__(self) -> None:
        self.messages: List[tuple] = []

    def publish(self, topic: str, payload: bytes, metadata=None) -> None:
        self.messages.append((topic, payload, dict(metadata or {})))

    def close(self) -> None:
        return None

    def topics(self) -> List[str]:
        return [topic for topic, _, _ in self.messages]


def yolo_tensor(rows: list) -> np.ndarray:
    if not rows:
        return np.zeros((1, 7, 0), dtype=np.float32)
    return np.asarray(rows, dtype=np.float32).T[np.newaxis, ...]


def build_pipeline(camera, engine, publisher, preview_mode=PreviewMode.NONE, clock=None) -> PerceptionPipeline:
    context = PipelineContext(
        camera=camera,
        engine=engine,
        publisher=publisher,
        decoder=DetectionDecoder(ModelVariant.A.labels, confidence_threshold=0.4),
        deduplicator=Deduplicator(),
        distance_model=DistanceModel(),
        preview_encoder=PreviewEncoder(preview_mode),
    )
    if clock is None:
        return PerceptionPipeline(context, period_seconds=2.0)
    return PerceptionPipeline(context, period_seconds=2.0, clock=clock, sleep=clock.sleep)


def test_sentinel_report_when_nothing_detected() -> None:
    assert serialize_report([]) == SENTINEL


def test_report_wire_format() -> None:
    detection = Detection(bbox=[1.0, 2.0, 3.0, 4.0], confidence=0.7, class_id=0, class_name="hen", distance=8.12)
    assert serialize_report([detection]) == '[{"box_location":[1.0,2.0,3.0,4.0],"otype":"hen","prob":0.7,"dist":8.12}]'


def test_single_detection_tick_publishes_report() -> None:
    publisher = RecordingPublisher()
    camera = FakeCamera([b"frame"])
    engine = FakeEngine(yolo_tensor([[320, 180, 100, 50, 0.1, 0.2, 0.86], [10, 10, 5, 5, 0.1, 0.1, 0.1]]))
    pipeline = build_pipeline(camera, engine, publisher)

    report = pipeline.run_tick()

    assert publisher.topics() == ["detections"]
    assert publisher.messages[0][1].decode("utf-8") == report
    entries = json.loads(report)
    assert entries == [
        {"box_location": [270.0, 87.1875, 370.0, 115.3125], "otype": "cone", "prob": 0.9, "dist": 6.36}
    ]
    assert camera.warmups == [3]


def test_tick_without_detections_publishes_sentinel() -> None:
    publisher = RecordingPublisher()
    pipeline = build_pipeline(FakeCamera([b"frame"]), FakeEngine(yolo_tensor([])), publisher)

    assert pipeline.run_tick() == SENTINEL
    assert publisher.messages[0][1] == SENTINEL.encode("utf-8")


def test_capture_failure_publishes_nothing() -> None:
    publisher = RecordingPublisher()
    pipeline = build_pipeline(FakeCamera([CaptureError("device gone")]), FakeEngine(yolo_tensor([])), publisher)

    assert pipeline.run_tick() is None
    assert publisher.messages == []
    assert pipeline.context.tick_count == 1


def test_inference_failure_publishes_nothing() -> None:
    publisher = RecordingPublisher()
    engine = FakeEngine(yolo_tensor([]))
    engine.error = InferenceError("session crashed")
    pipeline = build_pipeline(FakeCamera([b"frame"]), engine, publisher)

    assert pipeline.run_tick() is None
    assert publisher.messages == []


def test_preview_published_before_report(monkeypatch) -> None:
    publisher = RecordingPublisher()
    pipeline = build_pipeline(FakeCamera([b"frame"]), FakeEngine(yolo_tensor([])), publisher, PreviewMode.LOW)
    monkeypatch.setattr(pipeline.context.preview_encoder, "encode", lambda frame: b"jpeg-bytes")

    pipeline.run_tick()

    assert publisher.topics() == ["image/compressed", "detections"]
    _, payload, metadata = publisher.messages[0]
    assert payload == b"jpeg-bytes"
    assert metadata["format"] == "jpeg"
    assert metadata["frame_id"] == "1"
    assert "timestamp" in metadata


def test_preview_encode_failure_abandons_tick() -> None:
    publisher = RecordingPublisher()
    pipeline = build_pipeline(FakeCamera([b"not a jpeg"]), FakeEngine(yolo_tensor([])), publisher, PreviewMode.HIGH)

    assert pipeline.run_tick() is None
    assert publisher.messages == []


def test_loop_keeps_period_after_capture_failure() -> None:
    clock = FakeClock()
    publisher = RecordingPublisher()
    camera = FakeCamera([CaptureError("timeout"), b"frame"], clock=clock, duration=0.5)
    pipeline = build_pipeline(camera, FakeEngine(yolo_tensor([])), publisher, clock=clock)

    ticks = pipeline.run_forever(max_ticks=3)

    assert ticks == 3
    assert clock.sleeps == [1.5, 1.5]
    assert publisher.topics() == ["detections", "detections"]


def test_overrunning_tick_skips_missed_slots() -> None:
    clock = FakeClock()
    camera = FakeCamera([b"frame"], clock=clock, duration=3.0)
    pipeline = build_pipeline(camera, FakeEngine(yolo_tensor([])), RecordingPublisher(), clock=clock)

    pipeline.run_forever(max_ticks=3)

    assert clock.sleeps == [1.0, 1.0]
    assert clock.now == 11.0


def test_non_finite_model_output_abandons_only_that_tick() -> None:
    clock = FakeClock()
    publisher = RecordingPublisher()
    engine = FakeEngine(yolo_tensor([[320, 180, 100, 50, float("nan"), 0.2, 0.86]]))
    pipeline = build_pipeline(FakeCamera([b"frame"]), engine, publisher, clock=clock)

    assert pipeline.run_tick() is None
    assert publisher.messages == []

    engine.output = yolo_tensor([])
    assert pipeline.run_forever(max_ticks=2) == 2
    assert publisher.topics() == ["detections", "detections"]
