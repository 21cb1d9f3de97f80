from __future__ import annotations

from pathlib import Path
from typing import List

import cv2
import numpy as np
import pytest

from perception_node.app.errors import CameraOpenError, CaptureError
from perception_node.app.services.camera import UsbCamera
from perception_node.app.utils import video


class FakeCapture:
    available = {"/dev/video1"}

    def __init__(self, source) -> None:
        self.source = source
        self.grabs = 0
        self.reads = 0
        self.properties = {}
        self.released = False
        self.fail_grab = False
        self.frame = np.zeros((360, 640, 3), dtype=np.uint8)

    def isOpened(self) -> bool:
        return self.source in self.available

    def set(self, prop, value) -> bool:
        self.properties[prop] = value
        return True

    def grab(self) -> bool:
        self.grabs += 1
        if self.fail_grab:
            raise cv2.error("grab failed")
        return True

    def read(self):
        self.reads += 1
        if self.frame is None:
            return False, None
        return True, self.frame

    def release(self) -> None:
        self.released = True


@pytest.fixture()
def fake_capture(monkeypatch) -> List[FakeCapture]:
    created: List[FakeCapture] = []

    def factory(source):
        capture = FakeCapture(source)
        created.append(capture)
        return capture

    monkeypatch.setattr(video.cv2, "VideoCapture", factory)
    return created


def test_open_tries_candidates_in_order(fake_capture: List[FakeCapture]) -> None:
    camera = UsbCamera.open(["/dev/video0", "/dev/video1", "/dev/video2"])

    assert camera.source == "/dev/video1"
    assert [capture.source for capture in fake_capture] == ["/dev/video0", "/dev/video1"]
    assert fake_capture[0].released
    assert fake_capture[1].properties[cv2.CAP_PROP_FRAME_WIDTH] == 640


def test_open_fails_when_no_candidate_opens(fake_capture: List[FakeCapture]) -> None:
    with pytest.raises(CameraOpenError):
        UsbCamera.open(["/dev/video5", "3"])
    assert fake_capture[1].source == 3


def test_capture_discards_warmup_frames(fake_capture: List[FakeCapture]) -> None:
    camera = UsbCamera.open(["/dev/video1"])
    device = fake_capture[0]
    device.fail_grab = True

    frame_bytes = camera.capture(warmup_frames=3)

    assert device.grabs == 3
    assert device.reads == 1
    assert frame_bytes[:2] == b"\xff\xd8"


def test_capture_failure_after_warmup(fake_capture: List[FakeCapture]) -> None:
    camera = UsbCamera.open(["/dev/video1"])
    fake_capture[0].frame = None

    with pytest.raises(CaptureError):
        camera.capture()


def test_capture_writes_snapshot(fake_capture: List[FakeCapture], tmp_path: Path) -> None:
    target = tmp_path / "image.jpg"
    camera = UsbCamera.open(["/dev/video1"], snapshot_path=target)

    frame_bytes = camera.capture()

    assert target.read_bytes() == frame_bytes
    assert not (tmp_path / "image.tmp.jpg").exists()
