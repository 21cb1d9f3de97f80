"""USB camera capture with per-tick buffer flushing."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence, Union

import cv2

from ..errors import CameraOpenError, CaptureError
from ..utils.video import Source, encode_jpeg, open_first_available

LOGGER = logging.getLogger(__name__)

DEFAULT_WARMUP_FRAMES = 3


class UsbCamera:
    """Owns an opened capture device and hands out JPEG-compressed frames."""

    def __init__(
        self,
        capture: cv2.VideoCapture,
        source: Source,
        snapshot_path: Optional[Path] = None,
    ) -> None:
        self._capture = capture
        self.source = source
        self.snapshot_path = snapshot_path

    @classmethod
    def open(
        cls,
        candidates: Sequence[Union[int, str]],
        width: int = 640,
        height: int = 360,
        fps: int = 30,
        snapshot_path: Optional[Path] = None,
    ) -> "UsbCamera":
        """Open the first working device among ``candidates`` and configure MJPG capture."""

        try:
            source, capture = open_first_available(candidates)
        except RuntimeError as exc:
            raise CameraOpenError(str(exc)) from exc
        capture.set(cv2.CAP_PROP_FOURCC, cv2.VideoWriter_fourcc(*"MJPG"))
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        capture.set(cv2.CAP_PROP_FPS, fps)
        capture.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        LOGGER.info("Camera %s configured for %dx%d @ %d FPS", source, width, height, fps)
        return cls(capture, source, snapshot_path=snapshot_path)

    def capture(self, warmup_frames: int = DEFAULT_WARMUP_FRAMES) -> bytes:
        """Return the current frame as JPEG bytes.

        ``warmup_frames`` buffered frames are grabbed and dropped first so the
        returned image is not stale; failures among those are ignored.
        """

        for _ in range(max(warmup_frames, 0)):
            try:
                self._capture.grab()
            except cv2.error as exc:
                LOGGER.debug("Ignoring warm-up grab failure: %s", exc)

        try:
            success, frame = self._capture.read()
        except cv2.error as exc:
            raise CaptureError(f"Frame read failed on {self.source}: {exc}") from exc
        if not success or frame is None:
            raise CaptureError(f"No frame returned by {self.source}")

        try:
            frame_bytes = encode_jpeg(frame)
        except (cv2.error, ValueError) as exc:
            raise CaptureError(f"Unable to compress frame from {self.source}: {exc}") from exc

        if self.snapshot_path is not None:
            self._write_snapshot(frame_bytes)
        return frame_bytes

    def release(self) -> None:
        LOGGER.info("Releasing camera %s", self.source)
        self._capture.release()

    def _write_snapshot(self, frame_bytes: bytes) -> None:
        target = self.snapshot_path
        temp_path = target.with_name(f"{target.stem}.tmp{target.suffix}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_bytes(frame_bytes)
            temp_path.replace(target)
        except OSError as exc:
            raise CaptureError(f"Unable to write frame snapshot {target}: {exc}") from exc
