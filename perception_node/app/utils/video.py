"""Video utilities for capture devices and compressed frames."""
from __future__ import annotations

import logging
from typing import Sequence, Union

import cv2
import numpy as np

LOGGER = logging.getLogger(__name__)

Source = Union[int, str]


def parse_source(raw: Union[int, str]) -> Source:
    """Turn a digit string such as ``"0"`` into a device index; keep paths as-is."""

    if isinstance(raw, int):
        return raw
    try:
        return int(raw)
    except ValueError:
        return raw


def open_video_source(source: Source) -> cv2.VideoCapture:
    """Open a video capture object from an integer index or device path."""

    capture = cv2.VideoCapture(source)
    if not capture.isOpened():
        capture.release()
        raise RuntimeError(f"Unable to open video source: {source}")
    LOGGER.info("Video source %s opened successfully", source)
    return capture


def open_first_available(candidates: Sequence[Union[int, str]]) -> tuple[Source, cv2.VideoCapture]:
    """Return the first candidate that opens, trying them in order."""

    failures = []
    for raw in candidates:
        source = parse_source(raw)
        try:
            return source, open_video_source(source)
        except RuntimeError as exc:
            LOGGER.warning("%s", exc)
            failures.append(str(source))
    raise RuntimeError(f"No video source could be opened; tried: {', '.join(failures) or 'none'}")


def decode_frame(frame_bytes: bytes) -> np.ndarray:
    """Decode compressed frame bytes into a BGR image."""

    buffer = np.frombuffer(frame_bytes, dtype=np.uint8)
    if buffer.size == 0:
        raise ValueError("Frame buffer is empty")
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if image is None:
        raise ValueError("Frame bytes are not a decodable image")
    return image


def encode_jpeg(image: np.ndarray, quality: int = 95) -> bytes:
    success, buffer = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    if not success:
        raise ValueError("JPEG encoding failed")
    return buffer.tobytes()
