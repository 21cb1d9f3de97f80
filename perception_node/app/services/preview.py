"""Downsampled JPEG previews of captured frames."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import cv2

from ..errors import PreviewEncodeError
from ..models import PreviewMode
from ..utils.video import decode_frame, encode_jpeg

LOGGER = logging.getLogger(__name__)

DEFAULT_JPEG_QUALITY = 80


@dataclass(frozen=True)
class PreviewProfile:
    size: Tuple[int, int]
    grayscale: bool = False


PREVIEW_PROFILES: Dict[PreviewMode, PreviewProfile] = {
    PreviewMode.LOW: PreviewProfile(size=(320, 180), grayscale=True),
    PreviewMode.MED: PreviewProfile(size=(320, 180)),
    PreviewMode.HIGH: PreviewProfile(size=(640, 360)),
}


class PreviewEncoder:
    """Resize and re-encode frames according to the configured bandwidth mode."""

    def __init__(self, mode: PreviewMode, quality: int = DEFAULT_JPEG_QUALITY) -> None:
        self.mode = PreviewMode(mode)
        self.quality = quality
        self._profile: Optional[PreviewProfile] = PREVIEW_PROFILES.get(self.mode)

    @property
    def enabled(self) -> bool:
        return self._profile is not None

    def encode(self, frame_bytes: bytes) -> bytes:
        if self._profile is None:
            raise PreviewEncodeError("Preview encoding requested while preview mode is 'none'")

        try:
            image = decode_frame(frame_bytes)
            resized = cv2.resize(image, self._profile.size, interpolation=cv2.INTER_NEAREST)
            if self._profile.grayscale:
                resized = cv2.cvtColor(resized, cv2.COLOR_BGR2GRAY)
            payload = encode_jpeg(resized, self.quality)
        except (cv2.error, ValueError) as exc:
            raise PreviewEncodeError(f"Preview encoding failed in '{self.mode.value}' mode: {exc}") from exc
        LOGGER.debug("Encoded %s preview (%d bytes)", self.mode.value, len(payload))
        return payload
