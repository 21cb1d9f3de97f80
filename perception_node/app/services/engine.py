"""ONNX Runtime wrapper for the fixed-resolution YOLOv8 detectors."""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

try:  # pragma: no cover - import guarded for environments without onnxruntime
    import onnxruntime as ort
except ImportError as exc:  # pragma: no cover
    raise ImportError(
        "onnxruntime is required for on-device inference. Install the project with "
        "`pip install -e .` before running the node."
    ) from exc

from ..errors import ConfigurationError, InferenceError
from ..models import ModelVariant
from ..utils.video import decode_frame
from .decoder import BOX_COLUMNS, validate_label_table

LOGGER = logging.getLogger(__name__)

DEFAULT_PROVIDERS = ("CPUExecutionProvider",)


def prepare_input(frame_bytes: bytes, input_size: int = 640) -> Tuple[np.ndarray, int, int]:
    """Return the NCHW float tensor plus the original image width and height."""

    try:
        image = decode_frame(frame_bytes)
    except (cv2.error, ValueError) as exc:
        raise InferenceError(f"Unable to decode frame for inference: {exc}") from exc
    image_height, image_width = image.shape[:2]
    resized = cv2.resize(image, (input_size, input_size), interpolation=cv2.INTER_CUBIC)
    blob = resized[:, :, ::-1].astype(np.float32) / 255.0
    blob = np.ascontiguousarray(blob.transpose(2, 0, 1)[np.newaxis, ...])
    return blob, image_width, image_height


class OnnxDetector:
    """Holds one inference session for the lifetime of the node."""

    def __init__(
        self,
        model_path: Path,
        labels: Sequence[str],
        input_size: int = 640,
        providers: Optional[Sequence[str]] = None,
    ) -> None:
        self.model_path = model_path
        self.labels = tuple(labels)
        self.input_size = input_size
        LOGGER.info("Loading ONNX model from %s", model_path)
        if not Path(model_path).exists():
            raise ConfigurationError(f"Model file not found: {model_path}")
        try:
            self._session = ort.InferenceSession(str(model_path), providers=list(providers or DEFAULT_PROVIDERS))
        except Exception as exc:
            raise ConfigurationError(f"Failed to load model {model_path}: {exc}") from exc
        self._input_name = self._session.get_inputs()[0].name
        self._check_output_shape()
        LOGGER.info("Model loaded using %s", self._session.get_providers()[0])

    @classmethod
    def for_variant(
        cls,
        variant: ModelVariant,
        model_dir: Path,
        model_path: Optional[Path] = None,
        input_size: int = 640,
        providers: Optional[Sequence[str]] = None,
    ) -> "OnnxDetector":
        path = model_path or Path(model_dir) / variant.model_filename
        return cls(path, variant.labels, input_size=input_size, providers=providers)

    def _check_output_shape(self) -> None:
        shape = self._session.get_outputs()[0].shape
        LOGGER.debug("Model output shape: %s", shape)
        # (1, 4 + K, N); symbolic dimensions are left to the decoder
        if len(shape) == 3 and isinstance(shape[1], int):
            validate_label_table(shape[1], self.labels)
        elif len(shape) == 3 and not isinstance(shape[1], int):
            LOGGER.warning(
                "Model output has dynamic attribute axis; expecting %d columns at runtime",
                BOX_COLUMNS + len(self.labels),
            )

    def prepare(self, frame_bytes: bytes) -> Tuple[np.ndarray, int, int]:
        return prepare_input(frame_bytes, self.input_size)

    def run(self, tensor: np.ndarray) -> np.ndarray:
        start = time.perf_counter()
        try:
            outputs = self._session.run(None, {self._input_name: tensor})
        except Exception as exc:
            raise InferenceError(f"Inference failed: {exc}") from exc
        LOGGER.debug("Inference took %.1f ms", (time.perf_counter() - start) * 1000)
        return np.asarray(outputs[0])
