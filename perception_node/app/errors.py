"""Exception types raised by the perception node.

Configuration errors are fatal and stop the node before the loop starts.
Stage errors only abort the tick in which they happen.
"""
from __future__ import annotations


class PerceptionError(RuntimeError):
    """Base class for perception node failures."""


class ConfigurationError(PerceptionError):
    """Model, label table, or distance model configuration is unusable."""


class CameraOpenError(ConfigurationError):
    """No candidate capture device could be opened."""


class RecoverableStageError(PerceptionError):
    """A pipeline stage failed; the current tick is abandoned."""

    stage = "unknown"


class CaptureError(RecoverableStageError):
    stage = "capture"


class PreviewEncodeError(RecoverableStageError):
    stage = "preview"


class InferenceError(RecoverableStageError):
    stage = "inference"


class SerializationError(RecoverableStageError):
    stage = "serialize"


class PublishError(RecoverableStageError):
    stage = "publish"
