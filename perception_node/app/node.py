"""Entry point for the on-device perception node."""
from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from .config.settings import NodeSettings, load_settings
from .errors import ConfigurationError
from .models import ModelVariant, PreviewMode
from .pipeline import PerceptionPipeline, PipelineContext
from .services.camera import UsbCamera
from .services.decoder import DetectionDecoder
from .services.deduplicator import Deduplicator
from .services.distance import DistanceModel
from .services.engine import OnnxDetector
from .services.preview import PreviewEncoder
from .services.transport import HttpPublisher, LogPublisher, Publisher

LOGGER = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="On-device object detection and distance publisher")
    parser.add_argument("--fps", type=float, default=None, help="Detection cycles per second")
    parser.add_argument("--conf", type=float, default=None, help="Confidence threshold")
    parser.add_argument("--model", choices=[variant.value for variant in ModelVariant], default=None, help="Model variant")
    parser.add_argument("--model-path", type=str, default=None, help="Explicit ONNX model file")
    parser.add_argument("--preview", choices=[mode.value for mode in PreviewMode], default=None, help="Preview image mode")
    parser.add_argument("--device", action="append", default=None, help="Capture device candidate (repeatable)")
    parser.add_argument("--endpoint", type=str, default=None, help="Report relay base URL")
    parser.add_argument("--per-class-nms", action="store_true", help="Only suppress overlaps within one class")
    parser.add_argument("--max-ticks", type=int, default=None, help="Stop after N cycles")
    parser.add_argument("--log-format", choices=["text", "json"], default=None, help="Logging format")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    return parser


def setup_logging(settings: NodeSettings) -> None:
    log_level = logging.DEBUG if settings.verbose else logging.INFO
    if settings.log_format == "json":
        formatter = logging.Formatter('{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}')
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    logging.basicConfig(level=log_level, handlers=[handler], force=True)


def resolve_settings(args: argparse.Namespace) -> NodeSettings:
    overrides = {}
    if args.fps is not None:
        overrides["fps"] = args.fps
    if args.conf is not None:
        overrides["confidence_threshold"] = args.conf
    if args.model:
        overrides["model_variant"] = args.model
    if args.model_path:
        overrides["model_path"] = Path(args.model_path)
    if args.preview:
        overrides["preview_mode"] = args.preview
    if args.device:
        overrides["camera_devices"] = args.device
    if args.endpoint:
        overrides["publish_endpoint"] = args.endpoint
    if args.per_class_nms:
        overrides["per_class_nms"] = True
    if args.log_format:
        overrides["log_format"] = args.log_format
    if args.verbose:
        overrides["verbose"] = True
    return load_settings(**overrides)


def build_publisher(settings: NodeSettings) -> Publisher:
    if settings.publish_endpoint:
        LOGGER.info("Publishing to relay at %s", settings.publish_endpoint)
        return HttpPublisher(settings.publish_endpoint, timeout=settings.publish_timeout)
    LOGGER.info("No publish endpoint configured; reports are logged only")
    return LogPublisher()


def build_context(settings: NodeSettings, camera: UsbCamera, publisher: Publisher) -> PipelineContext:
    """Load the model and stage components; raises ConfigurationError on misconfiguration."""

    variant = settings.model_variant
    engine = OnnxDetector.for_variant(
        variant,
        settings.model_dir,
        model_path=settings.model_path,
        input_size=settings.model_input_size,
        providers=settings.execution_providers,
    )
    return PipelineContext(
        camera=camera,
        engine=engine,
        publisher=publisher,
        decoder=DetectionDecoder(variant.labels, settings.confidence_threshold, settings.model_input_size),
        deduplicator=Deduplicator(settings.iou_threshold, per_class=settings.per_class_nms),
        distance_model=DistanceModel.from_yaml(settings.distance_model_path),
        preview_encoder=PreviewEncoder(settings.preview_mode, quality=settings.jpeg_quality),
        warmup_frames=settings.warmup_frames,
        report_topic=settings.report_topic,
        preview_topic=settings.preview_topic,
        verbose=settings.verbose,
    )


def run_node(args: argparse.Namespace) -> int:
    settings = resolve_settings(args)
    setup_logging(settings)
    LOGGER.info(
        "Starting perception node: variant=%s fps=%.2f conf=%.2f preview=%s",
        settings.model_variant.value,
        settings.fps,
        settings.confidence_threshold,
        settings.preview_mode.value,
    )

    try:
        camera = UsbCamera.open(
            settings.camera_devices,
            width=settings.frame_width,
            height=settings.frame_height,
            fps=settings.camera_fps,
            snapshot_path=settings.snapshot_path,
        )
    except ConfigurationError as exc:
        LOGGER.error("Startup failed: %s", exc)
        return 1

    publisher = build_publisher(settings)
    try:
        context = build_context(settings, camera, publisher)
        pipeline = PerceptionPipeline(context, settings.period_seconds)
        pipeline.run_forever(max_ticks=args.max_ticks)
    except ConfigurationError as exc:
        LOGGER.error("Fatal configuration error: %s", exc)
        return 1
    finally:
        publisher.close()
        camera.release()
    LOGGER.info("Perception node stopped")
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    def handle_interrupt(signum: int, frame: Optional[object]) -> None:  # pragma: no cover - signal handling
        LOGGER.warning("Received interrupt signal (%d), shutting down", signum)
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_interrupt)
    signal.signal(signal.SIGTERM, handle_interrupt)
    sys.exit(run_node(args))


if __name__ == "__main__":  # pragma: no cover
    main()
