#!/usr/bin/env python3
"""Export trained YOLOv8 weights to the fixed 640x640 ONNX model loaded by the node."""
from __future__ import annotations

import argparse
import shutil
from pathlib import Path

from ultralytics import YOLO

from perception_node.app.models import ModelVariant


def export_weights(weights: Path, target: Path, imgsz: int = 640) -> Path:
    model = YOLO(str(weights))
    exported = Path(model.export(format="onnx", imgsz=imgsz, dynamic=False, simplify=True))
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(exported), target)
    print(f"Model exported to {target} with classes {model.names}")
    return target


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Export YOLOv8 weights to ONNX")
    parser.add_argument("weights", type=Path, help="Trained .pt weights")
    parser.add_argument(
        "--variant", choices=[variant.value for variant in ModelVariant], default="A", help="Model variant to produce"
    )
    parser.add_argument("--imgsz", type=int, default=640, help="Square model input size")
    parser.add_argument("--output", type=Path, default=None, help="Destination path")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    target = args.output or Path("models") / ModelVariant(args.variant).model_filename
    export_weights(args.weights, target, imgsz=args.imgsz)


if __name__ == "__main__":
    main()
