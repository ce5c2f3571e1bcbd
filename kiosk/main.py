from __future__ import annotations

import argparse
import asyncio
import logging
import platform
import sys
from pathlib import Path
from typing import Sequence

from remote.client import ClassifierHttpClient
from remote.mock import MockClassifierApi

from .capture import OpenCVCamera, StubCamera
from .config import load_config
from .coordinator import AppState, Event, Failed, Mode, ProgressChanged, Succeeded
from .harness import HarnessConfig, KioskHarness
from .ranking import (
    MaterialClass,
    Prediction,
    confidence_tier,
    format_percent,
    recycling_tip,
    top_prediction,
)

logger = logging.getLogger(__name__)


def parse_resolution(value: str | None) -> tuple[int, int] | None:
    if value is None:
        return None
    parts = value.lower().split("x")
    if len(parts) != 2:
        raise argparse.ArgumentTypeError("resolution must be WIDTHxHEIGHT")
    width, height = parts
    try:
        return int(width), int(height)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("resolution must be numeric") from exc


def parse_backend(value: str | None) -> str | int | None:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return value


def build_camera(
    kind: str,
    source: str,
    resolution: tuple[int, int] | None,
    backend: str | int | None,
) -> OpenCVCamera | StubCamera:
    if kind == "opencv":
        try:
            converted_source: int | str = int(source)
        except ValueError:
            converted_source = source
        if backend is None and platform.system().lower().startswith("win"):
            backend = "dshow"
        return OpenCVCamera(source=converted_source, resolution=resolution, backend=backend)
    sample = Path(source) if source else None
    return StubCamera(sample_path=sample if sample and sample.exists() else None)


def build_api_client(args: argparse.Namespace) -> ClassifierHttpClient | MockClassifierApi:
    if args.api == "http":
        return ClassifierHttpClient(base_url=args.api_url)
    force = MaterialClass(args.force_material) if args.force_material else None
    return MockClassifierApi(force_material=force)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Classify recyclable materials from an image file or a camera snapshot"
    )
    parser.add_argument(
        "--api",
        choices=["mock", "http"],
        default="http",
        help="classification backend to use",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help="base URL of the classification service (default: KIOSK_API_URL)",
    )
    parser.add_argument(
        "--force-material",
        choices=[material.value for material in MaterialClass],
        default=None,
        help="rank this material first when using the mock backend",
    )
    parser.add_argument(
        "--preview-dir",
        default=None,
        help="directory for temporary preview files (default: system temp dir)",
    )
    parser.add_argument("--verbose", action="store_true", help="enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    upload = commands.add_parser("upload", help="classify an image file")
    upload.add_argument("files", nargs="+", help="image file(s); only the first is used")

    camera = commands.add_parser("camera", help="classify a camera snapshot")
    camera.add_argument(
        "--camera",
        choices=["stub", "opencv"],
        default="stub",
        help="camera backend to use",
    )
    camera.add_argument(
        "--camera-source",
        default="0",
        help="camera index or URL (OpenCV) or sample image path (stub)",
    )
    camera.add_argument(
        "--camera-resolution",
        default=None,
        help="force camera resolution WIDTHxHEIGHT (OpenCV only)",
    )
    camera.add_argument(
        "--camera-backend",
        default=None,
        help="preferred OpenCV backend (e.g. dshow, msmf, v4l2, 700)",
    )
    camera.add_argument(
        "--interactive",
        action="store_true",
        help="prompt for capture / retake / analyze instead of analyzing one snapshot",
    )

    commands.add_parser("health", help="check that the classification service is reachable")
    return parser


def render_predictions(predictions: Sequence[Prediction]) -> list[str]:
    top = top_prediction(predictions)
    lines = [
        f"Top match: {top.material.value} {format_percent(top.confidence)} "
        f"({confidence_tier(top).value} confidence)"
    ]
    tip = recycling_tip(top)
    if tip:
        lines.append(f"Recycling tip: {tip}")
    lines.append("All predictions:")
    for prediction in predictions:
        lines.append(
            f"  {prediction.material.value:<8} {format_percent(prediction.confidence):>4}"
            f"  [{confidence_tier(prediction).value}]"
        )
    return lines


def render_state(state: AppState) -> list[str]:
    submission = state.submission
    if isinstance(submission, Succeeded):
        lines = render_predictions(submission.predictions)
        if state.celebration_active:
            lines.insert(0, "Great Recycling! High confidence detection!")
        return lines
    if isinstance(submission, Failed):
        return [f"Error: {submission.message}"]
    if state.error:
        return [f"Error: {state.error}"]
    if state.camera_error:
        return [f"Camera error: {state.camera_error}"]
    return ["Ready to classify. Upload an image or use the camera."]


def _log_progress(state: AppState, event: Event) -> None:
    if isinstance(event, ProgressChanged):
        logger.debug("Analyzing material... %d%%", state.progress)


def _emit(lines: Sequence[str]) -> None:
    for line in lines:
        print(line)


async def run_camera(harness: KioskHarness, interactive: bool) -> AppState:
    harness.select_mode(Mode.CAMERA)
    if harness.state.camera_error:
        return harness.state
    if not interactive:
        if harness.capture() is not None:
            await harness.analyze()
        return harness.state

    prompt = "[c]apture  [r]etake  [a]nalyze  [q]uit > "
    while True:
        choice = (await asyncio.to_thread(input, prompt)).strip().lower()
        if choice in {"q", "quit"}:
            return harness.state
        if choice in {"c", "capture"}:
            if harness.camera.snapshot is not None:
                print("Already captured; retake first.")
                continue
            payload = harness.capture()
            if payload is None:
                _emit(render_state(harness.state))
                continue
            print(f"Captured {payload.size} bytes. Analyze or retake.")
        elif choice in {"r", "retake"}:
            harness.retake()
            print("Live preview resumed.")
        elif choice in {"a", "analyze"}:
            if harness.camera.snapshot is None:
                print("Capture a photo first.")
                continue
            await harness.analyze()
            _emit(render_state(harness.state))


async def run(args: argparse.Namespace) -> int:
    api = build_api_client(args)
    if args.command == "health":
        healthy = await api.health()
        print("Classification service is reachable" if healthy else "Classification service is unreachable")
        return 0 if healthy else 1

    camera = None
    if args.command == "camera":
        camera = build_camera(
            args.camera,
            args.camera_source,
            parse_resolution(args.camera_resolution),
            parse_backend(args.camera_backend),
        )
    harness = KioskHarness(
        api=api,
        camera=camera,
        config=HarnessConfig(preview_dir=Path(args.preview_dir) if args.preview_dir else None),
    )
    harness.coordinator.subscribe(_log_progress)
    try:
        if args.command == "upload":
            await harness.upload(args.files)
            state = harness.state
        else:
            state = await run_camera(harness, args.interactive)
            if args.interactive:
                return 0 if state.error is None and state.camera_error is None else 1
        _emit(render_state(state))
        return 0 if isinstance(state.submission, Succeeded) else 1
    finally:
        harness.close()


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s [%(name)s] %(message)s",
    )
    try:
        config = load_config(api_url=args.api_url)
    except ValueError as exc:
        logger.error("%s", exc)
        return 2
    args.api_url = config.api_url
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
