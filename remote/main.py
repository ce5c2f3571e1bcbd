from __future__ import annotations

import argparse
import logging
import os
from typing import Sequence

import uvicorn
from dotenv import load_dotenv

from kiosk.ranking import MaterialClass

from .mock import MockClassifierApi
from .server import create_app

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run a stub material classification service for local development"
    )
    parser.add_argument(
        "--host",
        default=os.getenv("STUB_HOST", "127.0.0.1"),
        help="interface to bind (default: STUB_HOST or 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("STUB_PORT", "5000")),
        help="port to bind (default: STUB_PORT or 5000)",
    )
    parser.add_argument(
        "--force-material",
        choices=[material.value for material in MaterialClass],
        default=None,
        help="always rank this material first",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=0.0,
        help="seconds to wait before answering each classification",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    load_dotenv()
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.INFO, format="%(levelname)s [%(name)s] %(message)s"
        )
    args = build_parser().parse_args(argv)

    classifier = MockClassifierApi(
        force_material=MaterialClass(args.force_material) if args.force_material else None,
        delay=max(0.0, args.delay),
    )
    logger.info("Starting stub classifier on %s:%d", args.host, args.port)
    uvicorn.run(create_app(classifier), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
