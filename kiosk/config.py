"""Client configuration.

The only externally configurable behaviour is the address of the
classification service. It is read from ``KIOSK_API_URL`` (a ``.env`` file in
the working directory is honoured) and may be overridden on the command line.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping
from urllib.parse import urlparse

from dotenv import load_dotenv

API_URL_ENV = "KIOSK_API_URL"
DEFAULT_API_URL = "http://localhost:5000"


@dataclass
class KioskConfig:
    api_url: str = DEFAULT_API_URL


def normalize_api_url(value: str) -> str:
    url = value.strip().rstrip("/")
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(f"Invalid classification service URL: {value!r}")
    return url


def load_config(
    environ: Mapping[str, str] | None = None,
    *,
    api_url: str | None = None,
    use_dotenv: bool = True,
) -> KioskConfig:
    """Build the configuration from the environment, then apply overrides."""
    if environ is None:
        if use_dotenv:
            load_dotenv()
        environ = os.environ
    raw = api_url or environ.get(API_URL_ENV) or DEFAULT_API_URL
    return KioskConfig(api_url=normalize_api_url(raw))


__all__ = ["KioskConfig", "load_config", "normalize_api_url", "API_URL_ENV", "DEFAULT_API_URL"]
