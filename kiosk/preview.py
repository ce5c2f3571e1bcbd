from __future__ import annotations

import logging
import mimetypes
import os
import tempfile
from pathlib import Path

from .capture import ImagePayload

logger = logging.getLogger(__name__)


class PreviewHandle:
    """Locally displayable copy of a payload, backed by a temporary file."""

    def __init__(self, path: Path, factory: "PreviewFactory") -> None:
        self._path = path
        self._factory = factory
        self._released = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def uri(self) -> str:
        return self._path.resolve().as_uri()

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._factory._forget(self)
        try:
            self._path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to remove preview %s: %s", self._path, exc)

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"PreviewHandle({str(self._path)!r}, {state})"


class PreviewFactory:
    def __init__(self, directory: Path | None = None) -> None:
        self._directory = directory
        self._live: set[PreviewHandle] = set()

    @property
    def live_count(self) -> int:
        return len(self._live)

    def create(self, payload: ImagePayload) -> PreviewHandle:
        if self._directory is not None:
            self._directory.mkdir(parents=True, exist_ok=True)
        suffix = mimetypes.guess_extension(payload.mime_type) or ""
        fd, name = tempfile.mkstemp(
            prefix="preview-",
            suffix=suffix,
            dir=str(self._directory) if self._directory is not None else None,
        )
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload.data)
        preview = PreviewHandle(Path(name), self)
        self._live.add(preview)
        return preview

    def release_all(self) -> None:
        for preview in list(self._live):
            preview.release()

    def _forget(self, preview: PreviewHandle) -> None:
        self._live.discard(preview)


__all__ = ["PreviewHandle", "PreviewFactory"]
