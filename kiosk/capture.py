from __future__ import annotations

import asyncio
import io
import logging
import mimetypes
import pathlib
from dataclasses import dataclass
from typing import Protocol, Sequence

from PIL import Image

from .errors import CameraUnavailable

logger = logging.getLogger(__name__)

CAMERA_MIME_TYPE = "image/jpeg"
CAMERA_FILENAME = "webcam-capture.jpg"


@dataclass(frozen=True)
class ImagePayload:
    """Image bytes plus the metadata declared by whichever source produced them."""

    data: bytes
    mime_type: str
    filename: str = "image"

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: pathlib.Path, limit: int | None = None) -> "ImagePayload":
        """Load a file; with ``limit``, at most that many bytes are read."""
        mime_type, _ = mimetypes.guess_type(path.name)
        with path.open("rb") as handle:
            data = handle.read() if limit is None else handle.read(limit)
        return cls(
            data=data,
            mime_type=mime_type or "application/octet-stream",
            filename=path.name,
        )


class FileAdapter:
    """Accepts drag-and-drop or file-picker events, one file per acquisition."""

    def __init__(self, max_bytes: int | None = None) -> None:
        self._pending: asyncio.Queue[ImagePayload] = asyncio.Queue()
        self._dragging = False
        # One byte past the limit is enough for validation to flag the file as too large.
        self._read_limit = None if max_bytes is None else max_bytes + 1

    @property
    def dragging(self) -> bool:
        return self._dragging

    def drag_enter(self) -> None:
        self._dragging = True

    def drag_leave(self) -> None:
        self._dragging = False

    def drop(self, files: Sequence[pathlib.Path | str]) -> ImagePayload | None:
        self._dragging = False
        return self.pick(files)

    def pick(self, files: Sequence[pathlib.Path | str]) -> ImagePayload | None:
        if not files:
            return None
        if len(files) > 1:
            logger.debug("Ignoring %d extra file(s); only the first is used", len(files) - 1)
        payload = ImagePayload.from_path(pathlib.Path(files[0]), self._read_limit)
        self._pending.put_nowait(payload)
        return payload

    async def acquire(self) -> ImagePayload:
        return await self._pending.get()


class Camera(Protocol):
    def open(self) -> None: ...

    def read_frame(self) -> bytes: ...

    def release(self) -> None: ...


class StubCamera:
    """Camera stand-in that serves a sample image or a generated JPEG frame."""

    def __init__(
        self,
        sample_path: pathlib.Path | None = None,
        *,
        available: bool = True,
        resolution: tuple[int, int] = (64, 48),
    ) -> None:
        self._sample_path = sample_path
        self._available = available
        self._resolution = resolution
        self._opened = False
        self.open_count = 0

    def open(self) -> None:
        if not self._available:
            raise CameraUnavailable()
        self._opened = True
        self.open_count += 1

    def read_frame(self) -> bytes:
        if not self._opened:
            raise CameraUnavailable("Camera stream is not open")
        if self._sample_path and self._sample_path.exists():
            return self._sample_path.read_bytes()
        buffer = io.BytesIO()
        Image.new("RGB", self._resolution, color=(46, 139, 87)).save(buffer, format="JPEG")
        return buffer.getvalue()

    def release(self) -> None:
        self._opened = False


class OpenCVCamera:
    """Capture frames from an OpenCV-compatible source (USB/RTSP)."""

    _BACKEND_ALIASES = {
        "any": "CAP_ANY",
        "auto": "CAP_ANY",
        "dshow": "CAP_DSHOW",
        "directshow": "CAP_DSHOW",
        "msmf": "CAP_MSMF",
        "v4l2": "CAP_V4L2",
    }

    def __init__(
        self,
        source: int | str = 0,
        *,
        resolution: tuple[int, int] | None = None,
        backend: str | int | None = None,
        warmup_frames: int = 2,
        quality: int = 90,
    ) -> None:
        self._source = source
        self._resolution = resolution
        self._backend = backend
        self._warmup_frames = warmup_frames
        self._quality = quality
        self._cv2 = None
        self._cap = None

    def open(self) -> None:
        if self._cap is not None:
            return
        try:
            import cv2  # type: ignore
        except ImportError as exc:  # pragma: no cover - depends on optional dep
            raise CameraUnavailable("opencv-python is required to use a live camera") from exc

        self._cv2 = cv2
        cap = cv2.VideoCapture(self._source, self._resolve_backend(self._backend, cv2))
        if not cap.isOpened():
            cap.release()
            raise CameraUnavailable(f"Unable to open camera source {self._source!r}")
        if self._resolution:
            width, height = self._resolution
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, float(width))
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, float(height))
        for _ in range(max(0, self._warmup_frames)):
            ok, _ = cap.read()
            if not ok:
                break
        self._cap = cap

    def _resolve_backend(self, backend: str | int | None, cv2_module) -> int:
        if backend is None:
            return cv2_module.CAP_ANY
        if isinstance(backend, int):
            return backend
        attr_name = self._BACKEND_ALIASES.get(backend.strip().lower())
        if attr_name is None:
            raise ValueError(f"Unknown OpenCV backend alias: {backend!r}")
        return getattr(cv2_module, attr_name, cv2_module.CAP_ANY)

    def read_frame(self) -> bytes:
        if self._cap is None or self._cv2 is None:
            raise CameraUnavailable("Camera stream is not open")
        ok, frame = self._cap.read()
        if not ok or frame is None:
            raise CameraUnavailable("Failed to capture frame from camera")
        success, buffer = self._cv2.imencode(
            ".jpg", frame, [self._cv2.IMWRITE_JPEG_QUALITY, self._quality]
        )
        if not success:
            raise RuntimeError("OpenCV failed to encode frame as JPEG")
        return buffer.tobytes()

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None


class CameraAdapter:
    """Live camera stream with snapshot, review and retake."""

    def __init__(self, camera: Camera) -> None:
        self._camera = camera
        self._open = False
        self._snapshot: ImagePayload | None = None
        self._shutter = asyncio.Event()

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def live(self) -> bool:
        return self._open and self._snapshot is None

    @property
    def snapshot(self) -> ImagePayload | None:
        return self._snapshot

    def open(self) -> None:
        """Start streaming. Permission or device failures raise CameraUnavailable."""
        if self._open:
            return
        self._camera.open()
        self._open = True
        logger.debug("Camera stream opened")

    def capture_frame(self) -> ImagePayload:
        if not self._open:
            raise CameraUnavailable("Camera stream is not open")
        if self._snapshot is not None:
            raise RuntimeError("Retake before capturing another frame")
        payload = ImagePayload(
            data=self._camera.read_frame(),
            mime_type=CAMERA_MIME_TYPE,
            filename=CAMERA_FILENAME,
        )
        self._snapshot = payload
        return payload

    def retake(self) -> None:
        """Drop the last snapshot and go back to the live stream.

        The stream is never reopened here, so no new permission prompt occurs.
        """
        self._snapshot = None
        self._shutter.clear()

    def shutter(self) -> None:
        self._shutter.set()

    async def acquire(self) -> ImagePayload:
        await self._shutter.wait()
        self._shutter.clear()
        return self.capture_frame()

    def close(self) -> None:
        self._snapshot = None
        if self._open:
            self._camera.release()
            self._open = False


__all__ = [
    "ImagePayload",
    "FileAdapter",
    "Camera",
    "StubCamera",
    "OpenCVCamera",
    "CameraAdapter",
    "CAMERA_MIME_TYPE",
]
