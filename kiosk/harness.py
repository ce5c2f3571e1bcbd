from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from .capture import Camera, CameraAdapter, FileAdapter, ImagePayload, StubCamera
from .controller import ClassifierApi, ControllerConfig, SubmissionController
from .coordinator import (
    AppState,
    AppStateCoordinator,
    CameraFailed,
    CameraOpened,
    ImageRejected,
    Mode,
    Reset,
    SelectMode,
    SubmissionState,
)
from .errors import CameraUnavailable
from .preview import PreviewFactory
from .validation import MAX_IMAGE_BYTES, Rejected, RejectionReason

logger = logging.getLogger(__name__)


@dataclass
class HarnessConfig:
    preview_dir: Path | None = None
    controller: ControllerConfig = field(default_factory=ControllerConfig)


class KioskHarness:
    """Coordinates acquisition (file or camera) -> submission -> app state."""

    def __init__(
        self,
        api: ClassifierApi,
        camera: Camera | None = None,
        config: HarnessConfig | None = None,
        coordinator: AppStateCoordinator | None = None,
    ) -> None:
        self._config = config or HarnessConfig()
        self._coordinator = coordinator or AppStateCoordinator()
        self._controller = SubmissionController(
            api,
            self._coordinator,
            previews=PreviewFactory(self._config.preview_dir),
            config=self._config.controller,
        )
        self.files = FileAdapter(max_bytes=MAX_IMAGE_BYTES)
        self.camera = CameraAdapter(camera or StubCamera())

    @property
    def coordinator(self) -> AppStateCoordinator:
        return self._coordinator

    @property
    def controller(self) -> SubmissionController:
        return self._controller

    @property
    def state(self) -> AppState:
        return self._coordinator.state

    def select_mode(self, mode: Mode) -> AppState:
        self._coordinator.dispatch(SelectMode(mode))
        if mode is Mode.CAMERA:
            self.open_camera()
        else:
            self.camera.close()
        return self._coordinator.state

    def open_camera(self) -> bool:
        try:
            self.camera.open()
        except CameraUnavailable as exc:
            self._camera_failed(exc)
            return False
        self._coordinator.dispatch(CameraOpened())
        return True

    async def upload(self, files: Sequence[Path | str]) -> SubmissionState | None:
        if self.state.active_mode is not Mode.UPLOAD:
            self.select_mode(Mode.UPLOAD)
        try:
            picked = self.files.pick(files)
        except OSError as exc:
            error = Rejected(RejectionReason.UNREADABLE).to_error()
            logger.warning("Unable to read %s: %s", files[0], exc)
            self._coordinator.dispatch(Reset())
            return self._coordinator.dispatch(ImageRejected(error.user_message)).submission
        if picked is None:
            return None
        return await self.run_upload()

    async def run_upload(self) -> SubmissionState | None:
        payload = await self.files.acquire()
        return await self._controller.submit(payload)

    def capture(self) -> ImagePayload | None:
        try:
            return self.camera.capture_frame()
        except CameraUnavailable as exc:
            self._camera_failed(exc)
            return None

    def retake(self) -> None:
        self.camera.retake()
        self._coordinator.dispatch(Reset())

    async def analyze(self) -> SubmissionState | None:
        payload = self.camera.snapshot
        if payload is None:
            logger.debug("Nothing captured; ignoring analyze request")
            return None
        return await self._controller.submit(payload)

    async def run_camera(self) -> SubmissionState | None:
        try:
            await self.camera.acquire()
        except CameraUnavailable as exc:
            self._camera_failed(exc)
            return None
        return await self.analyze()

    def _camera_failed(self, exc: CameraUnavailable) -> None:
        logger.warning("Camera unavailable: %s", exc)
        self._coordinator.dispatch(CameraFailed(exc.user_message))

    def close(self) -> None:
        self._controller.close()
        self._coordinator.close()
        self.camera.close()


__all__ = ["KioskHarness", "HarnessConfig"]
