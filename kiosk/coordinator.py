from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Callable, Sequence

from .preview import PreviewHandle
from .ranking import HIGH_CONFIDENCE_THRESHOLD, Prediction, max_confidence
from .timers import ScheduledCallbacks

logger = logging.getLogger(__name__)

CELEBRATION_SECONDS = 3.0


class Mode(StrEnum):
    UPLOAD = "upload"
    CAMERA = "camera"


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Previewing:
    pass


@dataclass(frozen=True)
class Submitting:
    pass


@dataclass(frozen=True)
class Succeeded:
    predictions: tuple[Prediction, ...]


@dataclass(frozen=True)
class Failed:
    message: str


SubmissionState = Idle | Previewing | Submitting | Succeeded | Failed


@dataclass(frozen=True)
class AppState:
    active_mode: Mode = Mode.UPLOAD
    submission: SubmissionState = Idle()
    preview: PreviewHandle | None = None
    celebration_active: bool = False
    loading: bool = False
    error: str | None = None
    progress: int = 0
    camera_error: str | None = None

    @property
    def predictions(self) -> tuple[Prediction, ...] | None:
        if isinstance(self.submission, Succeeded):
            return self.submission.predictions
        return None

    @property
    def unresolved(self) -> bool:
        return (
            not isinstance(self.submission, Idle)
            or self.loading
            or self.error is not None
            or self.preview is not None
        )


# Events accepted by AppStateCoordinator.dispatch


@dataclass(frozen=True)
class SelectMode:
    mode: Mode


@dataclass(frozen=True)
class PredictionsReceived:
    predictions: tuple[Prediction, ...]


@dataclass(frozen=True)
class SubmissionFailed:
    message: str


@dataclass(frozen=True)
class LoadingChanged:
    loading: bool


@dataclass(frozen=True)
class Reset:
    pass


@dataclass(frozen=True)
class ImageSelected:
    preview: PreviewHandle


@dataclass(frozen=True)
class ImageRejected:
    message: str


@dataclass(frozen=True)
class ProgressChanged:
    value: int


@dataclass(frozen=True)
class CameraFailed:
    message: str


@dataclass(frozen=True)
class CameraOpened:
    pass


@dataclass(frozen=True)
class CelebrationEnded:
    pass


Event = (
    SelectMode
    | PredictionsReceived
    | SubmissionFailed
    | LoadingChanged
    | Reset
    | ImageSelected
    | ImageRejected
    | ProgressChanged
    | CameraFailed
    | CameraOpened
    | CelebrationEnded
)

Listener = Callable[[AppState, Event], None]


class AppStateCoordinator:
    """Single owner of AppState; every mutation goes through dispatch()."""

    def __init__(self, initial: AppState | None = None, *, celebration_seconds: float = CELEBRATION_SECONDS) -> None:
        self._state = initial or AppState()
        self._celebration_seconds = celebration_seconds
        self._timers = ScheduledCallbacks()
        self._listeners: list[Listener] = []
        self._reset_hooks: list[Callable[[], None]] = []

    @property
    def state(self) -> AppState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def on_reset(self, hook: Callable[[], None]) -> None:
        self._reset_hooks.append(hook)

    def dispatch(self, event: Event) -> AppState:
        state = self._state
        if isinstance(event, Reset):
            state = self._reset(state)
        elif isinstance(event, SelectMode):
            if event.mode != state.active_mode:
                if state.unresolved:
                    state = self._reset(state)
                state = replace(state, active_mode=event.mode, camera_error=None)
        elif isinstance(event, ImageSelected):
            if state.preview is not None and state.preview is not event.preview:
                state.preview.release()
            state = replace(state, submission=Previewing(), preview=event.preview, error=None)
        elif isinstance(event, ImageRejected):
            state = replace(state, submission=Idle(), error=event.message, loading=False)
        elif isinstance(event, LoadingChanged):
            submission = state.submission
            if event.loading and isinstance(submission, (Idle, Previewing)):
                submission = Submitting()
            state = replace(state, loading=event.loading, submission=submission)
        elif isinstance(event, ProgressChanged):
            state = replace(state, progress=max(0, min(100, int(event.value))))
        elif isinstance(event, PredictionsReceived):
            predictions = tuple(event.predictions)
            celebrate = max_confidence(predictions) > HIGH_CONFIDENCE_THRESHOLD
            state = replace(
                state,
                submission=Succeeded(predictions),
                error=None,
                loading=False,
                celebration_active=celebrate,
            )
            if celebrate:
                self._timers.schedule(
                    "celebration", self._celebration_seconds, self.dispatch, CelebrationEnded()
                )
        elif isinstance(event, SubmissionFailed):
            state = replace(state, submission=Failed(event.message), error=event.message, loading=False)
        elif isinstance(event, CameraFailed):
            state = replace(state, camera_error=event.message)
        elif isinstance(event, CameraOpened):
            state = replace(state, camera_error=None)
        elif isinstance(event, CelebrationEnded):
            state = replace(state, celebration_active=False)
        else:
            raise TypeError(f"Unsupported event: {event!r}")

        self._state = state
        for listener in list(self._listeners):
            listener(state, event)
        return state

    def _reset(self, state: AppState) -> AppState:
        self._timers.cancel("celebration")
        if state.preview is not None:
            state.preview.release()
        for hook in list(self._reset_hooks):
            hook()
        logger.debug("State reset (mode=%s)", state.active_mode)
        return AppState(active_mode=state.active_mode)

    def close(self) -> None:
        self._timers.cancel_all()
        if self._state.preview is not None:
            self._state.preview.release()
        self._state = replace(self._state, preview=None)


__all__ = [
    "Mode",
    "Idle",
    "Previewing",
    "Submitting",
    "Succeeded",
    "Failed",
    "SubmissionState",
    "AppState",
    "SelectMode",
    "PredictionsReceived",
    "SubmissionFailed",
    "LoadingChanged",
    "Reset",
    "ImageSelected",
    "ImageRejected",
    "ProgressChanged",
    "CameraFailed",
    "CameraOpened",
    "CelebrationEnded",
    "Event",
    "AppStateCoordinator",
    "CELEBRATION_SECONDS",
]
