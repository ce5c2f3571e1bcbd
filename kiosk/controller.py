from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

from .capture import ImagePayload
from .coordinator import (
    AppStateCoordinator,
    ImageRejected,
    ImageSelected,
    LoadingChanged,
    PredictionsReceived,
    ProgressChanged,
    Reset,
    SubmissionFailed,
    SubmissionState,
)
from .errors import CollaboratorUnreachable, KioskError, ProtocolViolation
from .preview import PreviewFactory
from .ranking import Prediction, confidence_tier, top_prediction
from .timers import ScheduledCallbacks
from .validation import Rejected, validate

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 30.0


class ClassifierApi(Protocol):
    async def classify(self, payload: ImagePayload) -> Sequence[Prediction]:
        ...


@dataclass
class ControllerConfig:
    progress_step: int = 10
    progress_cap: int = 90
    progress_interval: float = 0.2
    settle_delay: float = 0.5
    request_timeout: float = REQUEST_TIMEOUT_SECONDS


class SubmissionController:
    """Drives one classification request from validation to a settled outcome.

    Each submission is tagged with a generation number. Any reset seen by the
    coordinator (a new submission, a mode switch, a retake) bumps the
    generation, so every resumption point compares its ticket against the
    current generation before touching state.
    """

    def __init__(
        self,
        api: ClassifierApi,
        coordinator: AppStateCoordinator,
        previews: PreviewFactory | None = None,
        config: ControllerConfig | None = None,
    ) -> None:
        self._api = api
        self._coordinator = coordinator
        self._previews = previews or PreviewFactory()
        self._config = config or ControllerConfig()
        self._timers = ScheduledCallbacks()
        self._generation = 0
        self._request: asyncio.Future[Sequence[Prediction]] | None = None
        coordinator.on_reset(self._invalidate)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def in_flight(self) -> bool:
        return self._request is not None and not self._request.done()

    @property
    def progress_timer_active(self) -> bool:
        return self._timers.pending("progress")

    async def submit(self, payload: ImagePayload) -> SubmissionState | None:
        """Run a submission and return its final state.

        Returns None when a newer acquisition superseded this one; in that
        case nothing this call produced after the supersession was applied.
        """
        self._coordinator.dispatch(Reset())
        ticket = self._generation

        result = validate(payload)
        if isinstance(result, Rejected):
            error = result.to_error()
            logger.info(
                "Submission %d rejected locally: %s (%d bytes, %s)",
                ticket,
                error.reason,
                payload.size,
                payload.mime_type,
            )
            return self._coordinator.dispatch(ImageRejected(error.user_message)).submission

        preview = self._previews.create(payload)
        self._coordinator.dispatch(ImageSelected(preview))
        self._coordinator.dispatch(LoadingChanged(True))
        self._coordinator.dispatch(ProgressChanged(0))
        self._schedule_tick(ticket)

        logger.info("Submission %d started: %s (%d bytes)", ticket, payload.filename, payload.size)
        request = asyncio.ensure_future(self._api.classify(payload))
        self._request = request
        try:
            predictions = await asyncio.wait_for(request, timeout=self._config.request_timeout)
        except asyncio.CancelledError:
            if self._is_live(ticket):
                self._abandon()
                raise
            logger.info("Submission %d superseded; dropping its result", ticket)
            return None
        except asyncio.TimeoutError:
            return await self._fail(
                ticket,
                CollaboratorUnreachable(f"no response within {self._config.request_timeout:g}s"),
            )
        except KioskError as exc:
            return await self._fail(ticket, exc)
        except Exception:
            if self._is_live(ticket):
                logger.exception("Unexpected failure in submission %d", ticket)
            return await self._fail(ticket, KioskError())
        return await self._succeed(ticket, predictions)

    async def _succeed(self, ticket: int, predictions: Sequence[Prediction]) -> SubmissionState | None:
        if not self._is_live(ticket):
            return None
        predictions = tuple(predictions)
        if not predictions:
            return await self._fail(ticket, ProtocolViolation("empty prediction set"))
        self._settle_request()
        self._coordinator.dispatch(ProgressChanged(100))

        await asyncio.sleep(self._config.settle_delay)
        if not self._is_live(ticket):
            logger.info("Submission %d superseded while settling", ticket)
            return None

        top = top_prediction(predictions)
        logger.info(
            "Submission %d succeeded: %s %.2f (%s)",
            ticket,
            top.material.value,
            top.confidence,
            confidence_tier(top).value,
        )
        state = self._coordinator.dispatch(PredictionsReceived(predictions))
        self._coordinator.dispatch(ProgressChanged(0))
        return state.submission

    async def _fail(self, ticket: int, error: KioskError) -> SubmissionState | None:
        if not self._is_live(ticket):
            return None
        self._settle_request()
        if isinstance(error, ProtocolViolation):
            logger.warning("Submission %d protocol violation: %s", ticket, error)
        else:
            logger.warning("Submission %d failed: %s", ticket, error)
        state = self._coordinator.dispatch(SubmissionFailed(error.user_message))

        await asyncio.sleep(self._config.settle_delay)
        if self._is_live(ticket):
            self._coordinator.dispatch(ProgressChanged(0))
        return state.submission

    def _schedule_tick(self, ticket: int) -> None:
        self._timers.schedule("progress", self._config.progress_interval, self._tick, ticket)

    def _tick(self, ticket: int) -> None:
        if not self._is_live(ticket):
            return
        current = self._coordinator.state.progress
        if current >= self._config.progress_cap:
            return
        value = min(current + self._config.progress_step, self._config.progress_cap)
        self._coordinator.dispatch(ProgressChanged(value))
        if value < self._config.progress_cap:
            self._schedule_tick(ticket)

    def _is_live(self, ticket: int) -> bool:
        return ticket == self._generation

    def _settle_request(self) -> None:
        self._timers.cancel("progress")
        self._request = None

    def _abandon(self) -> None:
        self._coordinator.dispatch(Reset())

    def _invalidate(self) -> None:
        self._generation += 1
        self._timers.cancel("progress")
        request, self._request = self._request, None
        if request is not None and not request.done():
            request.cancel()

    def close(self) -> None:
        self._invalidate()
        self._previews.release_all()


__all__ = [
    "ClassifierApi",
    "ControllerConfig",
    "SubmissionController",
    "REQUEST_TIMEOUT_SECONDS",
]
