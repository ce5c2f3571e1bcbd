import asyncio
import tempfile
import unittest
from pathlib import Path
from typing import Callable

from kiosk.capture import ImagePayload
from kiosk.controller import ControllerConfig, SubmissionController
from kiosk.coordinator import (
    AppStateCoordinator,
    Failed,
    Idle,
    Mode,
    ProgressChanged,
    SelectMode,
    Succeeded,
)
from kiosk.errors import CONNECTION_ERROR, GENERIC_SERVER_ERROR, UNEXPECTED_ERROR, CollaboratorRejected
from kiosk.preview import PreviewFactory
from kiosk.ranking import ConfidenceTier, MaterialClass, Prediction, confidence_tier, top_prediction
from remote.mock import DEFAULT_PREDICTIONS, MockClassifierApi

FAST = ControllerConfig(
    progress_step=10,
    progress_cap=90,
    progress_interval=0.005,
    settle_delay=0.02,
    request_timeout=1.0,
)

GLASS = [Prediction(MaterialClass.GLASS, 0.77), Prediction(MaterialClass.PLASTIC, 0.23)]
PLASTIC = [Prediction(MaterialClass.PLASTIC, 0.9), Prediction(MaterialClass.GLASS, 0.1)]


def _jpeg(size: int, name: str = "bottle.jpg") -> ImagePayload:
    return ImagePayload(data=b"\xff\xd8" + b"\0" * (size - 2), mime_type="image/jpeg", filename=name)


class _GatedClassifier:
    """Collaborator whose responses are released by the test."""

    def __init__(self) -> None:
        self.calls: list[tuple[ImagePayload, asyncio.Future]] = []

    async def classify(self, payload: ImagePayload):
        gate = asyncio.get_running_loop().create_future()
        self.calls.append((payload, gate))
        # Shielded so a response can still "arrive" after the request was dropped.
        return await asyncio.shield(gate)


class _SequenceClassifier:
    def __init__(self, *responses) -> None:
        self._responses = list(responses)

    async def classify(self, payload: ImagePayload):
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


async def _wait_until(condition: Callable[[], bool], timeout: float = 1.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not condition():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)


class SubmissionControllerTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.previews = PreviewFactory(Path(self.tmp.name))
        self.coordinator = AppStateCoordinator(celebration_seconds=0.05)
        self.progress: list[int] = []
        self.coordinator.subscribe(self._record_progress)

    def tearDown(self) -> None:
        self.coordinator.close()
        self.tmp.cleanup()

    def _record_progress(self, state, event) -> None:
        if isinstance(event, ProgressChanged):
            self.progress.append(state.progress)

    def _controller(self, api, config: ControllerConfig = FAST) -> SubmissionController:
        controller = SubmissionController(api, self.coordinator, previews=self.previews, config=config)
        self.addCleanup(controller.close)
        return controller

    async def test_successful_upload_ranks_and_celebrates(self) -> None:
        api = MockClassifierApi()
        controller = self._controller(api)

        result = await controller.submit(_jpeg(2 * 1024 * 1024))

        self.assertEqual(result, Succeeded(DEFAULT_PREDICTIONS))
        state = self.coordinator.state
        top = top_prediction(state.predictions)
        self.assertEqual(top.material, MaterialClass.PLASTIC)
        self.assertEqual(confidence_tier(top), ConfidenceTier.HIGH)
        self.assertTrue(state.celebration_active)
        self.assertFalse(state.loading)
        self.assertEqual(state.progress, 0)
        self.assertIsNotNone(state.preview)
        self.assertTrue(state.preview.path.exists())
        self.assertEqual(len(api.records), 1)

        await asyncio.sleep(0.1)
        self.assertFalse(self.coordinator.state.celebration_active)

    async def test_oversized_png_rejected_without_request(self) -> None:
        api = MockClassifierApi()
        controller = self._controller(api)

        payload = ImagePayload(data=b"\0" * (15 * 1024 * 1024), mime_type="image/png", filename="big.png")
        with self.assertLogs("kiosk.controller", level="INFO") as logs:
            result = await controller.submit(payload)

        self.assertIn("rejected locally: too-large", logs.output[0])
        self.assertIsInstance(result, Idle)
        self.assertEqual(self.coordinator.state.error, "Image size should be less than 10MB")
        self.assertEqual(api.records, [])
        self.assertEqual(self.previews.live_count, 0)
        self.assertFalse(controller.progress_timer_active)

    async def test_timeout_fails_with_connectivity_message(self) -> None:
        api = _GatedClassifier()
        config = ControllerConfig(progress_interval=0.005, settle_delay=0.02, request_timeout=0.05)
        controller = self._controller(api, config)

        result = await controller.submit(_jpeg(1024))

        self.assertEqual(result, Failed(CONNECTION_ERROR))
        state = self.coordinator.state
        self.assertEqual(state.error, CONNECTION_ERROR)
        self.assertFalse(state.loading)
        self.assertEqual(state.progress, 0)
        self.assertFalse(controller.in_flight)

    async def test_rejection_message_from_service_is_surfaced(self) -> None:
        api = MockClassifierApi(error=CollaboratorRejected(503, "model unavailable"))
        controller = self._controller(api)

        result = await controller.submit(_jpeg(1024))

        self.assertEqual(result, Failed("model unavailable"))
        self.assertEqual(self.coordinator.state.progress, 0)

    async def test_empty_prediction_set_is_protocol_violation(self) -> None:
        controller = self._controller(_SequenceClassifier([]))
        result = await controller.submit(_jpeg(1024))
        self.assertEqual(result, Failed(GENERIC_SERVER_ERROR))

    async def test_unexpected_error_gets_generic_message(self) -> None:
        controller = self._controller(_SequenceClassifier(RuntimeError("kaboom")))
        with self.assertLogs("kiosk.controller", level="ERROR"):
            result = await controller.submit(_jpeg(1024))
        self.assertEqual(result, Failed(UNEXPECTED_ERROR))

    async def test_progress_caps_until_response_then_completes(self) -> None:
        api = _GatedClassifier()
        controller = self._controller(api)

        task = asyncio.create_task(controller.submit(_jpeg(1024)))
        await _wait_until(lambda: self.coordinator.state.progress == 90)
        await asyncio.sleep(0.03)
        self.assertEqual(self.coordinator.state.progress, 90)
        self.assertFalse(controller.progress_timer_active)

        api.calls[0][1].set_result(GLASS)
        result = await task

        self.assertEqual(result, Succeeded(tuple(GLASS)))
        ticks = self.progress[: self.progress.index(100)]
        self.assertEqual(ticks, sorted(ticks))
        self.assertLessEqual(max(ticks), 90)
        self.assertEqual(self.progress[-2:], [100, 0])

    async def test_superseded_submission_cannot_overwrite_newer_result(self) -> None:
        api = _GatedClassifier()
        controller = self._controller(api)

        first = asyncio.create_task(controller.submit(_jpeg(1024, "a.jpg")))
        await _wait_until(lambda: len(api.calls) == 1)
        first_preview = self.coordinator.state.preview

        second = asyncio.create_task(controller.submit(_jpeg(1024, "b.jpg")))
        await _wait_until(lambda: len(api.calls) == 2)
        self.assertIsNone(await first)
        self.assertTrue(first_preview.released)

        api.calls[1][1].set_result(GLASS)
        self.assertEqual(await second, Succeeded(tuple(GLASS)))

        # The first request's answer arrives only now.
        api.calls[0][1].set_result(PLASTIC)
        await asyncio.sleep(0.05)

        state = self.coordinator.state
        self.assertEqual(state.predictions, tuple(GLASS))
        self.assertEqual(state.progress, 0)
        self.assertFalse(state.celebration_active)
        self.assertEqual(self.previews.live_count, 1)

    async def test_supersession_during_settle_delay_is_ignored(self) -> None:
        api = _SequenceClassifier(PLASTIC, GLASS)
        config = ControllerConfig(progress_interval=0.005, settle_delay=0.1, request_timeout=1.0)
        controller = self._controller(api, config)

        first = asyncio.create_task(controller.submit(_jpeg(1024, "a.jpg")))
        await _wait_until(lambda: self.coordinator.state.progress == 100)
        second = asyncio.create_task(controller.submit(_jpeg(1024, "b.jpg")))

        self.assertIsNone(await first)
        self.assertEqual(await second, Succeeded(tuple(GLASS)))
        self.assertEqual(self.coordinator.state.predictions, tuple(GLASS))

    async def test_mode_switch_invalidates_in_flight_submission(self) -> None:
        api = _GatedClassifier()
        controller = self._controller(api)

        task = asyncio.create_task(controller.submit(_jpeg(1024)))
        await _wait_until(lambda: len(api.calls) == 1)
        self.coordinator.dispatch(SelectMode(Mode.CAMERA))

        self.assertIsNone(await task)
        api.calls[0][1].set_result(PLASTIC)
        await asyncio.sleep(0.02)

        state = self.coordinator.state
        self.assertEqual(state.active_mode, Mode.CAMERA)
        self.assertIsInstance(state.submission, Idle)
        self.assertIsNone(state.preview)
        self.assertEqual(state.progress, 0)
        self.assertFalse(controller.progress_timer_active)
        self.assertEqual(self.previews.live_count, 0)

    async def test_single_progress_timer_across_submissions(self) -> None:
        api = _GatedClassifier()
        controller = self._controller(api)

        first = asyncio.create_task(controller.submit(_jpeg(1024)))
        await _wait_until(lambda: len(api.calls) == 1)
        generation = controller.generation
        second = asyncio.create_task(controller.submit(_jpeg(1024)))
        await _wait_until(lambda: len(api.calls) == 2)

        self.assertGreater(controller.generation, generation)
        self.assertTrue(controller.progress_timer_active)
        self.assertTrue(controller.in_flight)
        self.assertIsNone(await first)

        api.calls[1][1].set_result(PLASTIC)
        await second
        self.assertFalse(controller.progress_timer_active)
        self.assertFalse(controller.in_flight)


if __name__ == "__main__":
    unittest.main()
