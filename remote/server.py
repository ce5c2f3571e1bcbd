from __future__ import annotations

import io
import logging

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from PIL import Image

from kiosk.capture import ImagePayload
from kiosk.controller import ClassifierApi
from kiosk.errors import CollaboratorRejected, KioskError
from kiosk.validation import MAX_IMAGE_BYTES, REJECTION_MESSAGES, RejectionReason

from .mock import MockClassifierApi
from .schemas import ClassifyResponse, ErrorResponse, HealthResponse, PredictionModel

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def _is_readable_image(data: bytes) -> bool:
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.verify()
    except (OSError, ValueError, SyntaxError):
        return False
    return True


def create_app(classifier: ClassifierApi | None = None) -> FastAPI:
    """Stub classification service speaking the same contract as the real one."""
    app = FastAPI(title="Material classification stub")
    app.state.classifier = classifier or MockClassifierApi()

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, "Request must include an 'image' file field")

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse()

    @app.post(
        "/api/classify",
        response_model=ClassifyResponse,
        responses={400: {"model": ErrorResponse}, 413: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    )
    async def classify(image: UploadFile = File(...)):
        data = await image.read()
        content_type = image.content_type or ""
        if not content_type.startswith("image/"):
            return _error(400, REJECTION_MESSAGES[RejectionReason.NOT_AN_IMAGE])
        if len(data) > MAX_IMAGE_BYTES:
            return _error(413, REJECTION_MESSAGES[RejectionReason.TOO_LARGE])
        if not _is_readable_image(data):
            return _error(400, "Uploaded file is not a readable image")

        payload = ImagePayload(data=data, mime_type=content_type, filename=image.filename or "image")
        try:
            predictions = await app.state.classifier.classify(payload)
        except CollaboratorRejected as exc:
            return _error(exc.status_code, exc.user_message)
        except KioskError as exc:
            logger.warning("Stub classifier failed: %s", exc)
            return _error(503, exc.user_message)

        logger.info("Classified %s (%d bytes)", payload.filename, payload.size)
        return ClassifyResponse(
            predictions=[PredictionModel.from_prediction(item) for item in predictions]
        )

    return app


__all__ = ["create_app"]
