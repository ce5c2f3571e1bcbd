from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

import requests

from kiosk.capture import ImagePayload
from kiosk.controller import REQUEST_TIMEOUT_SECONDS
from kiosk.errors import CollaboratorRejected, CollaboratorUnreachable, ProtocolViolation
from kiosk.ranking import Prediction

from .schemas import ErrorResponse, parse_predictions

logger = logging.getLogger(__name__)


@dataclass
class ClassifierHttpClient:
    base_url: str
    timeout: float = REQUEST_TIMEOUT_SECONDS
    session: requests.Session = field(default_factory=requests.Session)

    async def classify(self, payload: ImagePayload) -> list[Prediction]:
        return await asyncio.to_thread(self.classify_sync, payload)

    async def health(self) -> bool:
        return await asyncio.to_thread(self.health_sync)

    def classify_sync(self, payload: ImagePayload) -> list[Prediction]:
        files = {"image": (payload.filename, payload.data, payload.mime_type)}
        try:
            response = self.session.post(
                self._url("/api/classify"),
                files=files,
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise CollaboratorUnreachable("timed out waiting for classification response") from exc
        except requests.RequestException as exc:
            raise CollaboratorUnreachable(str(exc)) from exc

        if not 200 <= response.status_code < 300:
            message = self._error_message(response)
            logger.warning("Classification rejected with status %s: %s", response.status_code, message)
            raise CollaboratorRejected(response.status_code, message)
        try:
            data = response.json()
        except ValueError as exc:
            raise ProtocolViolation("response body is not valid JSON") from exc
        return parse_predictions(data)

    def health_sync(self) -> bool:
        try:
            response = self.session.get(self._url("/health"), timeout=self.timeout)
        except requests.RequestException as exc:
            logger.debug("Health probe failed: %s", exc)
            return False
        return 200 <= response.status_code < 300

    def close(self) -> None:
        self.session.close()

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}{path}"

    def _error_message(self, response: requests.Response) -> str | None:
        try:
            body = ErrorResponse.model_validate(response.json())
        except ValueError:
            return None
        return body.error.strip() or None


__all__ = ["ClassifierHttpClient"]
