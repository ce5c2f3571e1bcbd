from __future__ import annotations

GENERIC_SERVER_ERROR = "Server error occurred"
CONNECTION_ERROR = "Unable to connect to server. Please check your connection."
UNEXPECTED_ERROR = "Failed to analyze image. Please try again."


class KioskError(Exception):
    """Base class for failures scoped to a single acquisition or submission."""

    user_message: str = UNEXPECTED_ERROR

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.user_message)
        if message is not None:
            self.user_message = message


class ValidationError(KioskError):
    """Raised locally when a payload is rejected before any request is sent."""

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason


class CollaboratorError(KioskError):
    """Failure reported by, or while talking to, the classification service."""


class CollaboratorRejected(CollaboratorError):
    user_message = GENERIC_SERVER_ERROR

    def __init__(self, status_code: int, message: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CollaboratorUnreachable(CollaboratorError):
    user_message = CONNECTION_ERROR

    def __init__(self, detail: str | None = None) -> None:
        super().__init__()
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.user_message} ({self.detail})"
        return self.user_message


class ProtocolViolation(CollaboratorError):
    """The service answered, but the body does not match the classify contract."""

    user_message = GENERIC_SERVER_ERROR

    def __init__(self, detail: str) -> None:
        super().__init__()
        self.detail = detail

    def __str__(self) -> str:
        return f"Malformed classification response: {self.detail}"


class CameraUnavailable(KioskError):
    user_message = "Camera access is required. Allow camera access and try again."


class EmptyPredictionSet(ValueError):
    pass


__all__ = [
    "KioskError",
    "ValidationError",
    "CollaboratorError",
    "CollaboratorRejected",
    "CollaboratorUnreachable",
    "ProtocolViolation",
    "CameraUnavailable",
    "EmptyPredictionSet",
    "GENERIC_SERVER_ERROR",
    "CONNECTION_ERROR",
    "UNEXPECTED_ERROR",
]
