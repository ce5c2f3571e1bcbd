from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from .capture import ImagePayload
from .errors import ValidationError

MAX_IMAGE_BYTES = 10 * 1024 * 1024


class RejectionReason(StrEnum):
    NOT_AN_IMAGE = "not-an-image"
    TOO_LARGE = "too-large"
    UNREADABLE = "unreadable"


REJECTION_MESSAGES: dict[RejectionReason, str] = {
    RejectionReason.NOT_AN_IMAGE: "Please select a valid image file (JPEG, PNG, etc.)",
    RejectionReason.TOO_LARGE: "Image size should be less than 10MB",
    RejectionReason.UNREADABLE: "Unable to read the selected file. Please choose another image.",
}


@dataclass(frozen=True)
class Accepted:
    accepted: bool = True


@dataclass(frozen=True)
class Rejected:
    reason: RejectionReason
    accepted: bool = False

    @property
    def message(self) -> str:
        return REJECTION_MESSAGES[self.reason]

    def to_error(self) -> ValidationError:
        return ValidationError(self.reason.value, self.message)


ValidationResult = Accepted | Rejected


def validate(payload: ImagePayload) -> ValidationResult:
    if not payload.mime_type.lower().startswith("image/"):
        return Rejected(RejectionReason.NOT_AN_IMAGE)
    if payload.size > MAX_IMAGE_BYTES:
        return Rejected(RejectionReason.TOO_LARGE)
    return Accepted()


__all__ = [
    "MAX_IMAGE_BYTES",
    "RejectionReason",
    "REJECTION_MESSAGES",
    "Accepted",
    "Rejected",
    "ValidationResult",
    "validate",
]
