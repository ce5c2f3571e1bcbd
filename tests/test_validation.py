import unittest

from kiosk.capture import ImagePayload
from kiosk.validation import (
    MAX_IMAGE_BYTES,
    Accepted,
    Rejected,
    RejectionReason,
    validate,
)


def _payload(size: int, mime_type: str) -> ImagePayload:
    return ImagePayload(data=b"\0" * size, mime_type=mime_type, filename="sample")


class ValidateTests(unittest.TestCase):
    def test_non_image_rejected_regardless_of_size(self) -> None:
        for size in (0, 1, MAX_IMAGE_BYTES + 1):
            for mime_type in ("application/pdf", "text/plain", "video/mp4", ""):
                result = validate(_payload(size, mime_type))
                self.assertIsInstance(result, Rejected)
                self.assertEqual(result.reason, RejectionReason.NOT_AN_IMAGE)

    def test_image_over_limit_rejected_as_too_large(self) -> None:
        result = validate(_payload(MAX_IMAGE_BYTES + 1, "image/png"))
        self.assertIsInstance(result, Rejected)
        self.assertEqual(result.reason, RejectionReason.TOO_LARGE)
        self.assertEqual(result.message, "Image size should be less than 10MB")

    def test_image_at_limit_accepted(self) -> None:
        self.assertIsInstance(validate(_payload(MAX_IMAGE_BYTES, "image/jpeg")), Accepted)

    def test_mime_type_match_is_case_insensitive(self) -> None:
        self.assertIsInstance(validate(_payload(10, "IMAGE/PNG")), Accepted)

    def test_rejection_converts_to_validation_error(self) -> None:
        error = validate(_payload(10, "text/plain")).to_error()
        self.assertEqual(error.reason, "not-an-image")
        self.assertEqual(error.user_message, "Please select a valid image file (JPEG, PNG, etc.)")

    def test_limit_is_ten_mebibytes(self) -> None:
        self.assertEqual(MAX_IMAGE_BYTES, 10_485_760)


if __name__ == "__main__":
    unittest.main()
