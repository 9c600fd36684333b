"""Tests for the upload validator."""

import pytest

from attachment_lifecycle.errors import AttachmentValidationError, RejectionReason
from attachment_lifecycle.services.validation import (
    DEFAULT_UPLOAD_POLICY,
    UploadPolicy,
    validate_upload,
)

MIB = 1024 * 1024


class TestValidateUpload:
    """Tests for validate_upload."""

    @pytest.mark.parametrize(
        ("content_type", "filename"),
        [
            ("image/jpeg", "me.jpg"),
            ("image/jpeg", "me.jpeg"),
            ("image/png", "new.png"),
            ("image/webp", "pic.webp"),
            ("IMAGE/PNG", "SHOUTY.PNG"),
            ("image/jpeg; charset=binary", "me.JpG"),
        ],
    )
    def test_accepts_supported_images(self, content_type: str, filename: str) -> None:
        validate_upload(content_type, filename, 12 * 1024)

    def test_accepts_exactly_max_size(self) -> None:
        validate_upload("image/png", "a.png", 5 * MIB)

    def test_rejects_six_mib_payload_as_too_large(self) -> None:
        with pytest.raises(AttachmentValidationError) as exc_info:
            validate_upload("image/jpeg", "big.jpg", 6 * MIB)
        assert exc_info.value.reason is RejectionReason.TOO_LARGE
        assert "5MB" in str(exc_info.value)

    def test_size_is_checked_before_type(self) -> None:
        with pytest.raises(AttachmentValidationError) as exc_info:
            validate_upload("image/gif", "big.gif", 6 * MIB)
        assert exc_info.value.reason is RejectionReason.TOO_LARGE

    def test_rejects_gif(self) -> None:
        with pytest.raises(AttachmentValidationError) as exc_info:
            validate_upload("image/gif", "photo.gif", 1024)
        assert exc_info.value.reason is RejectionReason.UNSUPPORTED_TYPE

    @pytest.mark.parametrize(
        ("content_type", "filename"),
        [
            ("text/plain", "photo.png"),  # image extension, non-image type
            ("image/png", "photo.txt"),  # image type, non-image extension
            ("image/png", "photo"),  # no extension at all
            ("application/x-png", "photo.png"),  # not an image/ type
            (None, "photo.png"),
            ("image/png", None),
            ("", "photo.png"),
        ],
    )
    def test_both_type_and_extension_are_required(
        self, content_type: str | None, filename: str | None
    ) -> None:
        with pytest.raises(AttachmentValidationError) as exc_info:
            validate_upload(content_type, filename, 1024)
        assert exc_info.value.reason is RejectionReason.UNSUPPORTED_TYPE

    def test_custom_policy(self) -> None:
        policy = UploadPolicy(max_file_size=1024, allowed_formats=frozenset({"png"}))

        validate_upload("image/png", "a.png", 1024, policy)
        with pytest.raises(AttachmentValidationError):
            validate_upload("image/jpeg", "a.jpg", 10, policy)
        with pytest.raises(AttachmentValidationError) as exc_info:
            validate_upload("image/png", "a.png", 1025, policy)
        assert exc_info.value.reason is RejectionReason.TOO_LARGE


class TestUploadPolicy:
    def test_default_policy(self) -> None:
        assert DEFAULT_UPLOAD_POLICY.max_file_size == 5 * MIB
        assert DEFAULT_UPLOAD_POLICY.allowed_formats == {"jpeg", "jpg", "png", "webp"}

    def test_describe_formats(self) -> None:
        assert DEFAULT_UPLOAD_POLICY.describe_formats() == "JPEG, JPG, PNG, WEBP"
