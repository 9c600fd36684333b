"""Upload policy checks applied before anything reaches storage."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePath
from typing import TYPE_CHECKING

from attachment_lifecycle.errors import AttachmentValidationError, RejectionReason

if TYPE_CHECKING:
    from attachment_lifecycle.config_models import UploadPolicyConfig

DEFAULT_MAX_FILE_SIZE = 5 * 1024 * 1024  # 5 MiB
DEFAULT_ALLOWED_FORMATS = frozenset({"jpeg", "jpg", "png", "webp"})


@dataclass(frozen=True)
class UploadPolicy:
    """Size limit and accepted image formats for uploads."""

    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    allowed_formats: frozenset[str] = field(default=DEFAULT_ALLOWED_FORMATS)

    @classmethod
    def from_config(cls, config: UploadPolicyConfig) -> UploadPolicy:
        return cls(
            max_file_size=config.max_file_size,
            allowed_formats=frozenset(fmt.lower() for fmt in config.allowed_formats),
        )

    def describe_formats(self) -> str:
        return ", ".join(sorted(fmt.upper() for fmt in self.allowed_formats))


DEFAULT_UPLOAD_POLICY = UploadPolicy()


def _content_type_format(content_type: str | None) -> str | None:
    """Returns the image subtype of a MIME type, e.g. 'png' for 'image/png'."""
    if not content_type:
        return None
    media_type = content_type.split(";", 1)[0].strip().lower()
    main_type, _, subtype = media_type.partition("/")
    if main_type != "image" or not subtype:
        return None
    return subtype


def _filename_format(filename: str | None) -> str | None:
    if not filename:
        return None
    suffix = PurePath(filename).suffix.lower()
    return suffix[1:] or None


def validate_upload(
    content_type: str | None,
    filename: str | None,
    size: int,
    policy: UploadPolicy = DEFAULT_UPLOAD_POLICY,
) -> None:
    """
    Check an inbound upload against the size and content-type policy.

    Both the declared content type and the filename extension must name an
    allowed format; they are checked independently of each other.

    Args:
        content_type: The MIME type declared by the client
        filename: The original filename supplied by the client
        size: Payload size in bytes
        policy: Limits to apply

    Raises:
        AttachmentValidationError: With reason TOO_LARGE or UNSUPPORTED_TYPE.
    """
    if size > policy.max_file_size:
        raise AttachmentValidationError(
            RejectionReason.TOO_LARGE,
            f"File too large. Max {policy.max_file_size / (1024 * 1024):g}MB.",
        )

    declared = _content_type_format(content_type)
    extension = _filename_format(filename)
    if declared not in policy.allowed_formats or extension not in policy.allowed_formats:
        raise AttachmentValidationError(
            RejectionReason.UNSUPPORTED_TYPE,
            f"Only image files ({policy.describe_formats()}) are allowed.",
        )
