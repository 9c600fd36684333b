"""Exceptions raised by the attachment lifecycle core.

Only validation errors, store write errors, missing subjects and pointer
conflicts reach callers of ``AttachmentLifecycleManager``. ``ReclaimFailure``
is raised by the blob store and absorbed by the manager.
"""

from __future__ import annotations

import enum


class AttachmentError(Exception):
    """Base class for attachment lifecycle errors."""


class RejectionReason(str, enum.Enum):
    """Why an upload was refused by the validator."""

    TOO_LARGE = "too_large"
    UNSUPPORTED_TYPE = "unsupported_type"


class AttachmentValidationError(AttachmentError):
    """The upload violates the size or content-type policy."""

    def __init__(self, reason: RejectionReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason


class StoreIOError(AttachmentError):
    """Writing or reading a blob failed (disk full, permissions, ...)."""


class SubjectNotFoundError(AttachmentError):
    """The subject has no record in the pointer table."""

    def __init__(self, subject_id: str) -> None:
        super().__init__(f"Subject not found: {subject_id}")
        self.subject_id = subject_id


class PointerConflictError(AttachmentError):
    """The pointer kept changing underneath a swap."""

    def __init__(self, subject_id: str, attempts: int) -> None:
        super().__init__(
            f"Could not swap attachment for subject {subject_id} "
            f"after {attempts} attempts"
        )
        self.subject_id = subject_id
        self.attempts = attempts


class ReclaimFailure(AttachmentError):
    """Deleting a superseded blob failed."""

    def __init__(self, stored_name: str, message: str) -> None:
        super().__init__(f"Could not delete blob {stored_name}: {message}")
        self.stored_name = stored_name
