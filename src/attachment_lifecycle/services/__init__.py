"""Services implementing the attachment lifecycle."""

from .attachment_lifecycle import AttachmentLifecycleManager
from .blob_store import LocalBlobStore
from .validation import DEFAULT_UPLOAD_POLICY, UploadPolicy, validate_upload

__all__ = [
    "DEFAULT_UPLOAD_POLICY",
    "AttachmentLifecycleManager",
    "LocalBlobStore",
    "UploadPolicy",
    "validate_upload",
]
