"""
Lifecycle management for a subject's single current attachment.

The manager sequences validate -> store -> swap pointer -> reclaim old blob.
A new blob is always written before the pointer moves to it, and an old blob
is only deleted after the swap away from it has committed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from attachment_lifecycle.errors import ReclaimFailure
from attachment_lifecycle.services.validation import (
    DEFAULT_UPLOAD_POLICY,
    UploadPolicy,
    validate_upload,
)
from attachment_lifecycle.storage.context import DatabaseContext

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from attachment_lifecycle.services.blob_store import LocalBlobStore
    from attachment_lifecycle.storage.types import AttachmentRef

logger = logging.getLogger(__name__)


class AttachmentLifecycleManager:
    """Replaces and clears the attachment bound to a subject."""

    def __init__(
        self,
        blob_store: LocalBlobStore,
        db_engine: AsyncEngine,
        policy: UploadPolicy = DEFAULT_UPLOAD_POLICY,
    ) -> None:
        """
        Initialize the lifecycle manager.

        Args:
            blob_store: Store owning the blob namespace
            db_engine: Database engine for creating contexts
            policy: Upload policy enforced before anything is stored
        """
        self.blob_store = blob_store
        self.db_engine = db_engine
        self.policy = policy

    async def get_current(self, subject_id: str) -> AttachmentRef | None:
        """Return the subject's current attachment, or None if the slot is empty.

        Raises:
            SubjectNotFoundError: If the subject does not exist.
        """
        async with DatabaseContext(self.db_engine) as db_context:
            return await db_context.attachment_pointers.get(subject_id)

    async def replace(
        self,
        subject_id: str,
        content: bytes,
        content_type: str | None,
        original_filename: str,
    ) -> AttachmentRef:
        """
        Store a new attachment for the subject and retire the previous one.

        Args:
            subject_id: The authenticated subject
            content: Uploaded bytes
            content_type: MIME type declared by the client
            original_filename: Filename supplied by the client

        Returns:
            Reference to the newly stored attachment.

        Raises:
            AttachmentValidationError: If the upload violates the policy.
            StoreIOError: If the blob could not be written.
            SubjectNotFoundError: If the subject disappeared before the swap.
        """
        validate_upload(content_type, original_filename, len(content), self.policy)

        new_ref = await self.blob_store.put(content, original_filename)

        try:
            async with DatabaseContext(self.db_engine) as db_context:
                old_ref = await db_context.attachment_pointers.swap(
                    subject_id, new_ref
                )
        except Exception:
            # The blob is on disk but nothing points at it
            await self._discard_unreferenced(new_ref)
            raise

        if old_ref is not None:
            await self._reclaim(old_ref)

        logger.info(
            f"Replaced attachment for {subject_id} with {new_ref.stored_name}"
        )
        return new_ref

    async def clear(self, subject_id: str) -> None:
        """
        Empty the subject's slot and retire the attachment it held.

        Clearing an empty slot succeeds without touching the blob store.

        Raises:
            SubjectNotFoundError: If the subject does not exist.
        """
        async with DatabaseContext(self.db_engine) as db_context:
            old_ref = await db_context.attachment_pointers.swap(subject_id, None)

        if old_ref is None:
            logger.debug(f"Attachment slot for {subject_id} was already empty")
            return

        await self._reclaim(old_ref)
        logger.info(f"Cleared attachment for {subject_id}")

    async def _reclaim(self, old_ref: AttachmentRef) -> None:
        """Best-effort deletion of a superseded blob."""
        try:
            await self.blob_store.delete(old_ref.stored_name)
        except ReclaimFailure as e:
            # The pointer already moved on; the leftover file is only an orphan
            logger.warning(f"Could not delete old attachment: {e}")

    async def _discard_unreferenced(self, new_ref: AttachmentRef) -> None:
        try:
            await self.blob_store.delete(new_ref.stored_name)
        except ReclaimFailure as e:
            logger.error(
                f"Failed to remove orphaned blob after aborted swap: {e}",
                exc_info=True,
            )
