"""Repository for the per-subject attachment pointer."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update

from attachment_lifecycle.errors import PointerConflictError, SubjectNotFoundError
from attachment_lifecycle.storage.base import subjects_table
from attachment_lifecycle.storage.repositories.base import BaseRepository
from attachment_lifecycle.storage.types import AttachmentRef


def _ref_from_row(row: dict[str, Any]) -> AttachmentRef | None:
    if row["photo_stored_name"] is None:
        return None
    return AttachmentRef(
        stored_name=row["photo_stored_name"],
        public_location=row["photo_location"],
    )


class AttachmentPointersRepository(BaseRepository):
    """Repository for reading and swapping each subject's current attachment."""

    # A lost compare-and-set is retried after re-reading the pointer. With the
    # row lock taken by the re-read this settles on the second attempt.
    MAX_SWAP_ATTEMPTS = 5

    async def register_subject(self, subject_id: str) -> bool:
        """Creates the subject's record with an empty slot.

        Returns:
            True if the record was created, False if it already existed.

        Raises:
            NotImplementedError: On a database other than SQLite or PostgreSQL.
        """
        dialect = self._db.dialect_name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert as dialect_insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert as dialect_insert
        else:
            raise NotImplementedError(f"Unsupported database dialect: {dialect}")

        stmt = (
            dialect_insert(subjects_table)
            .values(
                subject_id=subject_id,
                photo_stored_name=None,
                photo_location=None,
                created_at=datetime.now(timezone.utc),
            )
            .on_conflict_do_nothing(index_elements=["subject_id"])
        )
        result = await self._execute_for_subject("register_subject", subject_id, stmt)
        created = result.rowcount > 0

        if created:
            self._logger.info(f"Registered subject {subject_id}")
        return created

    async def _fetch_pointer_row(
        self, subject_id: str, *, lock: bool = False
    ) -> dict[str, Any] | None:
        stmt = select(
            subjects_table.c.subject_id,
            subjects_table.c.photo_stored_name,
            subjects_table.c.photo_location,
        ).where(subjects_table.c.subject_id == subject_id)
        if lock:
            # Rendered as FOR UPDATE where supported; SQLite ignores it and
            # relies on the compare-and-set below.
            stmt = stmt.with_for_update()
        return await self._fetch_one_for_subject("read_pointer", subject_id, stmt)

    async def get(self, subject_id: str) -> AttachmentRef | None:
        """Returns the subject's current attachment, or None if the slot is empty.

        Raises:
            SubjectNotFoundError: If the subject has no record.
        """
        row = await self._fetch_pointer_row(subject_id)
        if row is None:
            raise SubjectNotFoundError(subject_id)
        return _ref_from_row(row)

    async def swap(
        self, subject_id: str, new_ref: AttachmentRef | None
    ) -> AttachmentRef | None:
        """Atomically replaces the subject's attachment and returns the previous one.

        The write is a compare-and-set against the value just read, so two
        concurrent swaps on the same subject each observe a distinct previous
        value. The change becomes durable when the enclosing DatabaseContext
        commits.

        Args:
            subject_id: The subject whose slot is updated
            new_ref: The attachment to record, or None to empty the slot

        Returns:
            The attachment that was current immediately before the swap.

        Raises:
            SubjectNotFoundError: If the subject has no record.
            PointerConflictError: If every compare-and-set attempt lost a race.
        """
        name_column = subjects_table.c.photo_stored_name

        for attempt in range(1, self.MAX_SWAP_ATTEMPTS + 1):
            row = await self._fetch_pointer_row(subject_id, lock=True)
            if row is None:
                raise SubjectNotFoundError(subject_id)
            old_ref = _ref_from_row(row)

            expected = (
                name_column.is_(None)
                if old_ref is None
                else name_column == old_ref.stored_name
            )
            stmt = (
                update(subjects_table)
                .where(subjects_table.c.subject_id == subject_id, expected)
                .values(
                    photo_stored_name=new_ref.stored_name if new_ref else None,
                    photo_location=new_ref.public_location if new_ref else None,
                    photo_updated_at=datetime.now(timezone.utc),
                )
            )
            result = await self._execute_for_subject("swap", subject_id, stmt)
            if result.rowcount == 1:
                self._logger.info(
                    f"Swapped attachment for {subject_id}: "
                    f"{old_ref.stored_name if old_ref else None} -> "
                    f"{new_ref.stored_name if new_ref else None}"
                )
                return old_ref

            self._logger.info(
                f"Attachment for {subject_id} changed concurrently "
                f"(attempt {attempt}/{self.MAX_SWAP_ATTEMPTS}), re-reading"
            )

        raise PointerConflictError(subject_id, self.MAX_SWAP_ATTEMPTS)
