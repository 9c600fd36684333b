"""Shared plumbing for repositories keyed by subject."""

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

if TYPE_CHECKING:
    from sqlalchemy.engine import CursorResult
    from sqlalchemy.sql import Delete, Insert, Select, Update

from attachment_lifecycle.storage.context import DatabaseContext


class BaseRepository:
    """Base class for repositories operating on one subject at a time."""

    def __init__(self, db_context: DatabaseContext) -> None:
        self._db = db_context
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def _execute_for_subject(
        self,
        operation_name: str,
        subject_id: str,
        query: "Insert | Update | Delete",
    ) -> "CursorResult[Any]":
        """Execute a write for one subject, logging failures with its id.

        Raises:
            SQLAlchemyError: Re-raises database errors after logging
        """
        try:
            return await self._db.execute_with_retry(query)
        except SQLAlchemyError as e:
            self._logger.error(
                f"Database error in {operation_name} for subject {subject_id}: {e}",
                exc_info=True,
            )
            raise

    async def _fetch_one_for_subject(
        self, operation_name: str, subject_id: str, query: "Select"
    ) -> dict[str, Any] | None:
        """Fetch a single row for one subject, logging failures with its id."""
        try:
            return await self._db.fetch_one(query)
        except SQLAlchemyError as e:
            self._logger.error(
                f"Database error in {operation_name} for subject {subject_id}: {e}",
                exc_info=True,
            )
            raise
