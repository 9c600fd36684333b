"""
Database context manager for storage operations.

This module provides a context manager and utilities for database operations,
enabling dependency injection for testing and centralizing retry logic.
"""

import asyncio
import logging
import random
from types import TracebackType
from typing import TYPE_CHECKING, Any

from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import DBAPIError, IntegrityError, ProgrammingError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from sqlalchemy.sql import Delete, Insert, Select, Update

if TYPE_CHECKING:
    from contextlib import AbstractAsyncContextManager

    from attachment_lifecycle.storage.repositories import (
        AttachmentPointersRepository,
    )

logger = logging.getLogger(__name__)


class DatabaseContext:
    """
    Context manager for database operations with retry logic.

    Entering the context starts a transaction; leaving it commits, or rolls
    back if the block raised.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        max_retries: int = 3,
        base_delay: float = 0.5,
    ) -> None:
        """
        Initialize the database context.

        Args:
            engine: SQLAlchemy AsyncEngine to open the transaction on.
            max_retries: Maximum number of retries for database operations.
            base_delay: Base delay in seconds for exponential backoff.
        """
        self.engine = engine
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.conn: AsyncConnection | None = None
        self._transaction_cm: AbstractAsyncContextManager[AsyncConnection] | None = None

        # Repository instances (lazy-loaded)
        self._attachment_pointers: AttachmentPointersRepository | None = None

    async def __aenter__(self) -> "DatabaseContext":
        """Enter the async context manager, starting a transaction."""
        if self._transaction_cm is not None:
            raise RuntimeError("DatabaseContext is not reentrant")

        self._transaction_cm = self.engine.begin()
        self.conn = await self._transaction_cm.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit the async context manager, committing or rolling back the transaction."""
        if self._transaction_cm is None:
            return

        try:
            await self._transaction_cm.__aexit__(exc_type, exc_val, exc_tb)
        finally:
            self.conn = None
            self._transaction_cm = None

    @property
    def dialect_name(self) -> str:
        """Name of the SQL dialect behind this context (e.g. 'sqlite')."""
        return self.engine.dialect.name

    async def execute_with_retry(
        self, query: Select | Insert | Update | Delete
    ) -> CursorResult:
        """
        Execute a statement, retrying transient database errors.

        Constraint violations and programming errors are raised immediately.

        Raises:
            RuntimeError: If there is no active database connection.
            DBAPIError: If the error is not retryable or retries are exhausted.
        """
        if self.conn is None:
            raise RuntimeError("No active database connection")

        for attempt in range(self.max_retries):
            try:
                return await self.conn.execute(query)
            except DBAPIError as e:
                if isinstance(e, (IntegrityError, ProgrammingError)):
                    logger.error(
                        f"Non-retryable {type(e).__name__} encountered: {e}"
                    )
                    raise

                logger.warning(
                    f"Retryable DBAPIError (attempt {attempt + 1}/{self.max_retries}): {e}."
                )
                if attempt == self.max_retries - 1:
                    logger.error(
                        "Max retries exceeded for retryable error. Raising error."
                    )
                    raise

                delay = self.base_delay * (2**attempt) + random.uniform(
                    0, self.base_delay
                )
                logger.info(f"Retrying in {delay:.2f} seconds...")
                await asyncio.sleep(delay)

        raise RuntimeError("Database operation failed after multiple retries")

    async def fetch_one(self, query: Select) -> dict[str, Any] | None:
        """Execute a SELECT and return its single row as a dict, or None."""
        result = await self.execute_with_retry(query)
        row_mapping = result.mappings().one_or_none()
        return dict(row_mapping) if row_mapping else None

    @property
    def attachment_pointers(self) -> "AttachmentPointersRepository":
        """Get the attachment pointers repository instance."""
        if self._attachment_pointers is None:
            from attachment_lifecycle.storage.repositories import (
                AttachmentPointersRepository,
            )

            self._attachment_pointers = AttachmentPointersRepository(self)
        return self._attachment_pointers
