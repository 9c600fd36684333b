"""
Base module for database connection and metadata.

This module defines the SQLAlchemy metadata object and the subjects table
holding each subject's current attachment pointer.
"""

import logging
from typing import Any

from sqlalchemy import (
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    event,
)
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool
from sqlalchemy.pool.base import _ConnectionRecord
from sqlalchemy.sql import func

logger = logging.getLogger(__name__)

# Define shared metadata object
metadata = MetaData()

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///attachments.db"


def _is_in_memory_sqlite(database_url: str) -> bool:
    return database_url.startswith("sqlite") and (
        ":memory:" in database_url or database_url.rstrip("/").endswith(":")
    )


def create_engine_with_sqlite_optimizations(database_url: str) -> AsyncEngine:
    """Create engine with SQLite optimizations if applicable."""
    # In-memory SQLite only exists on a single connection, so it needs StaticPool.
    # Everything else gets a connection per transaction so that concurrent
    # pointer swaps are serialized by the database, not by a shared connection.
    pool_class = StaticPool if _is_in_memory_sqlite(database_url) else NullPool

    engine = create_async_engine(
        database_url,
        echo=False,
        connect_args={
            "timeout": 30,  # 30 second busy timeout for SQLite
            "check_same_thread": False,
        }
        if database_url.startswith("sqlite")
        else {},
        pool_pre_ping=pool_class != NullPool,
        poolclass=pool_class,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(
        dbapi_connection: Any,  # noqa: ANN401 # DBAPI connection type varies
        connection_record: _ConnectionRecord,
    ) -> None:
        if engine.dialect.name != "sqlite":
            return
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA journal_mode=WAL")  # Enable WAL mode
            cursor.execute("PRAGMA busy_timeout=30000")  # 30 second timeout
            cursor.execute("PRAGMA synchronous=NORMAL")
            logger.debug("Applied SQLite optimizations")
        finally:
            cursor.close()

    return engine


# One row per subject. The photo columns are the attachment pointer: both NULL
# means the slot is empty.
subjects_table = Table(
    "subjects",
    metadata,
    Column("subject_id", String(255), primary_key=True),
    Column("photo_stored_name", String(255), nullable=True, unique=True),
    Column("photo_location", Text, nullable=True),
    Column(
        "created_at",
        DateTime(timezone=True),
        server_default=func.now(),  # pylint: disable=not-callable
        nullable=False,
    ),
    Column("photo_updated_at", DateTime(timezone=True), nullable=True),
    extend_existing=True,
)
