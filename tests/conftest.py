import logging
import os
import tempfile
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine

from attachment_lifecycle.services import (
    AttachmentLifecycleManager,
    LocalBlobStore,
)
from attachment_lifecycle.storage import init_db
from attachment_lifecycle.storage.base import create_engine_with_sqlite_optimizations
from attachment_lifecycle.storage.context import DatabaseContext

# Configure logging for tests (optional, but can be helpful)
logging.basicConfig(level=logging.INFO)

logger = logging.getLogger(__name__)


@pytest_asyncio.fixture(scope="function")
async def db_engine(
    request: pytest.FixtureRequest,
) -> AsyncGenerator[AsyncEngine]:
    """
    Provides an engine on a fresh temporary SQLite database.

    The schema is created through init_db, exactly as on application start.
    """
    with tempfile.NamedTemporaryFile(
        prefix="al_test_", suffix=".sqlite", delete=False
    ) as tmp_file:
        tmp_name = tmp_file.name
    engine = create_engine_with_sqlite_optimizations(f"sqlite+aiosqlite:///{tmp_name}")
    logger.info(f"--- SQLite Test DB Setup ({request.node.name}) ---")

    try:
        await init_db(engine)
        yield engine
    finally:
        await engine.dispose()
        for suffix in ("", "-wal", "-shm"):
            if os.path.exists(tmp_name + suffix):
                os.unlink(tmp_name + suffix)
        logger.info("Removed temporary SQLite database file.")


@pytest_asyncio.fixture(scope="function")
async def db_context(db_engine: AsyncEngine) -> AsyncGenerator[DatabaseContext]:
    """Provides an entered DatabaseContext for repository tests."""
    async with DatabaseContext(engine=db_engine) as db_ctx:
        yield db_ctx


@pytest.fixture
def blob_dir(tmp_path: Path) -> Path:
    return tmp_path / "uploads" / "avatars"


@pytest.fixture
def blob_store(blob_dir: Path) -> LocalBlobStore:
    """Blob store rooted in a per-test temporary directory."""
    return LocalBlobStore(storage_path=blob_dir)


@pytest.fixture
def lifecycle_manager(
    blob_store: LocalBlobStore, db_engine: AsyncEngine
) -> AttachmentLifecycleManager:
    return AttachmentLifecycleManager(blob_store=blob_store, db_engine=db_engine)


@pytest_asyncio.fixture
async def registered_subject(db_engine: AsyncEngine) -> str:
    """Registers subject 'u1' with an empty attachment slot."""
    async with DatabaseContext(engine=db_engine) as db:
        await db.attachment_pointers.register_subject("u1")
    return "u1"
