"""Tests for schema creation and Alembic stamping in init_db."""

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncEngine

from attachment_lifecycle.storage import init_db
from attachment_lifecycle.storage.context import DatabaseContext


async def test_fresh_database_is_stamped(db_engine: AsyncEngine) -> None:
    async with db_engine.connect() as conn:
        tables = await conn.run_sync(
            lambda sync_conn: set(inspect(sync_conn).get_table_names())
        )
        version = (
            await conn.execute(text("SELECT version_num FROM alembic_version"))
        ).scalar_one()

    assert {"subjects", "alembic_version"} <= tables
    assert version == "create_subjects"


async def test_init_db_is_idempotent(db_engine: AsyncEngine) -> None:
    async with DatabaseContext(db_engine) as db:
        await db.attachment_pointers.register_subject("u1")

    # Second run takes the upgrade path on an already stamped database
    await init_db(db_engine)

    async with DatabaseContext(db_engine) as db:
        assert await db.attachment_pointers.get("u1") is None


async def test_photo_stored_name_is_unique(db_engine: AsyncEngine) -> None:
    def unique_columns(sync_conn: Connection) -> list[list[str]]:
        inspector = inspect(sync_conn)
        return [
            constraint["column_names"]
            for constraint in inspector.get_unique_constraints("subjects")
        ]

    async with db_engine.connect() as conn:
        columns = await conn.run_sync(unique_columns)

    assert ["photo_stored_name"] in columns
