import asyncio
import logging
import os
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context
from attachment_lifecycle.storage import metadata

logger = logging.getLogger(__name__)

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Only configure logging from the ini file when the application hasn't
# configured logging yet (e.g. when run from the alembic CLI).
if config.config_file_name is not None and not logging.root.handlers:
    fileConfig(config.config_file_name)

target_metadata = metadata


def _database_url() -> str | None:
    return os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode, emitting SQL to the script output."""
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    dialect_name = connection.dialect.name
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        script_location=config.get_main_option("script_location"),
        render_as_batch=dialect_name == "sqlite",
    )

    # SQLite does not support transactional DDL, so run migrations outside a transaction block.
    if dialect_name == "sqlite":
        context.run_migrations()
    else:
        with context.begin_transaction():
            context.run_migrations()
    logger.info("Database migrations completed successfully.")


async def run_async_migrations() -> None:
    """Create an async engine from the config and run migrations on it."""
    db_url = _database_url()
    if not db_url:
        raise ValueError("DATABASE_URL environment variable is not set.")

    cfg = config.get_section(config.config_ini_section, {})
    cfg["sqlalchemy.url"] = db_url

    connectable = async_engine_from_config(
        cfg,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    try:
        async with connectable.begin() as connection:
            await connection.run_sync(do_run_migrations)
    finally:
        await connectable.dispose()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    # init_db() hands over its own connection through the config attributes
    connectable = context.config.attributes.get("connection", None)

    if connectable is None:
        asyncio.run(run_async_migrations())
    else:
        do_run_migrations(connectable)


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
