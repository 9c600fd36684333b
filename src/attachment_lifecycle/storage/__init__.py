import asyncio
import logging
import os
import random
from collections.abc import Callable
from typing import Any

from alembic.config import Config as AlembicConfig
from sqlalchemy import inspect
from sqlalchemy.engine import Connection
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from alembic import command as alembic_command
from attachment_lifecycle.storage.base import (
    create_engine_with_sqlite_optimizations,
    metadata,
    subjects_table,
)
from attachment_lifecycle.storage.context import DatabaseContext
from attachment_lifecycle.storage.types import AttachmentRef

logger = logging.getLogger(__name__)


async def _is_alembic_managed(engine: AsyncEngine) -> bool:
    """Checks if the alembic_version table exists."""
    async with engine.connect() as conn:

        def sync_has_table(sync_conn: Connection) -> bool:
            return inspect(sync_conn).has_table("alembic_version")

        return await conn.run_sync(sync_has_table)


def _get_alembic_config(engine: AsyncEngine) -> AlembicConfig:
    """Loads the Alembic configuration."""
    alembic_ini_env_var = os.getenv("ALEMBIC_CONFIG")
    project_root = os.path.abspath(
        os.path.join(os.path.dirname(__file__), "..", "..", "..")
    )

    if alembic_ini_env_var:
        alembic_ini_path = alembic_ini_env_var
        logger.info(
            f"Using Alembic config from environment variable: {alembic_ini_path}"
        )
    else:
        alembic_ini_path = os.path.join(project_root, "alembic.ini")

    if not os.path.exists(alembic_ini_path):
        logger.error(f"Alembic config file not found at {alembic_ini_path}.")
        raise FileNotFoundError(f"Alembic config file not found: {alembic_ini_path}")

    alembic_cfg = AlembicConfig(alembic_ini_path)
    alembic_cfg.set_main_option(
        "sqlalchemy.url", engine.url.render_as_string(hide_password=False)
    )
    return alembic_cfg


async def _run_alembic_command(
    engine: AsyncEngine, config: AlembicConfig, command_name: str, *args: Any
) -> None:
    """Executes an Alembic command on a connection from the given engine."""
    command_func = getattr(alembic_command, command_name)
    logger.info(f"Running Alembic command '{command_name}' with args {args!r}")

    async with engine.begin() as conn:

        def sync_command_wrapper(
            sync_conn: Connection,
            cfg: AlembicConfig,
            cmd_func: Callable[..., None],
            cmd_args: tuple[Any, ...],
        ) -> None:
            # env.py picks the connection up from the config attributes
            cfg.attributes["connection"] = sync_conn
            cmd_func(cfg, *cmd_args)

        try:
            await conn.run_sync(sync_command_wrapper, config, command_func, args)
        except Exception as e:
            logger.error(
                f"Failed running Alembic command '{command_name}': {e!r}",
                exc_info=True,
            )
            raise


async def _create_initial_schema(engine: AsyncEngine) -> None:
    """Creates all tables defined in the SQLAlchemy metadata."""
    logger.info("Creating tables from SQLAlchemy metadata...")
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    logger.info("Tables created.")


async def init_db(engine: AsyncEngine) -> None:
    """
    Initializes the database:
    - If the database is managed by Alembic, upgrades it to head.
    - Otherwise creates the schema from the SQLAlchemy metadata and stamps it
      with the Alembic head revision.
    - Retries transient database errors with exponential backoff.
    """
    max_retries = 5
    base_delay = 1.0
    last_exception: Exception | None = None

    for attempt in range(max_retries):
        last_exception = None
        try:
            logger.info(f"Checking database state (attempt {attempt + 1})...")
            alembic_cfg = _get_alembic_config(engine)

            if await _is_alembic_managed(engine):
                await _run_alembic_command(engine, alembic_cfg, "upgrade", "head")
            else:
                logger.info(
                    "Alembic version table not found. Creating schema and stamping..."
                )
                await _create_initial_schema(engine)
                await _run_alembic_command(engine, alembic_cfg, "stamp", "head")

            logger.info("Database initialization successful.")
            return
        except FileNotFoundError:
            # A missing alembic.ini will not appear by retrying
            raise
        except (DBAPIError, OperationalError) as e:
            logger.warning(
                f"Database error during init_db (attempt {attempt + 1}/{max_retries}): {e!r}"
            )
            last_exception = e
        except SQLAlchemyError as e:
            logger.warning(
                f"SQLAlchemy error during init_db (attempt {attempt + 1}/{max_retries}): {e!r}",
                exc_info=True,
            )
            last_exception = e

        if attempt < max_retries - 1:
            delay = base_delay * (2**attempt) + random.uniform(0, base_delay * 0.5)
            logger.info(f"Retrying init_db in {delay:.2f} seconds...")
            await asyncio.sleep(delay)

    logger.critical(
        f"Database initialization failed after {max_retries} attempts. Last error: {last_exception!r}"
    )
    if last_exception:
        raise last_exception
    raise RuntimeError("Database initialization failed")


__all__ = [
    "AttachmentRef",
    "DatabaseContext",
    "create_engine_with_sqlite_optimizations",
    "init_db",
    "metadata",
    "subjects_table",
]
