import argparse
import asyncio
import json
import logging
import mimetypes
import pathlib
import sys
from collections.abc import Sequence

from attachment_lifecycle.config_loader import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_DEFAULTS_FILE,
    load_config,
)
from attachment_lifecycle.config_models import AppConfig
from attachment_lifecycle.errors import AttachmentError
from attachment_lifecycle.services import (
    AttachmentLifecycleManager,
    LocalBlobStore,
    UploadPolicy,
)
from attachment_lifecycle.storage import (
    DatabaseContext,
    create_engine_with_sqlite_optimizations,
    init_db,
)

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=level.upper(),
    )
    # Keep external libraries less verbose
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("alembic").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="attachment-lifecycle",
        description="Manage the current profile photo of each subject.",
    )
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_FILE,
        help=f"Operator configuration file (default: {DEFAULT_CONFIG_FILE})",
    )
    parser.add_argument(
        "--defaults",
        default=DEFAULT_DEFAULTS_FILE,
        help=f"Default configuration file (default: {DEFAULT_DEFAULTS_FILE})",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create or upgrade the database schema")

    add_subject = subparsers.add_parser("add-subject", help="Register a subject")
    add_subject.add_argument("subject_id")

    set_photo = subparsers.add_parser("set-photo", help="Replace a subject's photo")
    set_photo.add_argument("subject_id")
    set_photo.add_argument("file", type=pathlib.Path)
    set_photo.add_argument(
        "--content-type",
        help="Declared MIME type (guessed from the file name if omitted)",
    )

    clear_photo = subparsers.add_parser("clear-photo", help="Remove a subject's photo")
    clear_photo.add_argument("subject_id")

    show = subparsers.add_parser("show", help="Print a subject's current photo")
    show.add_argument("subject_id")

    return parser


async def _run(args: argparse.Namespace, config: AppConfig) -> int:
    engine = create_engine_with_sqlite_optimizations(config.database_url)
    try:
        if args.command == "init-db":
            await init_db(engine)
            return 0

        if args.command == "add-subject":
            async with DatabaseContext(engine) as db_context:
                created = await db_context.attachment_pointers.register_subject(
                    args.subject_id
                )
            print("created" if created else "exists")
            return 0

        blob_store = LocalBlobStore(
            storage_path=config.avatar_storage.storage_path,
            public_url_prefix=config.avatar_storage.public_url_prefix,
            name_prefix=config.avatar_storage.name_prefix,
        )
        manager = AttachmentLifecycleManager(
            blob_store=blob_store,
            db_engine=engine,
            policy=UploadPolicy.from_config(config.upload_policy),
        )

        if args.command == "set-photo":
            content_type = args.content_type or mimetypes.guess_type(args.file.name)[0]
            try:
                content = args.file.read_bytes()
            except OSError as e:
                logger.error(f"Cannot read {args.file}: {e}")
                return 1
            ref = await manager.replace(
                args.subject_id, content, content_type, args.file.name
            )
            print(json.dumps({"photoUrl": ref.public_location}))
        elif args.command == "clear-photo":
            await manager.clear(args.subject_id)
            print(json.dumps({"message": "Photo removed."}))
        elif args.command == "show":
            ref = await manager.get_current(args.subject_id)
            print(json.dumps({"photoUrl": ref.public_location if ref else None}))
        return 0
    finally:
        await engine.dispose()


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(
        defaults_file_path=args.defaults, config_file_path=args.config
    )
    _configure_logging(config.logging.level)

    try:
        return asyncio.run(_run(args, config))
    except AttachmentError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
