"""
File-system blob store for attachment payloads.

Blobs live in a single flat namespace directory under generated names. The
store is the only component that touches that directory.
"""

import logging
import re
import uuid
from pathlib import Path, PurePath

import aiofiles
import aiofiles.os

from attachment_lifecycle.errors import ReclaimFailure, StoreIOError
from attachment_lifecycle.storage.types import AttachmentRef

logger = logging.getLogger(__name__)

DEFAULT_NAME_PREFIX = "avatar_"
DEFAULT_PUBLIC_URL_PREFIX = "/uploads/avatars"

_SAFE_EXTENSION = re.compile(r"^\.[a-z0-9]{1,10}$")
_TMP_SUFFIX = ".tmp"


class LocalBlobStore:
    """Stores blobs as files in one directory and hands out AttachmentRefs."""

    def __init__(
        self,
        storage_path: str | Path,
        public_url_prefix: str = DEFAULT_PUBLIC_URL_PREFIX,
        name_prefix: str = DEFAULT_NAME_PREFIX,
    ) -> None:
        """
        Initialize the blob store, creating the namespace directory if needed.

        Args:
            storage_path: Directory holding the blobs
            public_url_prefix: Prefix joined with the stored name to build
                the public location of a blob
            name_prefix: Fixed prefix of every generated blob name

        Raises:
            ValueError: If name_prefix contains a path separator.
        """
        if "/" in name_prefix or "\\" in name_prefix:
            raise ValueError(f"Invalid blob name prefix: {name_prefix!r}")
        self.storage_path = Path(storage_path)
        self.storage_path.mkdir(parents=True, exist_ok=True)
        self.public_url_prefix = public_url_prefix.rstrip("/")
        self.name_prefix = name_prefix
        logger.info(f"LocalBlobStore initialized with storage path: {self.storage_path}")

    def _generate_name(self, original_filename: str) -> str:
        extension = PurePath(original_filename or "").suffix.lower()
        if not _SAFE_EXTENSION.match(extension):
            extension = ""
        return f"{self.name_prefix}{uuid.uuid4()}{extension}"

    def public_location(self, stored_name: str) -> str:
        return f"{self.public_url_prefix}/{stored_name}"

    def path_for(self, stored_name: str) -> Path:
        """
        Resolve a stored name to its file inside the namespace.

        Raises:
            ValueError: If the name is empty or would escape the namespace.
        """
        root = self.storage_path.resolve()
        candidate = (self.storage_path / stored_name).resolve()
        if not stored_name or candidate.parent != root:
            raise ValueError(f"Invalid blob name: {stored_name!r}")
        return candidate

    async def put(self, content: bytes, original_filename: str) -> AttachmentRef:
        """
        Write content under a newly generated name.

        The bytes go to a temporary file that is renamed into place, so a
        failed write never leaves a partial blob under the final name.

        Args:
            content: The blob payload
            original_filename: Client filename; only its extension is kept

        Returns:
            Reference to the stored blob.

        Raises:
            StoreIOError: If the blob could not be written.
        """
        stored_name = self._generate_name(original_filename)
        final_path = self.path_for(stored_name)
        tmp_path = final_path.with_name(f".{stored_name}{_TMP_SUFFIX}")

        try:
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(content)
            await aiofiles.os.replace(tmp_path, final_path)
        except OSError as e:
            logger.error(f"Failed to store blob {stored_name}: {e}")
            try:
                await aiofiles.os.remove(tmp_path)
            except FileNotFoundError:
                pass
            except OSError as cleanup_error:
                logger.warning(
                    f"Could not remove temporary file {tmp_path}: {cleanup_error}"
                )
            raise StoreIOError(f"Failed to store blob: {e}") from e

        logger.info(f"Stored blob {stored_name} ({len(content)} bytes)")
        return AttachmentRef(
            stored_name=stored_name,
            public_location=self.public_location(stored_name),
        )

    async def delete(self, stored_name: str) -> bool:
        """
        Delete a blob if it exists.

        Deleting a missing blob is not an error.

        Returns:
            True if a file was removed, False if there was nothing to remove.

        Raises:
            ReclaimFailure: If the file exists but could not be removed.
        """
        try:
            path = self.path_for(stored_name)
        except ValueError:
            logger.warning(f"Refusing to delete invalid blob name: {stored_name!r}")
            return False

        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            logger.debug(f"Blob already absent: {stored_name}")
            return False
        except OSError as e:
            logger.error(f"Failed to delete blob {stored_name}: {e}")
            raise ReclaimFailure(stored_name, str(e)) from e

        logger.info(f"Deleted blob {stored_name}")
        return True

    async def exists(self, stored_name: str) -> bool:
        try:
            path = self.path_for(stored_name)
        except ValueError:
            return False
        return await aiofiles.os.path.isfile(path)

    async def read(self, stored_name: str) -> bytes:
        """
        Read a blob's content.

        Raises:
            StoreIOError: If the blob is missing or unreadable.
        """
        try:
            path = self.path_for(stored_name)
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except (ValueError, OSError) as e:
            raise StoreIOError(f"Failed to read blob {stored_name}: {e}") from e
