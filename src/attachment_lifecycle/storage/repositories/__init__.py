"""Storage repository implementations."""

from .attachment_pointers import AttachmentPointersRepository
from .base import BaseRepository

__all__ = [
    "AttachmentPointersRepository",
    "BaseRepository",
]
