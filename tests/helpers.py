"""Shared helpers for attachment lifecycle tests."""

# Smallest byte prefixes that identify the formats; content is never decoded.
JPEG_HEADER = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00"
PNG_HEADER = b"\x89PNG\r\n\x1a\n"


def make_image_bytes(header: bytes, size: int) -> bytes:
    """Build a payload of exactly `size` bytes starting with a format header."""
    return header + b"\x00" * (size - len(header))
