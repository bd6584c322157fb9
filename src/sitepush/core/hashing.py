"""Content digests used for change detection."""

from __future__ import annotations

import hashlib
from pathlib import Path

READ_BLOCK_SIZE = 64 * 1024


def compute_md5(path: Path | str) -> str:
    """Compute the MD5 digest of a file.

    Reads the file in fixed-size blocks.

    Args:
        path: Path to the file to hash.

    Returns:
        Lowercase hexadecimal MD5 digest (32 characters).
    """
    hasher = hashlib.md5()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(READ_BLOCK_SIZE), b""):
            hasher.update(block)
    return hasher.hexdigest()


def md5_bytes(data: bytes) -> str:
    """Return the hex MD5 digest of in-memory data."""
    return hashlib.md5(data).hexdigest()


def normalize_etag(etag: str | None) -> str | None:
    """Strip surrounding quotes from an ETag and lowercase it."""
    if etag is None:
        return None
    return etag.replace('"', "").strip().lower()
