"""Content hashing helpers."""

from __future__ import annotations

import hashlib


def git_blob_hexdigest(data: bytes) -> str:
    """Return the git object id of ``data`` stored as a blob.

    This is the SHA-1 git assigns to the file, so a hash computed on upload
    equals the ``sha`` the git host reports for the same bytes in a tree.
    """
    header = f"blob {len(data)}\0".encode("ascii")
    return hashlib.sha1(header + data, usedforsecurity=False).hexdigest()
