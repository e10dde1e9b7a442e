"""Content-addressed hashing and filesystem storage for uploaded files."""

from __future__ import annotations

import logging
import re
from pathlib import Path, PurePosixPath
from uuid import uuid4

from pack_review.core.errors import StorageError
from pack_review.core.settings import settings
from pack_review.utils.hash import git_blob_hexdigest

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_name(name: str) -> str:
    base = PurePosixPath(name.replace("\\", "/")).name
    cleaned = _UNSAFE_CHARS.sub("_", base).strip("._")
    return cleaned or "file"


class ContentStore:
    """Store binaries under a root directory and hash their bytes.

    The store does not deduplicate: the same bytes may legitimately back a
    contribution and an extracted texture, so each caller applies its own
    dedup policy before calling :meth:`store`.
    """

    def __init__(self, root: Path | None = None) -> None:
        self.root = Path(root or settings.storage_root)

    @staticmethod
    def hash(data: bytes) -> str:
        """Return the content hash of ``data``; the filename plays no part."""
        return git_blob_hexdigest(data)

    def _resolve(self, locator: str) -> Path:
        path = (self.root / locator).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise StorageError(f"Locator escapes the storage root: {locator}")
        return path

    def store(self, data: bytes, suggested_name: str, prefix: str = "") -> tuple[str, str]:
        """Write ``data`` and return ``(locator, hash)``.

        Args:
            data: Raw file bytes.
            suggested_name: Original filename, sanitised and kept as a suffix.
            prefix: Sub-directory below the storage root, e.g. ``contributions/<owner>``.

        Raises:
            StorageError: If the file cannot be written.
        """
        locator = str(PurePosixPath(prefix.strip("/")) / f"{uuid4().hex}_{_safe_name(suggested_name)}")
        path = self._resolve(locator)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            logger.error("Failed to write %s: %s", path, exc)
            raise StorageError(f"Could not store {suggested_name}: {exc}") from exc
        return locator, self.hash(data)

    def read(self, locator: str) -> bytes:
        """Return the bytes stored at ``locator``."""
        try:
            return self._resolve(locator).read_bytes()
        except OSError as exc:
            raise StorageError(f"Could not read {locator}: {exc}") from exc

    def remove(self, locator: str) -> None:
        """Delete the object at ``locator``; a missing object counts as removed."""
        path = self._resolve(locator)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Could not remove {locator}: {exc}") from exc


_content_store: ContentStore | None = None


def get_content_store() -> ContentStore:
    """Return the shared content store rooted at ``settings.storage_root``."""
    global _content_store
    if _content_store is None:
        _content_store = ContentStore()
    return _content_store
