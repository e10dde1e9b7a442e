"""Domain exceptions raised by the review pipeline.

Services raise these; the API layer maps them to HTTP responses. Storage and
external-sync failures carry a generic ``public_detail``; internal paths and
host responses stay in the logs.
"""

from __future__ import annotations


class ReviewError(Exception):
    """Base class for all review pipeline failures."""

    public_detail: str | None = None

    @property
    def detail(self) -> str:
        """Return the message safe to show to the caller."""
        return self.public_detail or str(self) or self.__class__.__name__


class DuplicateContentError(ReviewError):
    """An active contribution already uses the same content hash."""

    def __init__(self, content_hash: str, filename: str | None = None) -> None:
        self.content_hash = content_hash
        self.filename = filename
        name = f"'{filename}'" if filename else "file"
        super().__init__(f"The {name} has already been submitted (hash {content_hash})")


class Forbidden(ReviewError):
    """The acting user lacks the role or ownership required."""


class NotFoundError(ReviewError):
    """A referenced record does not exist."""


class InvalidTransitionError(ReviewError, ValueError):
    """A status change is not permitted from the current status."""


class StorageError(ReviewError):
    """Reading or writing a binary object failed."""

    public_detail = "File storage is unavailable, please try again later"


class ExternalSyncError(ReviewError):
    """A call to the git hosting service failed."""

    public_detail = "Could not reach the git hosting service, please try again later"


class InvalidArchiveError(ReviewError, ValueError):
    """An uploaded mod archive is not a readable JAR/ZIP file."""
