"""Shared API dependencies for authentication and error mapping."""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from pack_review.core.errors import (
    DuplicateContentError,
    ExternalSyncError,
    Forbidden,
    InvalidArchiveError,
    InvalidTransitionError,
    NotFoundError,
    ReviewError,
    StorageError,
)
from pack_review.core.identity import Actor
from pack_review.core.security import decode_subject
from pack_review.db.session import get_db
from pack_review.models import User

logger = logging.getLogger(__name__)

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from JWT token.

    Raises:
        HTTPException: If token is invalid or user not found
    """
    subject = decode_subject(credentials.credentials)
    if subject is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )

    user = db.get(User, subject)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]


def get_current_actor(user: CurrentUserDep) -> Actor:
    """Return the authenticated user as an :class:`Actor`."""
    return Actor.from_user(user)


CurrentActorDep = Annotated[Actor, Depends(get_current_actor)]


_STATUS_BY_ERROR: tuple[tuple[type[ReviewError], int], ...] = (
    (DuplicateContentError, status.HTTP_409_CONFLICT),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (Forbidden, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidArchiveError, status.HTTP_400_BAD_REQUEST),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ExternalSyncError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def to_http_exception(exc: ReviewError) -> HTTPException:
    """Map a domain error to the HTTP response the client sees.

    Storage and git host failures only expose a generic message; the real
    cause is logged.
    """
    if isinstance(exc, StorageError | ExternalSyncError):
        logger.warning("%s: %s", type(exc).__name__, exc)

    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=exc.detail)
    logger.error("Unmapped review error: %s", exc, exc_info=exc)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error",
    )
