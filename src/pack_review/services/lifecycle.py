"""Status state machine for contributions.

Every status change in the pipeline goes through :func:`advance`, so the
allowed transitions live in one table::

    DRAFT --submit--> PENDING --accept--> ACCEPTED
                              --reject--> REJECTED
    DRAFT | REJECTED --edit--> DRAFT
    ACCEPTED | REJECTED --archive--> ARCHIVED
    ARCHIVED --restore--> ACCEPTED

Only fork reconciliation archives or restores.
"""

from __future__ import annotations

import enum

from pack_review.core.errors import InvalidTransitionError
from pack_review.models.contribution import Status


class Event(str, enum.Enum):
    """Things that can happen to a contribution."""

    SUBMIT = "submit"
    EDIT = "edit"
    ACCEPT = "accept"
    REJECT = "reject"
    ARCHIVE = "archive"
    RESTORE = "restore"


_TRANSITIONS: dict[tuple[Status, Event], Status] = {
    (Status.DRAFT, Event.SUBMIT): Status.PENDING,
    (Status.DRAFT, Event.EDIT): Status.DRAFT,
    (Status.REJECTED, Event.EDIT): Status.DRAFT,
    (Status.PENDING, Event.ACCEPT): Status.ACCEPTED,
    (Status.PENDING, Event.REJECT): Status.REJECTED,
    (Status.ACCEPTED, Event.ARCHIVE): Status.ARCHIVED,
    (Status.REJECTED, Event.ARCHIVE): Status.ARCHIVED,
    (Status.ARCHIVED, Event.RESTORE): Status.ACCEPTED,
}

EDITABLE_STATUSES = frozenset({Status.DRAFT, Status.REJECTED})
ARCHIVABLE_STATUSES = frozenset({Status.ACCEPTED, Status.REJECTED})


def can_advance(status: Status, event: Event) -> bool:
    """Return True if ``event`` is allowed while in ``status``."""
    return (status, event) in _TRANSITIONS


def advance(status: Status, event: Event) -> Status:
    """Return the status reached by applying ``event`` to ``status``.

    Raises:
        InvalidTransitionError: If the transition is not allowed.
    """
    try:
        return _TRANSITIONS[(status, event)]
    except KeyError:
        raise InvalidTransitionError(
            f"Cannot {event.value} a contribution that is {status.value.lower()}"
        ) from None
