# tests/test_lifecycle.py
"""Tests for the contribution status state machine."""

import pytest

from pack_review.core.errors import InvalidTransitionError
from pack_review.models import Status
from pack_review.services.lifecycle import Event, advance, can_advance


@pytest.mark.parametrize(
    ("status", "event", "expected"),
    [
        (Status.DRAFT, Event.SUBMIT, Status.PENDING),
        (Status.DRAFT, Event.EDIT, Status.DRAFT),
        (Status.REJECTED, Event.EDIT, Status.DRAFT),
        (Status.PENDING, Event.ACCEPT, Status.ACCEPTED),
        (Status.PENDING, Event.REJECT, Status.REJECTED),
        (Status.ACCEPTED, Event.ARCHIVE, Status.ARCHIVED),
        (Status.REJECTED, Event.ARCHIVE, Status.ARCHIVED),
        (Status.ARCHIVED, Event.RESTORE, Status.ACCEPTED),
    ],
)
def test_allowed_transitions(status: Status, event: Event, expected: Status) -> None:
    assert can_advance(status, event)
    assert advance(status, event) == expected


@pytest.mark.parametrize(
    ("status", "event"),
    [
        (Status.PENDING, Event.EDIT),
        (Status.ACCEPTED, Event.EDIT),
        (Status.PENDING, Event.SUBMIT),
        (Status.DRAFT, Event.ACCEPT),
        (Status.ACCEPTED, Event.REJECT),
        (Status.DRAFT, Event.ARCHIVE),
        (Status.PENDING, Event.ARCHIVE),
        (Status.ACCEPTED, Event.RESTORE),
    ],
)
def test_illegal_transitions_raise(status: Status, event: Event) -> None:
    assert not can_advance(status, event)
    with pytest.raises(InvalidTransitionError):
        advance(status, event)


def test_invalid_transition_is_a_value_error() -> None:
    with pytest.raises(ValueError, match="Cannot submit a contribution that is accepted"):
        advance(Status.ACCEPTED, Event.SUBMIT)
