"""Council voting on pending contributions."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pack_review.core.errors import Forbidden, NotFoundError
from pack_review.core.identity import Actor
from pack_review.core.locks import contribution_locks
from pack_review.models import Contribution, Poll, Status, User, UserRole
from pack_review.services.lifecycle import Event, advance

logger = logging.getLogger(__name__)


class VoteChoice(str, enum.Enum):
    """A council member's opinion; ``none`` withdraws a previous vote."""

    UP = "up"
    DOWN = "down"
    NONE = "none"


@dataclass(frozen=True)
class PollResults:
    """Vote tallies of one poll."""

    upvotes: int
    downvotes: int

    @property
    def total(self) -> int:
        return self.upvotes + self.downvotes


def decide(results: PollResults, electorate_size: int) -> Status | None:
    """Return the final status once every elector has voted, else None.

    Ties are accepted. An empty electorate never decides anything: with no
    council members a poll would otherwise be accepted with zero votes.
    """
    if electorate_size <= 0 or results.total != electorate_size:
        return None
    return Status.ACCEPTED if results.upvotes >= results.downvotes else Status.REJECTED


class PollResolver:
    """Cast council votes and finalise polls once the electorate has spoken."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def electorate_size(self) -> int:
        """Count council members right now; the threshold is never cached."""
        return self.session.scalar(
            select(func.count()).select_from(User).where(User.role == UserRole.COUNCIL)
        ) or 0

    def results(self, poll_id: str) -> PollResults:
        poll = self.session.get(Poll, poll_id)
        if poll is None:
            raise NotFoundError(f"Poll '{poll_id}' not found")
        return PollResults(upvotes=poll.upvotes, downvotes=poll.downvotes)

    def _load_for_update(self, contribution_id: str) -> Contribution:
        # FOR UPDATE is ignored by SQLite; the keyed lock covers that case.
        contribution = self.session.scalars(
            select(Contribution)
            .where(Contribution.id == contribution_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if contribution is None:
            raise NotFoundError(f"Contribution '{contribution_id}' not found")
        return contribution

    def cast_vote(self, contribution: Contribution, voter: User, choice: VoteChoice) -> None:
        """Record ``voter``'s choice, replacing any earlier one. Does not commit."""
        poll = contribution.poll
        poll.upvoters.discard(voter)
        poll.downvoters.discard(voter)
        if choice == VoteChoice.UP:
            poll.upvoters.add(voter)
        elif choice == VoteChoice.DOWN:
            poll.downvoters.add(voter)

    def try_finalize(self, contribution: Contribution, electorate_size: int) -> bool:
        """Finalise a PENDING contribution if every elector has voted. Does not commit.

        Returns True if the status changed. Calling it again on a finalised
        contribution changes nothing.
        """
        if contribution.status != Status.PENDING:
            return False
        poll = contribution.poll
        outcome = decide(PollResults(poll.upvotes, poll.downvotes), electorate_size)
        if outcome is None:
            return False

        event = Event.ACCEPT if outcome == Status.ACCEPTED else Event.REJECT
        contribution.status = advance(contribution.status, event)
        logger.info(
            "Contribution %s %s (%d up / %d down, electorate %d)",
            contribution.id,
            contribution.status.value.lower(),
            poll.upvotes,
            poll.downvotes,
            electorate_size,
        )
        return True

    def finalize(self, contribution_id: str) -> Status:
        """Try to finalise one contribution against the live electorate and commit."""
        with contribution_locks.hold(contribution_id):
            contribution = self._load_for_update(contribution_id)
            self.try_finalize(contribution, self.electorate_size())
            self.session.commit()
            return contribution.status

    def vote(self, contribution_id: str, actor: Actor, choice: VoteChoice) -> Status:
        """Cast a vote and finalise if it completes the electorate, atomically.

        Returns the contribution status after the vote. Voting on a
        contribution that is no longer PENDING is a no-op.

        Raises:
            Forbidden: If ``actor`` is not a council member.
            NotFoundError: If the contribution does not exist.
        """
        if actor.role != UserRole.COUNCIL:
            raise Forbidden("Only council members can vote")

        with contribution_locks.hold(contribution_id):
            try:
                contribution = self._load_for_update(contribution_id)
                if contribution.status != Status.PENDING:
                    self.session.rollback()
                    return contribution.status

                voter = self.session.get(User, actor.id)
                if voter is None:
                    raise NotFoundError(f"User '{actor.id}' not found")

                self.cast_vote(contribution, voter, choice)
                self.session.flush()
                self.try_finalize(contribution, self.electorate_size())
                self.session.commit()
            except Exception:
                self.session.rollback()
                raise
            return contribution.status
