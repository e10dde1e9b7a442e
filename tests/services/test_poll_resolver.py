"""Tests for council voting and poll finalisation."""

import threading
from collections.abc import Callable

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from pack_review.core.errors import Forbidden, NotFoundError
from pack_review.core.identity import Actor
from pack_review.db.session import Base
from pack_review.models import Contribution, Poll, Resolution, Status, User, UserRole
from pack_review.services.poll_resolver import PollResolver, PollResults, VoteChoice, decide


def _pending(owner_id: str, content_hash: str = "a" * 40) -> Contribution:
    return Contribution(
        owner_id=owner_id,
        resolution=Resolution.x32,
        hash=content_hash,
        file="contributions/f.png",
        filename="f.png",
        status=Status.PENDING,
        poll=Poll(),
    )


@pytest.fixture
def pending(db_session: Session, owner: User) -> Contribution:
    contribution = _pending(owner.id)
    db_session.add(contribution)
    db_session.commit()
    return contribution


@pytest.fixture
def resolver(db_session: Session) -> PollResolver:
    return PollResolver(db_session)


def _actor(user: User) -> Actor:
    return Actor.from_user(user)


class TestDecide:
    def test_waits_for_the_whole_electorate(self) -> None:
        assert decide(PollResults(upvotes=2, downvotes=1), 4) is None

    def test_tie_is_accepted(self) -> None:
        assert decide(PollResults(upvotes=2, downvotes=2), 4) == Status.ACCEPTED

    def test_majority_down_is_rejected(self) -> None:
        assert decide(PollResults(upvotes=1, downvotes=3), 4) == Status.REJECTED

    def test_empty_electorate_never_decides(self) -> None:
        assert decide(PollResults(upvotes=0, downvotes=0), 0) is None


def test_tie_of_two_against_two_accepts(
    resolver: PollResolver, pending: Contribution, council: list[User]
) -> None:
    assert resolver.vote(pending.id, _actor(council[0]), VoteChoice.UP) == Status.PENDING
    assert resolver.vote(pending.id, _actor(council[1]), VoteChoice.UP) == Status.PENDING
    assert resolver.vote(pending.id, _actor(council[2]), VoteChoice.DOWN) == Status.PENDING
    assert resolver.vote(pending.id, _actor(council[3]), VoteChoice.DOWN) == Status.ACCEPTED

    results = resolver.results(pending.poll_id)
    assert (results.upvotes, results.downvotes) == (2, 2)


def test_majority_down_rejects(
    resolver: PollResolver, pending: Contribution, council: list[User]
) -> None:
    resolver.vote(pending.id, _actor(council[0]), VoteChoice.UP)
    for member in council[1:]:
        status = resolver.vote(pending.id, _actor(member), VoteChoice.DOWN)

    assert status == Status.REJECTED


def test_last_vote_wins(resolver: PollResolver, pending: Contribution, council: list[User]) -> None:
    voter = _actor(council[0])
    resolver.vote(pending.id, voter, VoteChoice.UP)
    resolver.vote(pending.id, voter, VoteChoice.DOWN)

    results = resolver.results(pending.poll_id)
    assert (results.upvotes, results.downvotes) == (0, 1)


def test_none_withdraws_the_vote(
    resolver: PollResolver, pending: Contribution, council: list[User]
) -> None:
    voter = _actor(council[0])
    resolver.vote(pending.id, voter, VoteChoice.UP)
    resolver.vote(pending.id, voter, VoteChoice.NONE)

    results = resolver.results(pending.poll_id)
    assert (results.upvotes, results.downvotes) == (0, 0)


def test_finalised_contribution_is_left_unchanged(
    resolver: PollResolver, pending: Contribution, council: list[User], db_session: Session
) -> None:
    for member in council:
        resolver.vote(pending.id, _actor(member), VoteChoice.UP)
    assert resolver.finalize(pending.id) == Status.ACCEPTED

    # Another finalisation or a late vote changes nothing.
    assert resolver.finalize(pending.id) == Status.ACCEPTED
    assert resolver.try_finalize(resolver.session.get(Contribution, pending.id), 4) is False
    assert resolver.vote(pending.id, _actor(council[0]), VoteChoice.DOWN) == Status.ACCEPTED

    db_session.expire_all()
    results = resolver.results(pending.poll_id)
    assert (results.upvotes, results.downvotes) == (4, 0)


@pytest.mark.parametrize("role", [UserRole.USER, UserRole.ADMIN])
def test_only_council_members_vote(
    resolver: PollResolver,
    pending: Contribution,
    council: list[User],
    make_user: Callable[..., User],
    role: UserRole,
) -> None:
    outsider = make_user(role=role)

    with pytest.raises(Forbidden):
        resolver.vote(pending.id, _actor(outsider), VoteChoice.UP)

    results = resolver.results(pending.poll_id)
    assert results.total == 0


def test_vote_on_unknown_contribution(resolver: PollResolver, council: list[User]) -> None:
    with pytest.raises(NotFoundError):
        resolver.vote("missing", _actor(council[0]), VoteChoice.UP)


def test_vote_on_draft_is_a_no_op(
    resolver: PollResolver, pending: Contribution, council: list[User], db_session: Session
) -> None:
    pending.status = Status.DRAFT
    db_session.commit()

    assert resolver.vote(pending.id, _actor(council[0]), VoteChoice.UP) == Status.DRAFT
    assert resolver.results(pending.poll_id).total == 0


def test_empty_electorate_keeps_poll_pending(
    resolver: PollResolver, pending: Contribution
) -> None:
    assert resolver.electorate_size() == 0
    assert resolver.finalize(pending.id) == Status.PENDING


def test_electorate_is_read_at_finalise_time(
    resolver: PollResolver, pending: Contribution, council: list[User], db_session: Session
) -> None:
    resolver.vote(pending.id, _actor(council[0]), VoteChoice.UP)
    resolver.vote(pending.id, _actor(council[1]), VoteChoice.UP)
    assert resolver.finalize(pending.id) == Status.PENDING

    # Two members leave the council; the two votes cast now cover it.
    for member in council[2:]:
        member.role = UserRole.USER
    db_session.commit()

    assert resolver.electorate_size() == 2
    assert resolver.finalize(pending.id) == Status.ACCEPTED


class _CountingResolver(PollResolver):
    finalisations: list[str] = []
    guard = threading.Lock()

    def try_finalize(self, contribution: Contribution, electorate_size: int) -> bool:
        changed = super().try_finalize(contribution, electorate_size)
        if changed:
            with self.guard:
                self.finalisations.append(contribution.id)
        return changed


def test_concurrent_final_votes_finalise_once(tmp_path) -> None:
    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False)
    _CountingResolver.finalisations = []

    try:
        with factory() as session:
            owner = User(name="owner", role=UserRole.USER)
            voters = [User(name=f"council-{i}", role=UserRole.COUNCIL) for i in range(2)]
            session.add_all([owner, *voters])
            session.flush()
            contribution = _pending(owner.id)
            session.add(contribution)
            session.commit()
            contribution_id = contribution.id
            voter_ids = [voter.id for voter in voters]

        barrier = threading.Barrier(2)
        statuses: list[Status] = []
        errors: list[Exception] = []

        def cast(voter_id: str, choice: VoteChoice) -> None:
            barrier.wait()
            try:
                with factory() as session:
                    actor = Actor(id=voter_id, role=UserRole.COUNCIL)
                    statuses.append(_CountingResolver(session).vote(contribution_id, actor, choice))
            except Exception as exc:  # surfaced by the assertion below
                errors.append(exc)

        threads = [
            threading.Thread(target=cast, args=(voter_ids[0], VoteChoice.UP)),
            threading.Thread(target=cast, args=(voter_ids[1], VoteChoice.DOWN)),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert errors == []
        assert _CountingResolver.finalisations == [contribution_id]
        assert Status.ACCEPTED in statuses

        with factory() as session:
            stored = session.get(Contribution, contribution_id)
            assert stored.status == Status.ACCEPTED
            assert (stored.poll.upvotes, stored.poll.downvotes) == (1, 1)
    finally:
        engine.dispose()
