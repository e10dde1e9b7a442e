"""Keep contribution records in step with each contributor's fork.

The fork is an untrusted, eventually consistent mirror. A pass first reads
the whole branch; only when that succeeds are local records changed, and all
changes of a pass are committed together.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pack_review.core.errors import ExternalSyncError, NotFoundError
from pack_review.core.locks import AsyncKeyedLock
from pack_review.db.session import SessionLocal
from pack_review.models import Contribution, Resolution, Status, User
from pack_review.repositories.contribution_repo import ContributionRepository
from pack_review.services.content_store import ContentStore
from pack_review.services.git_gateway import (
    ExternalFileRecord,
    ForkOwner,
    GitForkGateway,
    get_git_gateway,
)
from pack_review.services.lifecycle import ARCHIVABLE_STATUSES

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    """What one reconciliation pass changed, plus the resulting active hashes."""

    archived: list[str] = field(default_factory=list)
    created: list[str] = field(default_factory=list)
    restored: list[str] = field(default_factory=list)
    active: set[str] = field(default_factory=set)

    @property
    def changed(self) -> bool:
        return bool(self.archived or self.created or self.restored)


@dataclass
class _Plan:
    archive: list[Contribution] = field(default_factory=list)
    restore: list[Contribution] = field(default_factory=list)
    create: list[ExternalFileRecord] = field(default_factory=list)


class ForkReconciler:
    """Diff a fork branch against local contributions and apply the difference."""

    def __init__(
        self,
        gateway: GitForkGateway | None = None,
        session_factory: Callable[[], Session] = SessionLocal,
        store: ContentStore | None = None,
    ) -> None:
        self.gateway = gateway or get_git_gateway()
        self.session_factory = session_factory
        self.store = store
        self._locks = AsyncKeyedLock()

    async def reconcile(self, owner_id: str, resolution: Resolution) -> ReconcileReport:
        """Run one pass for ``owner_id``'s ``resolution`` branch.

        Passes for the same owner and resolution never interleave.

        Raises:
            ExternalSyncError: If the branch cannot be read or a concurrent change
                conflicts with the pass; nothing is changed.
            NotFoundError: If the user is unknown or has no linked fork account.
        """
        async with self._locks.get((owner_id, resolution)):
            fork_owner = await asyncio.to_thread(self._fork_owner, owner_id)
            records = await self.gateway.list_tree(fork_owner, resolution.value)
            report = await asyncio.to_thread(self._apply, owner_id, resolution, records)

        if report.changed:
            logger.info(
                "Reconciled %s/%s: %d archived, %d created, %d restored",
                owner_id,
                resolution.value,
                len(report.archived),
                len(report.created),
                len(report.restored),
            )
        return report

    def _fork_owner(self, owner_id: str) -> ForkOwner:
        with self.session_factory() as session:
            user = session.get(User, owner_id)
            if user is None:
                raise NotFoundError(f"User '{owner_id}' not found")
            if not user.github_login:
                raise NotFoundError(f"User '{owner_id}' has no linked GitHub account")
            return ForkOwner(login=user.github_login, token=user.github_token)

    def _plan(
        self,
        repo: ContributionRepository,
        owner_id: str,
        resolution: Resolution,
        records: list[ExternalFileRecord],
    ) -> _Plan:
        # Matching is by content hash only, so renames and moves are not changes.
        external: dict[str, ExternalFileRecord] = {}
        for record in records:
            external.setdefault(record.hash, record)

        known = repo.known_hashes(owner_id, resolution)
        plan = _Plan()

        for content_hash, contribution in known.items():
            if content_hash not in external:
                if contribution.status in ARCHIVABLE_STATUSES:
                    plan.archive.append(contribution)
            elif contribution.status == Status.ARCHIVED:
                if self._claimed_elsewhere(repo, content_hash, owner_id):
                    continue
                plan.restore.append(contribution)

        for content_hash, record in external.items():
            if content_hash in known:
                continue
            if self._claimed_elsewhere(repo, content_hash, owner_id):
                continue
            plan.create.append(record)
        return plan

    @staticmethod
    def _claimed_elsewhere(repo: ContributionRepository, content_hash: str, owner_id: str) -> bool:
        other = repo.find_active_by_hash(content_hash)
        if other is None:
            return False
        logger.warning(
            "Skipping %s from %s's fork: already active as contribution %s",
            content_hash,
            owner_id,
            other.id,
        )
        return True

    def _apply(
        self,
        owner_id: str,
        resolution: Resolution,
        records: list[ExternalFileRecord],
    ) -> ReconcileReport:
        with self.session_factory() as session:
            repo = ContributionRepository(session, self.store)
            report = ReconcileReport()
            try:
                plan = self._plan(repo, owner_id, resolution, records)
                report.archived = [c.id for c in repo.archive(plan.archive)]
                report.restored = [c.id for c in repo.restore(plan.restore)]
                for record in plan.create:
                    contribution = repo.create_reviewed(
                        owner_id,
                        resolution,
                        record.hash,
                        record.url,
                        record.filename,
                    )
                    report.created.append(contribution.id)
                session.commit()
            except IntegrityError as e:
                session.rollback()
                logger.warning(
                    "Reconciliation of %s/%s conflicted with a concurrent change: %s",
                    owner_id,
                    resolution.value,
                    e.orig,
                )
                raise ExternalSyncError(
                    f"Reconciliation of {resolution.value} was interrupted by a concurrent change"
                ) from e
            except Exception:
                session.rollback()
                raise

            report.active = {c.hash for c in repo.list_active(owner_id, resolution)}
            return report


_reconciler: ForkReconciler | None = None


def get_fork_reconciler() -> ForkReconciler:
    """Return the process-wide reconciler so per-key serialisation is shared."""
    global _reconciler
    if _reconciler is None:
        _reconciler = ForkReconciler()
    return _reconciler
