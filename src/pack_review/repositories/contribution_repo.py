"""Data access and lifecycle rules for contributions."""
from __future__ import annotations

import io
import logging
import zipfile
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pack_review.core.errors import (
    DuplicateContentError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
)
from pack_review.core.identity import Actor, require_owner_or_admin
from pack_review.core.locks import content_hash_locks
from pack_review.models import Contribution, Poll, Resolution, Status, Texture, User
from pack_review.services.content_store import ContentStore, get_content_store
from pack_review.services.lifecycle import EDITABLE_STATUSES, Event, advance, can_advance

__all__ = ["BulkResult", "ContributionRepository", "UploadReport"]

logger = logging.getLogger(__name__)

ACTIVE_HASH_INDEX = "uq_contribution_active_hash"


@dataclass
class BulkResult:
    """Outcome of a best-effort bulk operation."""

    done: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


@dataclass
class UploadReport:
    """Outcome of a batch upload: created drafts and per-file duplicates."""

    created: list[Contribution] = field(default_factory=list)
    duplicates: list[DuplicateContentError] = field(default_factory=list)


def is_remote_locator(locator: str) -> bool:
    """Return True when ``locator`` points at the git host rather than local storage."""
    return locator.startswith(("http://", "https://"))


def is_active_hash_conflict(exc: IntegrityError) -> bool:
    """Return True when ``exc`` is a violation of the active content hash index."""
    # PostgreSQL reports the index name, SQLite the indexed column.
    message = str(exc.orig)
    return ACTIVE_HASH_INDEX in message or "contribution.hash" in message


class ContributionRepository:
    """Contribution CRUD plus the status transition rules.

    Operations called directly by users commit their own transaction. The
    helpers used by fork reconciliation (``archive``, ``restore``,
    ``create_reviewed``) only flush, so a whole
    reconciliation pass commits or rolls back as one unit.
    """

    def __init__(self, session: Session, store: ContentStore | None = None) -> None:
        self.session = session
        self.store = store or get_content_store()

    # Queries

    def get(self, contribution_id: str) -> Contribution:
        """Return a contribution by id or raise ``NotFoundError``."""
        contribution = self.session.get(Contribution, contribution_id)
        if contribution is None:
            raise NotFoundError(f"Contribution '{contribution_id}' not found")
        return contribution

    def find_active_by_hash(self, content_hash: str) -> Contribution | None:
        """Return the non-archived contribution using ``content_hash``, if any."""
        return self.session.scalars(
            select(Contribution).where(
                Contribution.hash == content_hash,
                Contribution.status != Status.ARCHIVED,
            )
        ).first()

    def list_by_status(self, owner_id: str, status: Status | None = None) -> list[Contribution]:
        """Return the contributions owned by ``owner_id``, optionally by status."""
        stmt = select(Contribution).where(Contribution.owner_id == owner_id)
        if status is not None:
            stmt = stmt.where(Contribution.status == status)
        return list(self.session.scalars(stmt.order_by(Contribution.created_at)))

    def list_active(self, owner_id: str, resolution: Resolution) -> list[Contribution]:
        """Return non-archived contributions for one owner and resolution."""
        return list(
            self.session.scalars(
                select(Contribution)
                .where(
                    Contribution.owner_id == owner_id,
                    Contribution.resolution == resolution,
                    Contribution.status != Status.ARCHIVED,
                )
                .order_by(Contribution.created_at)
            )
        )

    def known_hashes(self, owner_id: str, resolution: Resolution) -> dict[str, Contribution]:
        """Map every hash owned by ``owner_id`` for ``resolution`` to its record.

        Archived records are included; when a hash is both active and archived
        the active record wins.
        """
        known: dict[str, Contribution] = {}
        for contribution in self.session.scalars(
            select(Contribution).where(
                Contribution.owner_id == owner_id,
                Contribution.resolution == resolution,
            )
        ):
            current = known.get(contribution.hash)
            if current is None or current.status == Status.ARCHIVED:
                known[contribution.hash] = contribution
        return known

    def list_pending(self) -> list[Contribution]:
        """Return every contribution awaiting a council decision."""
        return list(
            self.session.scalars(
                select(Contribution)
                .where(Contribution.status == Status.PENDING)
                .order_by(Contribution.created_at)
            )
        )

    def _users(self, user_ids: Iterable[str]) -> set[User]:
        ids = set(user_ids)
        if not ids:
            return set()
        users = set(self.session.scalars(select(User).where(User.id.in_(ids))))
        missing = ids - {user.id for user in users}
        if missing:
            raise NotFoundError(f"Unknown co-author(s): {', '.join(sorted(missing))}")
        return users

    # Creation

    def create_draft(
        self,
        owner: Actor,
        data: bytes,
        filename: str,
        resolution: Resolution,
        co_author_ids: Iterable[str] = (),
    ) -> Contribution:
        """Store an uploaded file and record it as a DRAFT with an empty poll.

        Raises:
            DuplicateContentError: If an active contribution has the same bytes.
            StorageError: If the file cannot be written.
        """
        content_hash = self.store.hash(data)
        co_authors = {user for user in self._users(co_author_ids) if user.id != owner.id}

        # The lock closes the race inside this process; the partial unique
        # index closes it across processes.
        with content_hash_locks.hold(content_hash):
            if self.find_active_by_hash(content_hash) is not None:
                raise DuplicateContentError(content_hash, filename)

            locator, _ = self.store.store(data, filename, prefix=f"contributions/{owner.id}")
            contribution = Contribution(
                owner_id=owner.id,
                resolution=resolution,
                hash=content_hash,
                file=locator,
                filename=filename,
                status=Status.DRAFT,
                poll=Poll(),
            )
            contribution.co_authors = co_authors
            self.session.add(contribution)
            try:
                self.session.commit()
            except IntegrityError as exc:
                self.session.rollback()
                self.store.remove(locator)
                if not is_active_hash_conflict(exc):
                    raise
                raise DuplicateContentError(content_hash, filename) from exc

        logger.info("Created draft %s (%s) for %s", contribution.id, filename, owner.id)
        return contribution

    def create_drafts(
        self,
        owner: Actor,
        files: Iterable[tuple[str, bytes]],
        resolution: Resolution,
        co_author_ids: Iterable[str] = (),
    ) -> UploadReport:
        """Create one draft per ``(filename, data)``; duplicates are reported, not raised."""
        report = UploadReport()
        co_author_ids = list(co_author_ids)
        for filename, data in files:
            try:
                report.created.append(
                    self.create_draft(owner, data, filename, resolution, co_author_ids)
                )
            except DuplicateContentError as exc:
                report.duplicates.append(exc)
        return report

    # Edits

    def attach_target(
        self,
        contribution_id: str,
        actor: Actor,
        texture_id: str | None,
        co_author_ids: Iterable[str] = (),
        mcmeta: dict[str, Any] | None = None,
    ) -> Contribution:
        """Set the target texture, co-authors and mcmeta of an editable contribution.

        Editing always sends the contribution back to DRAFT and empties its
        poll: the edited file has to be reviewed again, even if it had been
        rejected before.

        Raises:
            Forbidden: If ``actor`` neither owns the contribution nor is an admin.
            InvalidTransitionError: If the contribution is not DRAFT or REJECTED.
            NotFoundError: If the contribution, texture or a co-author is unknown.
        """
        contribution = self.get(contribution_id)
        require_owner_or_admin(actor, contribution.owner_id)
        if contribution.status not in EDITABLE_STATUSES:
            raise InvalidTransitionError(
                f"Only draft or rejected contributions can be edited "
                f"(this one is {contribution.status.value.lower()})"
            )

        if texture_id is not None and self.session.get(Texture, texture_id) is None:
            raise NotFoundError(f"Texture '{texture_id}' not found")

        contribution.status = advance(contribution.status, Event.EDIT)
        contribution.texture_id = texture_id
        contribution.co_authors = {
            user for user in self._users(co_author_ids) if user.id != contribution.owner_id
        }
        contribution.mcmeta = mcmeta
        contribution.poll.clear()
        self.session.commit()
        return contribution

    def submit(self, ids: Iterable[str], owner_id: str) -> BulkResult:
        """Move owned DRAFT contributions with a target to PENDING.

        Ids that are unknown, not owned, not drafts or without a target are
        skipped silently and listed in the result.
        """
        result = BulkResult()
        for contribution_id in dict.fromkeys(ids):
            contribution = self.session.get(Contribution, contribution_id)
            if (
                contribution is None
                or contribution.owner_id != owner_id
                or contribution.texture_id is None
                or not can_advance(contribution.status, Event.SUBMIT)
            ):
                result.skipped.append(contribution_id)
                continue
            contribution.status = advance(contribution.status, Event.SUBMIT)
            result.done.append(contribution_id)

        self.session.commit()
        if result.done:
            logger.info("Submitted %d contribution(s) for %s", len(result.done), owner_id)
        return result

    def delete(self, ids: Iterable[str], owner_id: str) -> BulkResult:
        """Delete owned contributions and leave co-authored ones.

        Decided per id: when ``owner_id`` owns the contribution, its stored
        file and record are removed; when ``owner_id`` is only a co-author,
        that user is removed from the co-authors and the record is kept.
        """
        result = BulkResult()
        stored_files: list[str] = []
        for contribution_id in dict.fromkeys(ids):
            contribution = self.session.get(Contribution, contribution_id)
            if contribution is None:
                result.skipped.append(contribution_id)
                continue

            if contribution.owner_id == owner_id:
                if not is_remote_locator(contribution.file):
                    stored_files.append(contribution.file)
                self.session.delete(contribution)
            elif owner_id in contribution.co_author_ids:
                contribution.co_authors = {
                    user for user in contribution.co_authors if user.id != owner_id
                }
            else:
                result.skipped.append(contribution_id)
                continue
            result.done.append(contribution_id)

        self.session.commit()
        # Files go only once no committed record can point at them.
        for locator in stored_files:
            try:
                self.store.remove(locator)
            except StorageError as exc:
                logger.warning("Deleted contribution left its file behind: %s", exc)
        return result

    # Export

    def export_zip(self, owner_id: str) -> bytes:
        """Return a zip of ``owner_id``'s stored files laid out as ``STATUS/hash_filename``.

        Records whose file lives on the git host are left out.

        Raises:
            StorageError: If a stored file cannot be read.
        """
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for contribution in self.list_by_status(owner_id):
                if is_remote_locator(contribution.file):
                    continue
                archive.writestr(
                    f"{contribution.status.value}/{contribution.hash}_{contribution.filename}",
                    self.store.read(contribution.file),
                )
        return buffer.getvalue()

    # Reconciliation helpers (flush only)

    def archive(self, contributions: Iterable[Contribution]) -> list[Contribution]:
        """Mark ACCEPTED or REJECTED contributions ARCHIVED without committing."""
        archived = []
        for contribution in contributions:
            contribution.status = advance(contribution.status, Event.ARCHIVE)
            archived.append(contribution)
        self.session.flush()
        return archived

    def restore(self, contributions: Iterable[Contribution]) -> list[Contribution]:
        """Bring archived contributions back as ACCEPTED without committing."""
        restored = []
        for contribution in contributions:
            contribution.status = advance(contribution.status, Event.RESTORE)
            restored.append(contribution)
        self.session.flush()
        return restored

    def create_reviewed(
        self,
        owner_id: str,
        resolution: Resolution,
        content_hash: str,
        locator: str,
        filename: str,
    ) -> Contribution:
        """Record an already-reviewed file as ACCEPTED without committing."""
        contribution = Contribution(
            owner_id=owner_id,
            resolution=resolution,
            hash=content_hash,
            file=locator,
            filename=filename,
            status=Status.ACCEPTED,
            poll=Poll(),
        )
        self.session.add(contribution)
        self.session.flush()
        return contribution
