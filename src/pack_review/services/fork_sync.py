"""Background work against the git host.

The ForkSyncWorker creates requested forks and periodically reconciles every
linked contributor's fork branches with their contribution records.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pack_review.core.errors import ExternalSyncError, NotFoundError, ReviewError
from pack_review.core.settings import settings
from pack_review.db.session import SessionLocal
from pack_review.models import (
    FORK_JOB_FAILED,
    FORK_JOB_PENDING,
    FORK_JOB_READY,
    ForkJob,
    Resolution,
    User,
)
from pack_review.services.fork_reconciler import ForkReconciler, get_fork_reconciler
from pack_review.services.git_gateway import ForkOwner, GitForkGateway, get_git_gateway

logger = logging.getLogger(__name__)

# A fork job is marked failed after this many unsuccessful attempts.
FORK_JOB_MAX_ATTEMPTS = 3


def enqueue_fork(session: Session, owner_id: str) -> ForkJob:
    """Request a fork for ``owner_id``; an existing job is reset to pending.

    Raises:
        NotFoundError: If the user has no linked GitHub account.
    """
    user = session.get(User, owner_id)
    if user is None or not user.github_login:
        raise NotFoundError("A linked GitHub account is required to create a fork")

    job = session.get(ForkJob, owner_id)
    if job is None:
        job = ForkJob(owner_id=owner_id)
        session.add(job)
    job.state = FORK_JOB_PENDING
    job.attempts = 0
    job.error = None
    session.commit()
    return job


class ForkSyncWorker:
    """Runs fork creation jobs and periodic reconciliation on the event loop.

    Database work runs in worker threads; calls to the git host stay on the
    loop.
    """

    def __init__(
        self,
        gateway: GitForkGateway | None = None,
        reconciler: ForkReconciler | None = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ) -> None:
        self.gateway = gateway or get_git_gateway()
        self.reconciler = reconciler or get_fork_reconciler()
        self.session_factory = session_factory
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()
        self._last_reconcile = 0.0

    async def start(self) -> None:
        """Start the background loop."""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background loop and wait for the current tick to finish."""
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        interval = max(0.1, float(settings.fork_poll_interval_seconds))
        sync_interval = max(interval, float(settings.fork_sync_interval_seconds))

        while not self._stopping.is_set():
            try:
                await self.process_fork_jobs()
                if time.monotonic() - self._last_reconcile >= sync_interval:
                    await self.reconcile_all()
                    self._last_reconcile = time.monotonic()
            except ReviewError as e:
                logger.warning("ForkSyncWorker encountered %s: %s", type(e).__name__, e)
                await self._sleep(min(interval * 4, 30.0))
                continue
            except (OSError, ConnectionError, TimeoutError) as e:
                logger.warning("ForkSyncWorker encountered network error: %s", e)
                await self._sleep(min(interval * 4, 30.0))
                continue
            except SQLAlchemyError as e:
                logger.error("ForkSyncWorker encountered database error: %s", e, exc_info=True)
                await self._sleep(min(interval * 4, 30.0))
                continue
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                logger.error("ForkSyncWorker encountered data processing error: %s", e, exc_info=True)
                await self._sleep(min(interval * 4, 30.0))
                continue

            await self._sleep(interval)

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    # Fork creation

    def _pending_jobs(self) -> list[tuple[str, ForkOwner]]:
        with self.session_factory() as db:
            rows = db.execute(
                select(ForkJob.owner_id, User.github_login, User.github_token)
                .join(User, User.id == ForkJob.owner_id)
                .where(ForkJob.state == FORK_JOB_PENDING)
                .order_by(ForkJob.updated_at)
            ).all()
        return [
            (owner_id, ForkOwner(login=login, token=token))
            for owner_id, login, token in rows
            if login
        ]

    def _record_attempt(self, owner_id: str, error: str | None) -> tuple[str, int] | None:
        with self.session_factory() as db:
            job = db.get(ForkJob, owner_id)
            if job is None:
                return None
            job.attempts += 1
            if error is None:
                job.state = FORK_JOB_READY
                job.error = None
            else:
                job.error = error
                if job.attempts >= FORK_JOB_MAX_ATTEMPTS:
                    job.state = FORK_JOB_FAILED
            db.commit()
            return job.state, job.attempts

    async def process_fork_jobs(self) -> int:
        """Try every pending fork job once; return how many became ready.

        Any failure of one job counts as an attempt for that job and does not
        stop the jobs queued after it.
        """
        ready = 0
        for owner_id, owner in await asyncio.to_thread(self._pending_jobs):
            try:
                await self.gateway.create_fork(owner)
            except ExternalSyncError as e:
                await self._fork_failed(owner_id, str(e))
                continue
            except Exception as e:
                logger.error("Unexpected error creating fork for %s", owner_id, exc_info=True)
                await self._fork_failed(owner_id, f"{type(e).__name__}: {e}")
                continue
            await asyncio.to_thread(self._record_attempt, owner_id, None)
            ready += 1
        return ready

    async def _fork_failed(self, owner_id: str, error: str) -> None:
        outcome = await asyncio.to_thread(self._record_attempt, owner_id, error)
        if outcome is not None and outcome[0] == FORK_JOB_FAILED:
            logger.error("Giving up on fork for %s after %d attempts: %s", owner_id, outcome[1], error)
        else:
            logger.warning("Fork creation for %s failed, will retry: %s", owner_id, error)

    # Reconciliation

    def _linked_users(self) -> list[str]:
        with self.session_factory() as db:
            return list(
                db.scalars(
                    select(User.id)
                    .outerjoin(ForkJob, ForkJob.owner_id == User.id)
                    .where(
                        User.github_login.is_not(None),
                        (ForkJob.state.is_(None)) | (ForkJob.state == FORK_JOB_READY),
                    )
                    .order_by(User.id)
                )
            )

    async def reconcile_all(self) -> int:
        """Reconcile every linked user's branches; return how many passes failed.

        A failing pass is logged and leaves that user's records untouched;
        the other users are still processed.
        """
        failures = 0
        for owner_id in await asyncio.to_thread(self._linked_users):
            for resolution in Resolution:
                try:
                    await self.reconciler.reconcile(owner_id, resolution)
                except ReviewError as e:
                    failures += 1
                    logger.warning(
                        "Reconciliation of %s/%s failed: %s", owner_id, resolution.value, e
                    )
                except SQLAlchemyError as e:
                    failures += 1
                    logger.error(
                        "Reconciliation of %s/%s hit a database error: %s",
                        owner_id,
                        resolution.value,
                        e,
                        exc_info=True,
                    )
        return failures


_worker: ForkSyncWorker | None = None


def get_fork_sync_worker() -> ForkSyncWorker:
    global _worker
    if _worker is None:
        _worker = ForkSyncWorker()
    return _worker
