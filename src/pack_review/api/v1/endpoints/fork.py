# src/pack_review/api/v1/endpoints/fork.py
"""Endpoints managing the caller's fork and its reconciliation."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status

from pack_review.core.errors import NotFoundError, ReviewError
from pack_review.models import ForkJob, Resolution, User
from pack_review.schemas.fork import ForkStatusResponse, ReconcileReportResponse
from pack_review.services.fork_reconciler import ForkReconciler, get_fork_reconciler
from pack_review.services.fork_sync import enqueue_fork
from pack_review.services.git_gateway import ForkOwner, GitForkGateway, get_git_gateway

from ..dependencies import CurrentUserDep, SessionDep, to_http_exception

router = APIRouter(prefix="/fork", tags=["fork"])
logger = logging.getLogger(__name__)


def get_git_gateway_dep() -> GitForkGateway:
    """Return the shared git gateway."""
    return get_git_gateway()


def get_fork_reconciler_dep() -> ForkReconciler:
    """Return the shared fork reconciler."""
    return get_fork_reconciler()


GatewayDep = Annotated[GitForkGateway, Depends(get_git_gateway_dep)]
ReconcilerDep = Annotated[ForkReconciler, Depends(get_fork_reconciler_dep)]


def _fork_owner(user: User) -> ForkOwner:
    if not user.github_login:
        raise NotFoundError("A linked GitHub account is required for fork operations")
    return ForkOwner(login=user.github_login, token=user.github_token)


def _status_response(
    fork_status: str,
    url: str | None,
    job: ForkJob | None,
) -> ForkStatusResponse:
    return ForkStatusResponse(
        status=fork_status,
        url=url,
        job_state=job.state if job else None,
        job_attempts=job.attempts if job else 0,
        job_error=job.error if job else None,
        job_updated_at=job.updated_at if job else None,
    )


@router.get("", response_model=ForkStatusResponse)
async def get_fork(
    current_user: CurrentUserDep,
    db: SessionDep,
    gateway: GatewayDep,
) -> ForkStatusResponse:
    """Return the state of the caller's fork and of any pending creation job."""
    try:
        owner = _fork_owner(current_user)
        fork_status = await gateway.fork_status(owner)
    except ReviewError as exc:
        raise to_http_exception(exc) from exc
    return _status_response(
        fork_status.value,
        gateway.fork_url(owner),
        db.get(ForkJob, current_user.id),
    )


@router.post("", response_model=ForkStatusResponse, status_code=status.HTTP_202_ACCEPTED)
async def request_fork(
    current_user: CurrentUserDep,
    db: SessionDep,
) -> ForkStatusResponse:
    """Queue creation of the caller's fork; the sync worker carries it out."""
    try:
        job = enqueue_fork(db, current_user.id)
    except ReviewError as exc:
        raise to_http_exception(exc) from exc
    logger.info("Fork requested by %s", current_user.id)
    return _status_response("pending", None, job)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def delete_fork(
    current_user: CurrentUserDep,
    db: SessionDep,
    gateway: GatewayDep,
) -> None:
    """Delete the caller's fork. Contribution records are left as they are."""
    try:
        await gateway.delete_fork(_fork_owner(current_user))
    except ReviewError as exc:
        raise to_http_exception(exc) from exc

    job = db.get(ForkJob, current_user.id)
    if job is not None:
        db.delete(job)
        db.commit()


@router.post("/sync/{resolution}", response_model=ReconcileReportResponse)
async def sync_fork(
    resolution: Resolution,
    current_user: CurrentUserDep,
    reconciler: ReconcilerDep,
) -> ReconcileReportResponse:
    """Reconcile the caller's contributions with one branch of their fork now."""
    try:
        report = await reconciler.reconcile(current_user.id, resolution)
    except ReviewError as exc:
        raise to_http_exception(exc) from exc
    return ReconcileReportResponse(
        resolution=resolution,
        archived=report.archived,
        created=report.created,
        restored=report.restored,
        active=sorted(report.active),
    )
