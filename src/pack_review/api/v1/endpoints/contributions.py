# src/pack_review/api/v1/endpoints/contributions.py
"""Contribution endpoints: upload, edit, submit, delete and download."""

from typing import Annotated

from fastapi import APIRouter, File, Form, HTTPException, Query, Response, UploadFile, status

from pack_review.core.errors import Forbidden, NotFoundError, ReviewError
from pack_review.models import Resolution, Status, User
from pack_review.repositories.contribution_repo import ContributionRepository
from pack_review.schemas.contribution import (
    AttachTarget,
    BulkIds,
    BulkResultResponse,
    ContributionResponse,
    DuplicateFile,
    UploadReportResponse,
)

from ..dependencies import CurrentActorDep, SessionDep, to_http_exception

router = APIRouter(prefix="/contributions", tags=["contributions"])


@router.post("", response_model=UploadReportResponse, status_code=status.HTTP_201_CREATED)
async def upload_contributions(
    files: Annotated[list[UploadFile], File(description="Texture files")],
    resolution: Annotated[Resolution, Form()],
    actor: CurrentActorDep,
    db: SessionDep,
    co_author_ids: Annotated[list[str] | None, Form()] = None,
) -> UploadReportResponse:
    """Upload files as draft contributions; duplicates are reported per file."""
    payload = []
    for upload in files:
        if not upload.filename:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Every uploaded file needs a filename",
            )
        payload.append((upload.filename, await upload.read()))

    try:
        report = ContributionRepository(db).create_drafts(
            actor, payload, resolution, co_author_ids or ()
        )
    except ReviewError as exc:
        raise to_http_exception(exc) from exc

    return UploadReportResponse(
        created=[ContributionResponse.model_validate(c) for c in report.created],
        duplicates=[
            DuplicateFile(filename=dup.filename, hash=dup.content_hash, detail=str(dup))
            for dup in report.duplicates
        ],
    )


@router.get("", response_model=list[ContributionResponse])
async def list_contributions(
    actor: CurrentActorDep,
    db: SessionDep,
    status_filter: Annotated[Status | None, Query(alias="status")] = None,
) -> list[ContributionResponse]:
    """List the caller's own contributions, optionally filtered by status."""
    contributions = ContributionRepository(db).list_by_status(actor.id, status_filter)
    return [ContributionResponse.model_validate(c) for c in contributions]


@router.patch("/{contribution_id}", response_model=ContributionResponse)
async def attach_target(
    contribution_id: str,
    body: AttachTarget,
    actor: CurrentActorDep,
    db: SessionDep,
) -> ContributionResponse:
    """Set the target texture, co-authors and mcmeta; the contribution returns to draft."""
    try:
        contribution = ContributionRepository(db).attach_target(
            contribution_id,
            actor,
            body.texture_id,
            body.co_author_ids,
            body.mcmeta,
        )
    except ReviewError as exc:
        raise to_http_exception(exc) from exc
    return ContributionResponse.model_validate(contribution)


@router.post("/submit", response_model=BulkResultResponse)
async def submit_contributions(
    body: BulkIds,
    actor: CurrentActorDep,
    db: SessionDep,
) -> BulkResultResponse:
    """Submit drafts for council review; ineligible ids are skipped."""
    result = ContributionRepository(db).submit(body.ids, actor.id)
    return BulkResultResponse.model_validate(result)


@router.post("/delete", response_model=BulkResultResponse)
async def delete_contributions(
    body: BulkIds,
    actor: CurrentActorDep,
    db: SessionDep,
) -> BulkResultResponse:
    """Delete owned contributions and leave those the caller only co-authors."""
    try:
        result = ContributionRepository(db).delete(body.ids, actor.id)
    except ReviewError as exc:
        raise to_http_exception(exc) from exc
    return BulkResultResponse.model_validate(result)


@router.get(
    "/download/{owner_id}",
    response_class=Response,
    responses={200: {"content": {"application/zip": {}}}},
)
async def download_contributions(
    owner_id: str,
    actor: CurrentActorDep,
    db: SessionDep,
) -> Response:
    """Download a user's contribution files as a zip grouped by status.

    Administrators can download anyone's files; other users only their own.
    """
    try:
        if actor.id != owner_id and not actor.is_admin:
            raise Forbidden("Only administrators can download another user's contributions")
        if db.get(User, owner_id) is None:
            raise NotFoundError(f"User '{owner_id}' not found")
        content = ContributionRepository(db).export_zip(owner_id)
    except ReviewError as exc:
        raise to_http_exception(exc) from exc

    return Response(
        content=content,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="contributions-{owner_id}.zip"'},
    )
