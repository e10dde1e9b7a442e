# src/pack_review/api/v1/endpoints/mods.py
"""Mod archive ingestion endpoints (administrators only)."""

from typing import Annotated

from fastapi import APIRouter, File, UploadFile, status

from pack_review.core.errors import Forbidden, ReviewError
from pack_review.schemas.mod import ExtractedMetadataResponse
from pack_review.services.mod_ingestor import ModArtifactIngestor

from ..dependencies import CurrentActorDep, SessionDep, to_http_exception

router = APIRouter(prefix="/mods", tags=["mods"])


@router.post(
    "/ingest",
    response_model=list[ExtractedMetadataResponse],
    status_code=status.HTTP_201_CREATED,
)
async def ingest_mod(
    file: Annotated[UploadFile, File(description="Mod JAR archive")],
    actor: CurrentActorDep,
    db: SessionDep,
) -> list[ExtractedMetadataResponse]:
    """Register the mods declared in a JAR and extract its default textures."""
    try:
        if not actor.is_admin:
            raise Forbidden("Only administrators can ingest mods")
        extracted = ModArtifactIngestor(db).ingest(await file.read(), file.filename or "mod.jar")
    except ReviewError as exc:
        raise to_http_exception(exc) from exc
    return [ExtractedMetadataResponse.model_validate(item) for item in extracted]
