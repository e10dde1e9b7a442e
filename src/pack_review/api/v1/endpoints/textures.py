# src/pack_review/api/v1/endpoints/textures.py
"""Texture listing and lookup endpoints."""

from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import select

from pack_review.models import Texture
from pack_review.schemas.texture import TextureResponse

from ..dependencies import CurrentUserDep, SessionDep

router = APIRouter(prefix="/textures", tags=["textures"])


@router.get("", response_model=list[TextureResponse])
async def list_textures(
    _current_user: CurrentUserDep,
    db: SessionDep,
    content_hash: Annotated[str | None, Query(alias="hash")] = None,
    name: Annotated[str | None, Query(min_length=1)] = None,
) -> list[Texture]:
    """List textures, optionally only the one with a given hash or names containing ``name``."""
    stmt = select(Texture)
    if content_hash is not None:
        stmt = stmt.where(Texture.hash == content_hash.lower())
    if name is not None:
        stmt = stmt.where(Texture.name.contains(name, autoescape=True))
    return list(db.scalars(stmt.order_by(Texture.name, Texture.id)))


@router.get("/{texture_id}", response_model=TextureResponse)
async def get_texture(
    texture_id: str,
    _current_user: CurrentUserDep,
    db: SessionDep,
) -> Texture:
    """Get a specific texture by ID."""
    texture = db.get(Texture, texture_id)
    if texture is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Texture not found",
        )
    return texture
