"""Texture Pydantic schemas."""

from pydantic import BaseModel, ConfigDict


class TextureResponse(BaseModel):
    """Schema for a pack texture that contributions can target."""

    id: str
    name: str
    aliases: list[str]
    file: str
    hash: str

    model_config = ConfigDict(from_attributes=True)
