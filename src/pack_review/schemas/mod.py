# src/pack_review/schemas/mod.py
"""Mod manifest and ingestion Pydantic schemas."""

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

UNKNOWN_VERSION = "unknown"

# Build tools leave these in mcmod.info when the version is not substituted.
_PLACEHOLDER_PATTERNS = (
    re.compile(r"\$\{[^}]*\}"),
    re.compile(r"@[A-Z_]+@"),
    re.compile(r"^extension '.*' property '.*'$"),
)


def sanitize_version(value: Any) -> str:
    """Return a usable version string, or ``"unknown"`` for missing or placeholder values."""
    if isinstance(value, int | float) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        return UNKNOWN_VERSION
    value = value.strip()
    if not value or any(pattern.search(value) for pattern in _PLACEHOLDER_PATTERNS):
        return UNKNOWN_VERSION
    return value


def _optional_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    return value.strip() or None


class MCModInfo(BaseModel):
    """One entry of a Forge ``mcmod.info`` manifest.

    Only ``modid`` is required; every other field is cleaned up individually
    so one bad field never discards the entry.
    """

    modid: str = Field(..., min_length=1)
    name: str | None = None
    description: str | None = None
    version: str = UNKNOWN_VERSION
    mcversion: str = UNKNOWN_VERSION
    url: str | None = None
    author_list: list[str] = Field(default_factory=list, alias="authorList")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("modid", mode="before")
    @classmethod
    def _clean_modid(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("version", "mcversion", mode="before")
    @classmethod
    def _clean_version(cls, value: Any) -> str:
        return sanitize_version(value)

    @field_validator("name", "description", "url", mode="before")
    @classmethod
    def _clean_text(cls, value: Any) -> str | None:
        return _optional_text(value)

    @field_validator("author_list", mode="before")
    @classmethod
    def _clean_authors(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            return []
        return [author.strip() for author in value if isinstance(author, str) and author.strip()]


class ExtractedMetadataResponse(BaseModel):
    """Schema for one mod version found in an ingested archive."""

    mod_id: str
    forge_id: str
    name: str
    version: str
    mc_version: str
    mod_version_id: str
    texture_ids: list[str]
    created_textures: int
    aliased_textures: int
    from_manifest: bool

    model_config = ConfigDict(from_attributes=True)
