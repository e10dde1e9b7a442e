# src/pack_review/schemas/contribution.py
"""Contribution-related Pydantic schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pack_review.models import Resolution, Status


class ContributionResponse(BaseModel):
    """Schema for contribution information returned by the API."""

    id: str
    owner_id: str
    co_author_ids: list[str]
    texture_id: str | None
    resolution: Resolution
    hash: str
    file: str
    filename: str
    mcmeta: dict[str, Any] | None = None
    status: Status
    poll_id: str
    upvotes: int = 0
    downvotes: int = 0
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="before")
    @classmethod
    def _flatten_relations(cls, data: object) -> object:
        if isinstance(data, dict):
            return data

        extracted: dict[str, object | None] = {}
        for field_name in cls.model_fields:
            if field_name in {"upvotes", "downvotes", "co_author_ids"}:
                continue
            extracted[field_name] = getattr(data, field_name, None)

        extracted["co_author_ids"] = sorted(getattr(data, "co_author_ids", ()))
        poll = getattr(data, "poll", None)
        extracted["upvotes"] = poll.upvotes if poll is not None else 0
        extracted["downvotes"] = poll.downvotes if poll is not None else 0
        return extracted

    model_config = ConfigDict(from_attributes=True)


class DuplicateFile(BaseModel):
    """A file of an upload batch that was rejected as a duplicate."""

    filename: str | None
    hash: str
    detail: str


class UploadReportResponse(BaseModel):
    """Schema for the result of a batch upload."""

    created: list[ContributionResponse]
    duplicates: list[DuplicateFile]


class AttachTarget(BaseModel):
    """Schema for attaching a target texture, co-authors and mcmeta to a draft."""

    texture_id: str | None = Field(None, description="Texture the file replaces")
    co_author_ids: list[str] = Field(default_factory=list, description="Co-author user ids")
    mcmeta: dict[str, Any] | None = Field(None, description="Animation parameters")


class BulkIds(BaseModel):
    """Schema for bulk operations on contributions."""

    ids: list[str] = Field(..., min_length=1, description="Contribution ids")


class BulkResultResponse(BaseModel):
    """Schema for the outcome of a bulk operation."""

    done: list[str]
    skipped: list[str]

    model_config = ConfigDict(from_attributes=True)
