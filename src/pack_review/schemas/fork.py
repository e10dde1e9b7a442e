# src/pack_review/schemas/fork.py
"""Fork-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from pack_review.models import Resolution


class ForkStatusResponse(BaseModel):
    """Schema for the state of the caller's fork."""

    status: str
    url: str | None = None
    job_state: str | None = None
    job_attempts: int = 0
    job_error: str | None = None
    job_updated_at: datetime | None = None


class ReconcileReportResponse(BaseModel):
    """Schema for the outcome of a reconciliation pass."""

    resolution: Resolution
    archived: list[str]
    created: list[str]
    restored: list[str]
    active: list[str]

    model_config = ConfigDict(from_attributes=True)
