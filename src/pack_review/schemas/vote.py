# src/pack_review/schemas/vote.py
"""Vote-related Pydantic schemas."""

from typing import Literal

from pydantic import BaseModel, Field

from pack_review.models import Status


class VoteCreate(BaseModel):
    """Schema for casting a council vote."""

    choice: Literal["up", "down", "none"] = Field(
        ...,
        description="'up' or 'down'; 'none' withdraws an earlier vote",
    )


class VoteResult(BaseModel):
    """Schema for the contribution state after a vote."""

    contribution_id: str
    status: Status
    upvotes: int
    downvotes: int
    electorate: int


class PollResultsResponse(BaseModel):
    """Schema for poll tallies."""

    poll_id: str
    upvotes: int
    downvotes: int
