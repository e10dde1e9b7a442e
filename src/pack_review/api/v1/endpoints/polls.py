# src/pack_review/api/v1/endpoints/polls.py
"""Poll endpoints."""

from fastapi import APIRouter

from pack_review.core.errors import ReviewError
from pack_review.schemas.vote import PollResultsResponse
from pack_review.services.poll_resolver import PollResolver

from ..dependencies import CurrentUserDep, SessionDep, to_http_exception

router = APIRouter(prefix="/polls", tags=["polls"])


@router.get("/{poll_id}", response_model=PollResultsResponse)
async def get_poll_results(
    poll_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> PollResultsResponse:
    """Return the vote tallies of a poll."""
    try:
        results = PollResolver(db).results(poll_id)
    except ReviewError as exc:
        raise to_http_exception(exc) from exc
    return PollResultsResponse(poll_id=poll_id, upvotes=results.upvotes, downvotes=results.downvotes)
