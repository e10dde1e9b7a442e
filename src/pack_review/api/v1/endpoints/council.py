# src/pack_review/api/v1/endpoints/council.py
"""Council review endpoints."""

from fastapi import APIRouter

from pack_review.core.errors import ReviewError
from pack_review.core.identity import require_role
from pack_review.models import UserRole
from pack_review.repositories.contribution_repo import ContributionRepository
from pack_review.schemas.contribution import ContributionResponse
from pack_review.schemas.vote import VoteCreate, VoteResult
from pack_review.services.poll_resolver import PollResolver, VoteChoice

from ..dependencies import CurrentActorDep, SessionDep, to_http_exception

router = APIRouter(prefix="/council", tags=["council"])


@router.get("/contributions", response_model=list[ContributionResponse])
async def list_pending_contributions(
    actor: CurrentActorDep,
    db: SessionDep,
) -> list[ContributionResponse]:
    """List contributions waiting for a council decision."""
    try:
        require_role(actor, UserRole.COUNCIL)
    except ReviewError as exc:
        raise to_http_exception(exc) from exc
    return [ContributionResponse.model_validate(c) for c in ContributionRepository(db).list_pending()]


@router.post("/contributions/{contribution_id}/vote", response_model=VoteResult)
async def vote_on_contribution(
    contribution_id: str,
    vote_data: VoteCreate,
    actor: CurrentActorDep,
    db: SessionDep,
) -> VoteResult:
    """Cast, change or withdraw a council vote.

    The vote that completes the electorate also decides the contribution.
    """
    resolver = PollResolver(db)
    try:
        new_status = resolver.vote(contribution_id, actor, VoteChoice(vote_data.choice))
        contribution = ContributionRepository(db).get(contribution_id)
        results = resolver.results(contribution.poll_id)
    except ReviewError as exc:
        raise to_http_exception(exc) from exc

    return VoteResult(
        contribution_id=contribution_id,
        status=new_status,
        upvotes=results.upvotes,
        downvotes=results.downvotes,
        electorate=resolver.electorate_size(),
    )
