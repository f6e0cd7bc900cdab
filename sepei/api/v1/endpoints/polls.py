"""Member-facing poll endpoints."""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from sepei.api.deps import get_db, get_optional_user, require_user
from sepei.core.rate_limit import limiter, RATE_LIMITS
from sepei.schemas import BallotRequest, BallotResponse, ErrorResponse, HasVotedResponse, MemberPoll, ResultRow
from sepei.services.ballots import BallotOutcome, cast_ballot, has_voted
from sepei.services.polls import get_poll, list_active_polls, list_published_polls, tabulate_results
from sepei.services.sessions import SessionUser

router = APIRouter()

# HTTP status for every refused ballot
OUTCOME_STATUS = {
    BallotOutcome.NOT_AUTHENTICATED: 401,
    BallotOutcome.IDENTITY_INCOMPLETE: 403,
    BallotOutcome.NOT_AUTHORIZED: 403,
    BallotOutcome.ALREADY_VOTED: 409,
    BallotOutcome.POLL_NOT_FOUND: 404,
    BallotOutcome.POLL_NOT_PUBLISHED: 404,
    BallotOutcome.POLL_NOT_OPEN: 400,
    BallotOutcome.POLL_CLOSED: 400,
    BallotOutcome.INVALID_SELECTION: 400,
    BallotOutcome.STORE_FAILURE: 503,
}


def _published_poll_or_404(db: Session, poll_id: int, user: Optional[SessionUser]) -> dict:
    poll = get_poll(db, poll_id, voter=user)
    if poll is None or not poll["publicado"]:
        raise HTTPException(status_code=404, detail="Poll not found")
    return poll


@router.get("", response_model=List[MemberPoll])
@limiter.limit(RATE_LIMITS["polls_read"])
async def list_polls_endpoint(
    request: Request,
    db: Session = Depends(get_db),
    user: Optional[SessionUser] = Depends(get_optional_user),
):
    """
    List published polls, latest closing time first.

    Each poll carries its status (scheduled/active/closed), ballot count,
    whether the caller already voted, and the results when they are public.
    """
    return list_published_polls(db, voter=user)


@router.get("/active", response_model=List[MemberPoll])
@limiter.limit(RATE_LIMITS["polls_read"])
async def list_active_polls_endpoint(
    request: Request,
    db: Session = Depends(get_db),
    user: Optional[SessionUser] = Depends(get_optional_user),
):
    """List published polls that are open for voting right now."""
    return list_active_polls(db, voter=user)


@router.get("/{poll_id}", response_model=MemberPoll)
async def get_poll_endpoint(
    poll_id: int,
    db: Session = Depends(get_db),
    user: Optional[SessionUser] = Depends(get_optional_user),
):
    """A single published poll."""
    return _published_poll_or_404(db, poll_id, user)


@router.post(
    "/{poll_id}/ballots",
    response_model=BallotResponse,
    responses={status: {"model": ErrorResponse} for status in sorted(set(OUTCOME_STATUS.values()))},
)
@limiter.limit(RATE_LIMITS["ballot"])
async def cast_ballot_endpoint(
    request: Request,
    poll_id: int,
    ballot: BallotRequest,
    db: Session = Depends(get_db),
    user: Optional[SessionUser] = Depends(get_optional_user),
) -> BallotResponse:
    """
    Cast the caller's ballot.

    Example:
        Request:
            POST /api/v1/polls/7/ballots
            Authorization: Bearer <session token>
            {"option_ids": [21]}

        Response (200):
            {"success": true, "outcome": "recorded", "message": "Your vote has been recorded"}

        Response (409):
            {"detail": {"code": "already_voted", "message": "You have already voted in this poll"}}

    Status codes for refused ballots:
        401 not logged in, 403 identity not verified or no right to vote,
        404 unknown or unpublished poll, 409 already voted, 400 poll not
        open or invalid selection, 503 database failure.
    """
    result = cast_ballot(db, user, poll_id, ballot.option_ids)
    if not result:
        raise HTTPException(
            status_code=OUTCOME_STATUS[result.outcome],
            detail={"code": result.outcome.value, "message": result.message},
        )

    return BallotResponse(success=True, outcome=result.outcome.value, message=result.message)


@router.get("/{poll_id}/has-voted", response_model=HasVotedResponse)
async def has_voted_endpoint(
    poll_id: int,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_user),
) -> HasVotedResponse:
    """Whether the caller already voted in this poll."""
    return HasVotedResponse(poll_id=poll_id, has_voted=has_voted(db, user, poll_id))


@router.get("/{poll_id}/results", response_model=List[ResultRow])
async def poll_results_endpoint(
    poll_id: int,
    db: Session = Depends(get_db),
    user: Optional[SessionUser] = Depends(get_optional_user),
):
    """
    Tabulated results of a published poll.

    Raises:
        HTTPException: 403 while the administrators keep results private
    """
    poll = _published_poll_or_404(db, poll_id, user)
    if not poll["resultados_publicos"]:
        raise HTTPException(status_code=403, detail="Results are not public")
    return tabulate_results(db, poll_id)
