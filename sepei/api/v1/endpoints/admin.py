"""Admin endpoints."""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from sepei.api.deps import get_db, verify_admin_token
from sepei.core.rate_limit import limiter, RATE_LIMITS
from sepei.schemas import (
    FlagUpdate,
    MemberProfile,
    PollCreate,
    PollDetail,
    PollResponse,
    PollUpdate,
    ResultRow,
    SuccessResponse,
)
from sepei.services.polls import (
    create_poll,
    delete_poll,
    list_all_polls,
    poll_exists,
    set_published,
    set_results_public,
    tabulate_results,
    update_poll,
)
from sepei.services.sessions import SessionUser, cleanup_expired_sessions, invalidate_all_user_sessions
from sepei.services.users import list_users, set_verified, set_voting_authorized

router = APIRouter(dependencies=[Depends(verify_admin_token)])


@router.get("/polls", response_model=List[PollDetail])
async def list_all_polls_endpoint(db: Session = Depends(get_db)):
    """All polls, published or not, newest first."""
    return list_all_polls(db)


@router.post("/polls", response_model=PollResponse)
@limiter.limit(RATE_LIMITS["admin_write"])
async def create_poll_endpoint(
    request: Request,
    poll: PollCreate,
    db: Session = Depends(get_db)
) -> PollResponse:
    """
    Create a poll with its options.

    Example:
        Request:
            POST /api/v1/admin/polls
            {
                "titulo": "Horario",
                "tipo": "votacion",
                "fecha_inicio": "2025-03-01T08:00:00Z",
                "fecha_fin": "2025-03-08T20:00:00Z",
                "publicado": true,
                "opciones": ["Turno A", "Turno B"]
            }

        Response (200):
            {"poll_id": 12}

    Raises:
        HTTPException: 400 if the poll could not be created
        HTTPException: 422 if the body fails validation (fewer than two
        options, closing time before opening time, ...)
    """
    fields = poll.model_dump(exclude={"opciones"})
    poll_id = create_poll(db, fields, poll.opciones, created_by="admin")
    if poll_id is None:
        raise HTTPException(status_code=400, detail="Poll could not be created")
    return PollResponse(poll_id=poll_id)


@router.put("/polls/{poll_id}", response_model=SuccessResponse)
@limiter.limit(RATE_LIMITS["admin_write"])
async def update_poll_endpoint(
    request: Request,
    poll_id: int,
    poll: PollUpdate,
    db: Session = Depends(get_db)
) -> SuccessResponse:
    """
    Edit a poll. Sending ``opciones`` replaces the whole option set and
    discards the ballots already cast in the poll.
    """
    if not poll_exists(db, poll_id):
        raise HTTPException(status_code=404, detail="Poll not found")

    fields = poll.model_dump(exclude_unset=True, exclude={"opciones"})
    if not update_poll(db, poll_id, fields, poll.opciones):
        raise HTTPException(status_code=400, detail="Poll could not be updated")
    return SuccessResponse(success=True)


@router.delete("/polls/{poll_id}", response_model=SuccessResponse)
@limiter.limit(RATE_LIMITS["admin_write"])
async def delete_poll_endpoint(request: Request, poll_id: int, db: Session = Depends(get_db)) -> SuccessResponse:
    """Delete a poll with its options and ballots."""
    if not delete_poll(db, poll_id):
        raise HTTPException(status_code=404, detail="Poll not found")
    return SuccessResponse(success=True)


@router.put("/polls/{poll_id}/published", response_model=SuccessResponse)
async def set_published_endpoint(
    poll_id: int,
    flag: FlagUpdate,
    db: Session = Depends(get_db)
) -> SuccessResponse:
    """Publish or unpublish a poll. Repeating the same value is harmless."""
    if not set_published(db, poll_id, flag.value):
        raise HTTPException(status_code=404, detail="Poll not found")
    return SuccessResponse(success=True)


@router.put("/polls/{poll_id}/results-public", response_model=SuccessResponse)
async def set_results_public_endpoint(
    poll_id: int,
    flag: FlagUpdate,
    db: Session = Depends(get_db)
) -> SuccessResponse:
    """Show or hide a poll's results from members."""
    if not set_results_public(db, poll_id, flag.value):
        raise HTTPException(status_code=404, detail="Poll not found")
    return SuccessResponse(success=True)


@router.get("/polls/{poll_id}/results", response_model=List[ResultRow])
async def poll_results_endpoint(poll_id: int, db: Session = Depends(get_db)):
    """Tabulated results, whatever the results-public flag says."""
    if not poll_exists(db, poll_id):
        raise HTTPException(status_code=404, detail="Poll not found")
    return tabulate_results(db, poll_id)


@router.get("/users", response_model=List[MemberProfile])
async def list_users_endpoint(db: Session = Depends(get_db)):
    """Registered members with their verification and voting flags."""
    return [MemberProfile.model_validate(SessionUser.from_user(user)) for user in list_users(db)]


@router.put("/users/{user_id}/verified", response_model=SuccessResponse)
async def set_verified_endpoint(
    user_id: int,
    flag: FlagUpdate,
    db: Session = Depends(get_db)
) -> SuccessResponse:
    """Confirm (or revoke) a member's identity."""
    if not set_verified(db, user_id, flag.value):
        raise HTTPException(status_code=404, detail="User not found")
    return SuccessResponse(success=True)


@router.put("/users/{user_id}/voting-authorization", response_model=SuccessResponse)
async def set_voting_authorization_endpoint(
    user_id: int,
    flag: FlagUpdate,
    db: Session = Depends(get_db)
) -> SuccessResponse:
    """Grant or revoke a member's right to vote. Revoking also logs them out."""
    if not set_voting_authorized(db, user_id, flag.value):
        raise HTTPException(status_code=404, detail="User not found")
    if not flag.value:
        invalidate_all_user_sessions(db, user_id)
    return SuccessResponse(success=True)


@router.post("/sessions/cleanup", response_model=SuccessResponse)
async def cleanup_sessions_endpoint(db: Session = Depends(get_db)) -> SuccessResponse:
    """Delete expired and closed member sessions."""
    removed = cleanup_expired_sessions(db)
    return SuccessResponse(success=True, message=f"Removed {removed} session(s)")
