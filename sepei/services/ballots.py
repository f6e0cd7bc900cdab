"""Ballot casting and the already-voted query.

``cast_ballot`` runs a fixed sequence of gates (identity, authorization,
duplicate pre-check, poll state, selection shape) and only then writes the
ballot. The pre-check gives a friendly answer in the common case; the
``uq_participacion_votacion_user`` constraint is what actually stops two
concurrent casts by the same voter.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from sepei.core.logging_config import get_logger
from sepei.core.sanitization import normalize_voter_id
from sepei.core.utils import to_utc, utcnow
from sepei.db.models import Ballot, Participation, Poll, PollOption
from sepei.services.sessions import SessionUser

logger = get_logger(__name__)

DUPLICATE_CONSTRAINTS = ("uq_participacion_votacion_user", "uq_voto_votacion_user_opcion")


class BallotOutcome(Enum):
    """What happened when a member tried to cast a ballot."""

    RECORDED = "recorded"

    NOT_AUTHENTICATED = "not_authenticated"
    IDENTITY_INCOMPLETE = "identity_incomplete"  # missing DNI/email or not verified
    NOT_AUTHORIZED = "not_authorized"  # verified but no right to vote
    ALREADY_VOTED = "already_voted"
    POLL_NOT_FOUND = "poll_not_found"
    POLL_NOT_PUBLISHED = "poll_not_published"
    POLL_NOT_OPEN = "poll_not_open"
    POLL_CLOSED = "poll_closed"
    INVALID_SELECTION = "invalid_selection"

    STORE_FAILURE = "store_failure"

    @property
    def is_success(self) -> bool:
        return self is BallotOutcome.RECORDED

    @property
    def message(self) -> str:
        """User-facing explanation of the outcome."""
        return {
            BallotOutcome.RECORDED: "Your vote has been recorded",
            BallotOutcome.NOT_AUTHENTICATED: "You must be logged in to vote",
            BallotOutcome.IDENTITY_INCOMPLETE: "Your identity has not been verified yet",
            BallotOutcome.NOT_AUTHORIZED: "You are not authorized to vote",
            BallotOutcome.ALREADY_VOTED: "You have already voted in this poll",
            BallotOutcome.POLL_NOT_FOUND: "Poll not found",
            BallotOutcome.POLL_NOT_PUBLISHED: "Poll not found",
            BallotOutcome.POLL_NOT_OPEN: "Voting has not started yet",
            BallotOutcome.POLL_CLOSED: "Voting has ended",
            BallotOutcome.INVALID_SELECTION: "Invalid selection for this poll",
            BallotOutcome.STORE_FAILURE: "Your vote could not be recorded, please try again",
        }[self]


@dataclass(frozen=True)
class CastResult:
    """Result of ``cast_ballot``. Truthy only when the ballot was recorded."""

    outcome: BallotOutcome
    ballots_recorded: int = 0

    def __bool__(self) -> bool:
        return self.outcome.is_success

    @property
    def message(self) -> str:
        return self.outcome.message


def _reject(outcome: BallotOutcome, poll_id: int, voter_id: Optional[str] = None) -> CastResult:
    logger.info("ballot_rejected", reason=outcome.value, poll_id=poll_id, voter_id=voter_id)
    return CastResult(outcome)


def _is_duplicate(error: IntegrityError) -> bool:
    text = str(error.orig if error.orig is not None else error)
    return any(name in text for name in DUPLICATE_CONSTRAINTS) or "unique" in text.lower()


def _participation_exists(db: Session, poll_id: int, voter_id: str) -> bool:
    return db.query(Participation.id).filter(
        Participation.votacion_id == poll_id,
        Participation.user_id == voter_id,
    ).first() is not None


def cast_ballot(
    db: Session,
    voter: Optional[SessionUser],
    poll_id: int,
    option_ids: Sequence[int],
    now: Optional[datetime] = None,
) -> CastResult:
    """Cast a member's ballot in a poll.

    Args:
        db: SQLAlchemy session
        voter: The authenticated caller, resolved by the HTTP layer
        poll_id: Poll to vote in
        option_ids: Selected option ids (one, or several on multi-select polls)
        now: Reference time for the window check, defaults to the current time

    Returns:
        CastResult whose ``outcome`` says why a ballot was refused. Nothing
        is raised: database errors become ``STORE_FAILURE``.
    """
    if voter is None:
        return _reject(BallotOutcome.NOT_AUTHENTICATED, poll_id)

    voter_id = normalize_voter_id(voter.dni)
    if not voter_id or not voter.email or voter.verified is not True:
        return _reject(BallotOutcome.IDENTITY_INCOMPLETE, poll_id, voter_id or None)

    if voter.voting_authorized is not True:
        return _reject(BallotOutcome.NOT_AUTHORIZED, poll_id, voter_id)

    now = to_utc(now) if now is not None else utcnow()
    selected = list(option_ids or [])

    try:
        if _participation_exists(db, poll_id, voter_id):
            return _reject(BallotOutcome.ALREADY_VOTED, poll_id, voter_id)

        poll = db.query(Poll).filter(Poll.id == poll_id).first()
        if poll is None:
            return _reject(BallotOutcome.POLL_NOT_FOUND, poll_id, voter_id)
        if not poll.publicado:
            return _reject(BallotOutcome.POLL_NOT_PUBLISHED, poll_id, voter_id)
        if now < to_utc(poll.fecha_inicio):
            return _reject(BallotOutcome.POLL_NOT_OPEN, poll_id, voter_id)
        if now > to_utc(poll.fecha_fin):
            return _reject(BallotOutcome.POLL_CLOSED, poll_id, voter_id)

        if not selected:
            return _reject(BallotOutcome.INVALID_SELECTION, poll_id, voter_id)
        if len(selected) > 1 and not poll.multiple_respuestas:
            return _reject(BallotOutcome.INVALID_SELECTION, poll_id, voter_id)
        if len(set(selected)) != len(selected):
            return _reject(BallotOutcome.INVALID_SELECTION, poll_id, voter_id)

        known = {
            option_id
            for (option_id,) in db.query(PollOption.id)
            .filter(PollOption.votacion_id == poll_id, PollOption.id.in_(selected))
            .all()
        }
        if known != set(selected):
            return _reject(BallotOutcome.INVALID_SELECTION, poll_id, voter_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("ballot_checks_failed", poll_id=poll_id, voter_id=voter_id, error=str(e))
        return CastResult(BallotOutcome.STORE_FAILURE)

    # One participation plus one row per option, all in a single transaction
    cast_at = utcnow()
    db.add(Participation(votacion_id=poll_id, user_id=voter_id, fecha_voto=cast_at))
    db.add_all([
        Ballot(
            votacion_id=poll_id,
            opcion_id=option_id,
            user_id=voter_id,
            user_email=voter.email,
            fecha_voto=cast_at,
        )
        for option_id in selected
    ])

    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if _is_duplicate(e):
            # Lost the race against a concurrent cast by the same voter
            return _reject(BallotOutcome.ALREADY_VOTED, poll_id, voter_id)
        logger.error("ballot_insert_failed", poll_id=poll_id, voter_id=voter_id, error=str(e))
        return CastResult(BallotOutcome.STORE_FAILURE)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("ballot_insert_failed", poll_id=poll_id, voter_id=voter_id, error=str(e))
        return CastResult(BallotOutcome.STORE_FAILURE)

    logger.info("ballot_recorded", poll_id=poll_id, voter_id=voter_id, options=len(selected))
    return CastResult(BallotOutcome.RECORDED, ballots_recorded=len(selected))


def has_voted(db: Session, voter: Optional[SessionUser], poll_id: int) -> bool:
    """Whether the caller already has a voting event in this poll."""
    if voter is None:
        return False

    voter_id = normalize_voter_id(voter.dni)
    if not voter_id:
        return False

    try:
        return _participation_exists(db, poll_id, voter_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("has_voted_failed", poll_id=poll_id, voter_id=voter_id, error=str(e))
        return False
