"""Session store: resolves an opaque bearer token to the calling member."""
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sepei.core.config import settings
from sepei.core.logging_config import get_logger
from sepei.core.sanitization import validate_token_format
from sepei.core.security import create_token_lookup_key, generate_session_token
from sepei.core.utils import to_utc, utcnow
from sepei.db.models import User, UserSession

logger = get_logger(__name__)


@dataclass(frozen=True)
class SessionUser:
    """Identity of the member behind a session, as seen by the voting core."""

    id: int
    dni: str
    nombre: str
    email: str
    verified: bool
    voting_authorized: bool
    apellidos: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "SessionUser":
        return cls(
            id=user.id,
            dni=user.dni,
            nombre=user.nombre,
            email=user.email,
            verified=bool(user.verified),
            voting_authorized=bool(user.autorizado_votar),
            apellidos=user.apellidos,
        )


def _session_duration() -> timedelta:
    return timedelta(days=settings.SESSION_DURATION_DAYS)


def _find_session(db: Session, token: Optional[str]) -> Optional[UserSession]:
    if not token:
        return None
    try:
        token = validate_token_format(token)
    except ValueError:
        return None
    return db.query(UserSession).filter(
        UserSession.token_lookup_key == create_token_lookup_key(token)
    ).first()


def create_session(
    db: Session,
    user_id: int,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Optional[str]:
    """Open a session for a member and return the raw token.

    Only the HMAC lookup key is persisted; the raw token is handed to the
    caller once. Returns None if the session could not be stored.
    """
    token = generate_session_token()
    now = utcnow()
    session = UserSession(
        user_id=user_id,
        token_lookup_key=create_token_lookup_key(token),
        expires_at=now + _session_duration(),
        last_activity=now,
        is_active=True,
        ip_address=ip_address,
        user_agent=user_agent[:500] if user_agent else None,
    )
    try:
        db.add(session)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("session_create_failed", user_id=user_id, error=str(e))
        return None

    logger.info("session_created", user_id=user_id)
    return token


def get_current_user(db: Session, token: Optional[str]) -> Optional[SessionUser]:
    """
    Resolve a session token to the member that owns it.

    Returns None when the token is missing, malformed, unknown, inactive or
    expired. Expired sessions are deactivated on the way. A successful
    lookup refreshes ``last_activity``.
    """
    try:
        session = _find_session(db, token)
        if session is None or not session.is_active:
            return None

        now = utcnow()
        if to_utc(session.expires_at) < now:
            session.is_active = False
            db.commit()
            logger.info("session_expired", user_id=session.user_id)
            return None

        user = session.user
        if user is None:
            return None

        current = SessionUser.from_user(user)
        session.last_activity = now
        db.commit()
        return current
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("session_lookup_failed", error=str(e))
        return None


def invalidate_session(db: Session, token: Optional[str]) -> bool:
    """Deactivate a single session (logout)."""
    try:
        session = _find_session(db, token)
        if session is None:
            return False
        session.is_active = False
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("session_invalidate_failed", error=str(e))
        return False

    logger.info("session_invalidated", user_id=session.user_id)
    return True


def invalidate_all_user_sessions(db: Session, user_id: int) -> int:
    """Deactivate every active session of a member. Returns how many were closed."""
    try:
        closed = (
            db.query(UserSession)
            .filter(UserSession.user_id == user_id, UserSession.is_active.is_(True))
            .update({UserSession.is_active: False}, synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("session_invalidate_all_failed", user_id=user_id, error=str(e))
        return 0

    logger.info("sessions_invalidated", user_id=user_id, count=closed)
    return closed


def renew_session(db: Session, token: Optional[str]) -> bool:
    """Push the expiry of an active session a full duration forward."""
    try:
        session = _find_session(db, token)
        if session is None or not session.is_active:
            return False
        now = utcnow()
        if to_utc(session.expires_at) < now:
            return False
        session.expires_at = now + _session_duration()
        session.last_activity = now
        db.commit()
        return True
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("session_renew_failed", error=str(e))
        return False


def cleanup_expired_sessions(db: Session) -> int:
    """Delete expired and deactivated sessions. Returns the number removed."""
    try:
        removed = (
            db.query(UserSession)
            .filter(or_(UserSession.expires_at < utcnow(), UserSession.is_active.is_(False)))
            .delete(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("session_cleanup_failed", error=str(e))
        return 0

    logger.info("sessions_cleaned_up", count=removed)
    return removed
