"""Shared API dependencies."""
from typing import Optional

import structlog
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from sepei.core.config import settings
from sepei.core.security import verify_admin_token
from sepei.db import get_db
from sepei.services.sessions import SessionUser, get_current_user

__all__ = [
    "get_db",
    "verify_admin_token",
    "get_session_token",
    "get_optional_user",
    "require_user",
]


def get_session_token(request: Request) -> Optional[str]:
    """Read the member session token from the Authorization header or the cookie."""
    authorization = request.headers.get("Authorization")
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[SessionUser]:
    """The calling member, or None for anonymous requests."""
    user = get_current_user(db, get_session_token(request))
    if user is not None:
        structlog.contextvars.bind_contextvars(user_id=user.id)
    return user


def require_user(user: Optional[SessionUser] = Depends(get_optional_user)) -> SessionUser:
    """The calling member; 401 when there is no valid session."""
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user
