"""Authentication endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from sepei.api.deps import get_db, get_session_token, require_user
from sepei.core import config
from sepei.core.logging_config import get_logger
from sepei.core.rate_limit import limiter, RATE_LIMITS
from sepei.core.security import create_admin_token, verify_admin_password
from sepei.schemas import (
    AdminLoginRequest,
    LoginResponse,
    MemberLoginRequest,
    MemberProfile,
    RegisterRequest,
    RegisterResponse,
    SuccessResponse,
)
from sepei.services.sessions import (
    SessionUser,
    create_session,
    invalidate_all_user_sessions,
    invalidate_session,
    renew_session,
)
from sepei.services.users import authenticate_user, register_user

logger = get_logger(__name__)
router = APIRouter()


def _set_auth_cookie(response: Response, key: str, value: str, max_age: int) -> None:
    response.set_cookie(
        key=key,
        value=value,
        httponly=True,
        secure=config.settings.cookie_secure,
        samesite="lax",
        max_age=max_age,
    )


@router.post("/register", response_model=RegisterResponse)
@limiter.limit(RATE_LIMITS["register"])
async def register(
    request: Request,
    registration: RegisterRequest,
    db: Session = Depends(get_db)
) -> RegisterResponse:
    """
    Register a member with DNI/NIE, email and password.

    New members cannot vote until an administrator verifies their identity
    and grants them the right to vote.

    Raises:
        HTTPException: 400 if the DNI/email is taken or the password is weak
    """
    try:
        user_id = register_user(
            db,
            dni=registration.dni,
            nombre=registration.nombre,
            email=registration.email,
            password=registration.password,
            apellidos=registration.apellidos,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return RegisterResponse(user_id=user_id)


@router.post("/login", response_model=LoginResponse)
@limiter.limit(RATE_LIMITS["login"])
async def login(
    request: Request,
    credentials: MemberLoginRequest,
    response: Response,
    db: Session = Depends(get_db)
) -> LoginResponse:
    """
    Log a member in and open a session.

    The session token is returned in the body (for Authorization: Bearer)
    and also set as an httpOnly cookie.

    Raises:
        HTTPException: 401 if the credentials are wrong
        HTTPException: 503 if the session could not be stored
    """
    user = authenticate_user(db, credentials.login, credentials.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = create_session(
        db,
        user.id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("User-Agent"),
    )
    if token is None:
        raise HTTPException(status_code=503, detail="Could not start a session")

    _set_auth_cookie(
        response,
        config.settings.SESSION_COOKIE_NAME,
        token,
        max_age=config.settings.SESSION_DURATION_DAYS * 24 * 60 * 60,
    )
    return LoginResponse(access_token=token)


@router.post("/logout", response_model=SuccessResponse)
async def logout(request: Request, response: Response, db: Session = Depends(get_db)) -> SuccessResponse:
    """Close the caller's session. Succeeds even without one."""
    invalidate_session(db, get_session_token(request))
    response.delete_cookie(key=config.settings.SESSION_COOKIE_NAME)
    return SuccessResponse(success=True, message="Logged out successfully")


@router.post("/logout-all", response_model=SuccessResponse)
async def logout_all(
    response: Response,
    user: SessionUser = Depends(require_user),
    db: Session = Depends(get_db)
) -> SuccessResponse:
    """Close every open session of the caller, on all devices."""
    closed = invalidate_all_user_sessions(db, user.id)
    response.delete_cookie(key=config.settings.SESSION_COOKIE_NAME)
    return SuccessResponse(success=True, message=f"Closed {closed} session(s)")


@router.post("/renew", response_model=SuccessResponse)
async def renew(request: Request, db: Session = Depends(get_db)) -> SuccessResponse:
    """
    Push the expiry of the caller's session a full duration forward.

    Raises:
        HTTPException: 401 if the session is unknown, closed or already expired
    """
    if not renew_session(db, get_session_token(request)):
        raise HTTPException(status_code=401, detail="Session cannot be renewed")
    return SuccessResponse(success=True, message="Session renewed")


@router.get("/me", response_model=MemberProfile)
async def me(user: SessionUser = Depends(require_user)) -> MemberProfile:
    """Profile of the logged-in member, including their voting rights."""
    return MemberProfile.model_validate(user)


@router.post("/admin/login", response_model=SuccessResponse)
@limiter.limit(RATE_LIMITS["login"])
async def admin_login(
    request: Request,
    credentials: AdminLoginRequest,
    response: Response
) -> SuccessResponse:
    """
    Authenticate the admin panel and set a JWT in an httpOnly cookie.

    Raises:
        HTTPException: 401 Unauthorized if password is invalid
    """
    if not verify_admin_password(credentials.password):
        logger.warning("admin_login_failed", client_host=request.client.host if request.client else None)
        raise HTTPException(status_code=401, detail="Invalid password")

    _set_auth_cookie(
        response,
        config.settings.ADMIN_COOKIE_NAME,
        create_admin_token(),
        max_age=config.settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    logger.info("admin_login")
    return SuccessResponse(success=True, message="Logged in successfully")


@router.post("/admin/logout", response_model=SuccessResponse)
async def admin_logout(response: Response) -> SuccessResponse:
    """Clear the admin cookie."""
    response.delete_cookie(key=config.settings.ADMIN_COOKIE_NAME)
    return SuccessResponse(success=True, message="Logged out successfully")
