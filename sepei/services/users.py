"""Member directory business logic."""
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from sepei.core.logging_config import get_logger
from sepei.core.sanitization import (
    DNI_PATTERN,
    NIE_PATTERN,
    normalize_voter_id,
    sanitize_text,
    validate_dni,
    validate_email,
    validate_password_strength,
    MAX_NAME_LENGTH,
)
from sepei.core.security import get_password_hash, verify_password
from sepei.db.models import User

logger = get_logger(__name__)


def register_user(
    db: Session,
    dni: str,
    nombre: str,
    email: str,
    password: str,
    apellidos: Optional[str] = None,
) -> int:
    """Register a member with email and password.

    New members start unverified and without the right to vote; both flags
    are granted by an administrator.

    Returns:
        int: ID of the created member

    Raises:
        ValueError if any field is invalid or the DNI/email is already taken
    """
    dni = validate_dni(dni)
    email = validate_email(email)
    validate_password_strength(password)

    nombre = sanitize_text(nombre, max_length=MAX_NAME_LENGTH)
    if not nombre:
        raise ValueError("Name cannot be empty")
    if apellidos is not None:
        apellidos = sanitize_text(apellidos, max_length=MAX_NAME_LENGTH) or None

    if db.query(User).filter(User.dni == dni).first():
        raise ValueError("A member with this DNI is already registered")
    if db.query(User).filter(User.email == email).first():
        raise ValueError("A member with this email is already registered")

    user = User(
        dni=dni,
        nombre=nombre,
        apellidos=apellidos,
        email=email,
        password_hash=get_password_hash(password),
        verified=False,
        autorizado_votar=False,
    )

    try:
        db.add(user)
        db.commit()
        db.refresh(user)
    except IntegrityError:
        # Concurrent registration with the same DNI or email
        db.rollback()
        raise ValueError("A member with this DNI or email is already registered")

    logger.info("user_registered", user_id=user.id)
    return user.id


def get_user(db: Session, user_id: int) -> Optional[User]:
    try:
        return db.get(User, user_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("get_user_failed", user_id=user_id, error=str(e))
        return None


def list_users(db: Session) -> List[User]:
    """Members, newest registration first. Empty on database errors."""
    try:
        return db.query(User).order_by(User.fecha_registro.desc(), User.id.desc()).all()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("list_users_failed", error=str(e))
        return []


def authenticate_user(db: Session, login: str, password: str) -> Optional[User]:
    """Check credentials given either a DNI/NIE or an email address."""
    if not login or not password:
        return None

    candidate = normalize_voter_id(login)
    try:
        if DNI_PATTERN.match(candidate) or NIE_PATTERN.match(candidate):
            user = db.query(User).filter(User.dni == candidate).first()
        else:
            user = db.query(User).filter(User.email == login.strip().lower()).first()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("authenticate_user_failed", error=str(e))
        return None

    if user is None or not verify_password(password, user.password_hash):
        logger.info("login_failed", login_kind="dni" if "@" not in login else "email")
        return None

    return user


def _set_flag(db: Session, user_id: int, column: str, value: bool) -> bool:
    try:
        user = db.get(User, user_id)
        if user is None:
            return False
        setattr(user, column, value)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("user_flag_failed", user_id=user_id, flag=column, error=str(e))
        return False

    logger.info("user_flag_changed", user_id=user_id, flag=column, value=value)
    return True


def set_verified(db: Session, user_id: int, value: bool) -> bool:
    """Mark a member's identity as verified (or revoke it)."""
    return _set_flag(db, user_id, "verified", value)


def set_voting_authorized(db: Session, user_id: int, value: bool) -> bool:
    """Grant or revoke a member's right to vote."""
    return _set_flag(db, user_id, "autorizado_votar", value)
