"""Fixtures shared by the unit and integration suites.

Every test gets its own in-memory SQLite database. The FastAPI app is
pointed at it through a ``get_db`` override, and the factories below insert
members and polls straight through the service layer.
"""
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from sepei.api.deps import get_db
from sepei.core import config
from sepei.core.rate_limit import limiter
from sepei.core.security import create_admin_token, get_password_hash
from sepei.core.utils import utcnow
from sepei.db.base import Base
from sepei.db.models import User
from sepei.main import app
from sepei.services.polls import create_poll
from sepei.services.sessions import SessionUser, create_session

MEMBER_PASSWORD = "Bomberos2025"


@pytest.fixture(autouse=True)
def rate_limits(request):
    """Counters start empty for ``rate_limit`` tests; everywhere else the limiter is off."""
    enforce = "rate_limit" in request.keywords
    limiter.enabled = enforce
    limiter.reset()
    yield
    limiter.enabled = True
    limiter.reset()


@pytest.fixture
def db_session():
    # StaticPool keeps the single in-memory connection alive across threads
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = Session(bind=engine, autoflush=False)
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def client(db_session):
    """TestClient whose requests all share ``db_session``."""
    app.dependency_overrides[get_db] = lambda: db_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client):
    """``client`` carrying a valid admin panel cookie."""
    client.cookies.set(config.settings.ADMIN_COOKIE_NAME, create_admin_token())
    return client


@pytest.fixture
def make_user(db_session):
    """Factory inserting members directly, bypassing registration rules."""
    def _make_user(dni="12345678Z", email=None, verified=True, authorized=True, nombre="Ana"):
        user = User(
            dni=dni,
            nombre=nombre,
            email=email or f"{dni.lower()}@bomberos.test",
            password_hash=get_password_hash(MEMBER_PASSWORD),
            verified=verified,
            autorizado_votar=authorized,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _make_user


@pytest.fixture
def member(make_user):
    """A verified member with the right to vote."""
    return SessionUser.from_user(make_user())


@pytest.fixture
def other_member(make_user):
    return SessionUser.from_user(make_user(dni="00000000T"))


@pytest.fixture
def member_headers(db_session, member):
    """Authorization header carrying a live session of ``member``."""
    token = create_session(db_session, member.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_poll(db_session):
    """Factory for published polls open from one hour ago to one hour ahead."""
    def _make_poll(options=("Turno A", "Turno B"), start=None, end=None, **fields):
        now = utcnow()
        values = {
            "titulo": "Horario",
            "tipo": "votacion",
            "fecha_inicio": start or now - timedelta(hours=1),
            "fecha_fin": end or now + timedelta(hours=1),
            "publicado": True,
        }
        values.update(fields)
        poll_id = create_poll(db_session, values, list(options))
        assert poll_id is not None
        return poll_id
    return _make_poll
