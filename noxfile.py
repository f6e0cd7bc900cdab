"""Automation sessions: ``nox`` runs lint and both test suites."""
import os
from pathlib import Path

import nox

nox.options.reuse_existing_virtualenvs = True
nox.options.sessions = ["lint", "unit", "integration"]

SOURCES = ["sepei/", "tests/", "noxfile.py", "hash_password.py", "run.py"]
PROJECT = ["-e", ".[test]"]

# Forwarded from the caller's shell when set
FORWARDED_ENV = ("SECRET_KEY", "ADMIN_PASSWORD", "DATABASE_URL", "LOG_LEVEL", "REDIS_URL")


def _prepare(session, install_project=True):
    session.env["PYTHONPATH"] = str(Path.cwd())
    session.env["ENVIRONMENT"] = os.environ.get("ENVIRONMENT", "testing")
    session.env.update({name: os.environ[name] for name in FORWARDED_ENV if name in os.environ})
    if install_project:
        session.install(*PROJECT)


def _pytest(session, default_path, *extra):
    session.run(
        "pytest",
        *(session.posargs or [default_path]),
        "--tb=short",
        "-ra",
        *extra,
    )


@nox.session
def lint(session):
    """isort, black and flake8 over the code, mypy over the package."""
    _prepare(session, install_project=False)
    session.install("isort", "black", "flake8", "mypy")
    session.run("isort", "--check-only", "--diff", *SOURCES)
    session.run("black", "--check", "--line-length=120", *SOURCES)
    session.run("flake8", "--max-line-length=120", *SOURCES)
    session.run("mypy", "--ignore-missing-imports", "sepei/")


@nox.session
def unit(session):
    """
    Services and core helpers against in-memory SQLite, with coverage.

    Usage:
      nox -s unit
      nox -s unit -- tests/unit/test_services/test_ballots.py::TestCastBallot
    """
    _prepare(session)
    _pytest(
        session,
        "tests/unit",
        "-m", "unit",
        "--cov=sepei",
        "--cov-report=term-missing",
        "--cov-report=xml",
        "--cov-fail-under=80",
    )


@nox.session
def integration(session):
    """
    HTTP scenarios through the FastAPI TestClient.

    Usage:
      nox -s integration -- tests/integration/test_api/test_voting_flow.py
    """
    _prepare(session)
    _pytest(session, "tests/integration")


@nox.session
def migrations(session):
    """Apply every Alembic migration to a scratch SQLite file and roll them back."""
    _prepare(session)
    scratch = Path(session.create_tmp()) / "migrations.db"
    session.env["DATABASE_URL"] = f"sqlite:///{scratch}"
    session.run("alembic", "upgrade", "head")
    session.run("alembic", "downgrade", "base")
    session.run("alembic", "upgrade", "head")
