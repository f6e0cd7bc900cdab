"""Database package."""
from sepei.db.session import engine, SessionLocal, get_db
from sepei.db.base import Base

__all__ = ["engine", "SessionLocal", "get_db", "Base"]
