"""Member model."""
from datetime import datetime, timezone as tz
from sqlalchemy import Boolean, Column, Integer, String, DateTime
from sqlalchemy.orm import relationship

from sepei.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    dni = Column(String(9), unique=True, nullable=False, index=True)  # normalized, upper-case
    nombre = Column(String(100), nullable=False)
    apellidos = Column(String(100), nullable=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    verified = Column(Boolean, nullable=False, default=False)
    # Granted by an administrator, independent of identity verification
    autorizado_votar = Column(Boolean, nullable=False, default=False)
    fecha_registro = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(tz.utc))

    # Relationships
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")
