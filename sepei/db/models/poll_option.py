"""Poll option model."""
from datetime import datetime, timezone as tz
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from sepei.db.base import Base


class PollOption(Base):
    __tablename__ = "opciones_votacion"

    id = Column(Integer, primary_key=True, autoincrement=True)
    votacion_id = Column(Integer, ForeignKey("votaciones.id", ondelete="CASCADE"), nullable=False)
    texto = Column(String(200), nullable=False)
    orden = Column(Integer, nullable=False, default=0)
    fecha_creacion = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(tz.utc))

    # Relationships
    poll = relationship("Poll", back_populates="options")
    ballots = relationship("Ballot", back_populates="option", cascade="all, delete-orphan")

    __table_args__ = (Index("idx_opciones_votacion", "votacion_id"),)
