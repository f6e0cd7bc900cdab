"""Participation model: one row per voter and poll."""
from datetime import datetime, timezone as tz
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from sepei.db.base import Base


class Participation(Base):
    __tablename__ = "participaciones_votacion"

    id = Column(Integer, primary_key=True, autoincrement=True)
    votacion_id = Column(Integer, ForeignKey("votaciones.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(20), nullable=False)  # normalized voter identifier
    fecha_voto = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(tz.utc))

    # Relationships
    poll = relationship("Poll", back_populates="participations")

    __table_args__ = (
        UniqueConstraint("votacion_id", "user_id", name="uq_participacion_votacion_user"),
    )
