"""Ballot model."""
from datetime import datetime, timezone as tz
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from sepei.db.base import Base


class Ballot(Base):
    __tablename__ = "votos"

    id = Column(Integer, primary_key=True, autoincrement=True)
    votacion_id = Column(Integer, ForeignKey("votaciones.id", ondelete="CASCADE"), nullable=False)
    opcion_id = Column(Integer, ForeignKey("opciones_votacion.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(20), nullable=False)  # normalized voter identifier
    user_email = Column(String(255), nullable=False)
    fecha_voto = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(tz.utc))

    # Relationships
    poll = relationship("Poll", back_populates="ballots")
    option = relationship("PollOption", back_populates="ballots")

    __table_args__ = (
        Index("idx_votos_votacion", "votacion_id"),
        Index("idx_votos_opcion", "opcion_id"),
        UniqueConstraint("votacion_id", "user_id", "opcion_id", name="uq_voto_votacion_user_opcion"),
    )
