"""Poll model."""
from datetime import datetime, timezone as tz
from sqlalchemy import Boolean, Column, Integer, String, Text, DateTime, Index
from sqlalchemy.orm import relationship

from sepei.db.base import Base
from sepei.core.constants import DEFAULT_POLL_KIND


class Poll(Base):
    __tablename__ = "votaciones"

    id = Column(Integer, primary_key=True, autoincrement=True)
    titulo = Column(String(200), nullable=False)
    descripcion = Column(Text, nullable=True)
    tipo = Column(String(20), nullable=False, default=DEFAULT_POLL_KIND)
    fecha_inicio = Column(DateTime(timezone=True), nullable=False)
    fecha_fin = Column(DateTime(timezone=True), nullable=False)
    publicado = Column(Boolean, nullable=False, default=False)
    resultados_publicos = Column(Boolean, nullable=False, default=False)
    multiple_respuestas = Column(Boolean, nullable=False, default=False)
    creado_por = Column(String(100), nullable=True)
    fecha_creacion = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(tz.utc))

    # Relationships
    options = relationship(
        "PollOption",
        back_populates="poll",
        cascade="all, delete-orphan",
        order_by="[PollOption.orden, PollOption.id]",
    )
    participations = relationship("Participation", back_populates="poll", cascade="all, delete-orphan")
    ballots = relationship("Ballot", back_populates="poll", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_votaciones_publicado_window", "publicado", "fecha_inicio", "fecha_fin"),
    )
