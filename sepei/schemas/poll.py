"""Poll schemas."""
from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from sepei.core.constants import MAX_POLL_OPTIONS, MIN_POLL_OPTIONS
from sepei.core.utils import to_utc
from sepei.core.sanitization import (
    MAX_POLL_DESCRIPTION_LENGTH,
    sanitize_option_text,
    sanitize_poll_title,
    sanitize_text,
)

PollKind = Literal["votacion", "encuesta", "referendum"]


def _sanitize_options(options: List[str]) -> List[str]:
    return [sanitize_option_text(text) for text in options]


def _sanitize_description(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    return sanitize_text(v, max_length=MAX_POLL_DESCRIPTION_LENGTH) or None


class PollCreate(BaseModel):
    titulo: str = Field(..., min_length=1, max_length=200)
    descripcion: Optional[str] = Field(None, max_length=MAX_POLL_DESCRIPTION_LENGTH)
    tipo: PollKind = "votacion"
    fecha_inicio: datetime
    fecha_fin: datetime
    publicado: bool = False
    resultados_publicos: bool = False
    multiple_respuestas: bool = False
    opciones: List[str] = Field(..., min_length=MIN_POLL_OPTIONS, max_length=MAX_POLL_OPTIONS)

    @field_validator('titulo')
    @classmethod
    def sanitize_title_field(cls, v: str) -> str:
        return sanitize_poll_title(v)

    @field_validator('descripcion')
    @classmethod
    def sanitize_description_field(cls, v: Optional[str]) -> Optional[str]:
        return _sanitize_description(v)

    @field_validator('opciones')
    @classmethod
    def sanitize_options_field(cls, v: List[str]) -> List[str]:
        return _sanitize_options(v)

    @model_validator(mode='after')
    def check_window(self) -> "PollCreate":
        if to_utc(self.fecha_fin) <= to_utc(self.fecha_inicio):
            raise ValueError("Closing time must be after opening time")
        return self


class PollUpdate(BaseModel):
    """Partial update. ``opciones``, when present, replaces the whole option set."""
    titulo: Optional[str] = Field(None, min_length=1, max_length=200)
    descripcion: Optional[str] = Field(None, max_length=MAX_POLL_DESCRIPTION_LENGTH)
    tipo: Optional[PollKind] = None
    fecha_inicio: Optional[datetime] = None
    fecha_fin: Optional[datetime] = None
    publicado: Optional[bool] = None
    resultados_publicos: Optional[bool] = None
    multiple_respuestas: Optional[bool] = None
    opciones: Optional[List[str]] = Field(None, min_length=MIN_POLL_OPTIONS, max_length=MAX_POLL_OPTIONS)

    @field_validator('titulo')
    @classmethod
    def sanitize_title_field(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_poll_title(v) if v is not None else v

    @field_validator('descripcion')
    @classmethod
    def sanitize_description_field(cls, v: Optional[str]) -> Optional[str]:
        return _sanitize_description(v)

    @field_validator('opciones')
    @classmethod
    def sanitize_options_field(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _sanitize_options(v) if v is not None else v


class PollResponse(BaseModel):
    poll_id: int


class OptionDetail(BaseModel):
    id: int
    texto: str
    orden: int


class ResultRow(BaseModel):
    opcion_id: int
    texto: str
    total_votos: int
    porcentaje: float


class PollDetail(BaseModel):
    """Poll as shown in the admin panel."""
    id: int
    titulo: str
    descripcion: Optional[str] = None
    tipo: str
    fecha_inicio: datetime
    fecha_fin: datetime
    publicado: bool
    resultados_publicos: bool
    multiple_respuestas: bool
    creado_por: Optional[str] = None
    fecha_creacion: datetime
    estado: str
    opciones: List[OptionDetail]
    total_votos: int


class MemberPoll(PollDetail):
    """Poll as shown to a member, with their own voting state."""
    usuario_ya_voto: bool = False
    resultados: Optional[List[ResultRow]] = None
