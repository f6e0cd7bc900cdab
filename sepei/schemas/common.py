"""Response and request bodies shared by several routers."""
from typing import Optional

from pydantic import BaseModel


class SuccessResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None


class ErrorDetail(BaseModel):
    """Machine-readable ``code`` (e.g. ``already_voted``) with a human message."""
    code: str
    message: str


class ErrorResponse(BaseModel):
    """Body of a refused ballot."""
    detail: ErrorDetail


class FlagUpdate(BaseModel):
    """Body of the publish, results and member flag toggles."""
    value: bool
