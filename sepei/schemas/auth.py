"""Authentication and registration schemas."""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from sepei.core.sanitization import validate_dni, validate_email


class AdminLoginRequest(BaseModel):
    password: str = Field(..., min_length=1)


class MemberLoginRequest(BaseModel):
    login: str = Field(..., min_length=1, max_length=255, description="DNI/NIE or email")
    password: str = Field(..., min_length=1, max_length=128)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class RegisterRequest(BaseModel):
    dni: str = Field(..., min_length=9, max_length=12)
    nombre: str = Field(..., min_length=1, max_length=100)
    apellidos: Optional[str] = Field(None, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator('dni')
    @classmethod
    def validate_dni_field(cls, v: str) -> str:
        """Normalize and check the DNI/NIE control letter."""
        return validate_dni(v)

    @field_validator('email')
    @classmethod
    def validate_email_field(cls, v: str) -> str:
        return validate_email(v)


class RegisterResponse(BaseModel):
    user_id: int


class MemberProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    dni: str
    nombre: str
    apellidos: Optional[str] = None
    email: str
    verified: bool
    voting_authorized: bool
