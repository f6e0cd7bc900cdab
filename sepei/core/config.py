"""Application configuration.

Values come from environment variables or a ``.env`` file in the working
directory. The defaults only suit local development: production start-up
refuses the development secrets (see ``validate_production_config``).
"""
from typing import List, Optional, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sepei.core.constants import (
    ACCESS_TOKEN_EXPIRE_MINUTES as DEFAULT_ACCESS_TOKEN_EXPIRE_MINUTES,
    SESSION_DURATION_DAYS as DEFAULT_SESSION_DURATION_DAYS,
)

DEFAULT_SECRET_KEY = "dev-secret-key-change-in-production"
DEFAULT_ADMIN_PASSWORD = "adminpass"
DEV_DATABASE_URL = "sqlite:///sepei.db"


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    ENVIRONMENT: str = "development"  # development, testing, staging, production
    LOG_LEVEL: str = "INFO"

    APP_TITLE: str = "SEPEI UNIDO"
    APP_DESCRIPTION: str = "Votaciones y encuestas del colectivo de bomberos"
    APP_VERSION: str = "1.0.0"

    # Database: a full URL, or the POSTGRES_* parts
    DATABASE_URL: Optional[str] = None
    POSTGRES_USER: Optional[str] = None
    POSTGRES_PASSWORD: Optional[str] = None
    POSTGRES_HOST: Optional[str] = None
    POSTGRES_PORT: Optional[str] = None
    POSTGRES_DB: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    # Member sessions. SECRET_KEY also keys the session token lookup HMAC,
    # so rotating it logs every member out.
    SECRET_KEY: str = DEFAULT_SECRET_KEY
    SESSION_DURATION_DAYS: int = DEFAULT_SESSION_DURATION_DAYS
    SESSION_COOKIE_NAME: str = "session_token"

    # Admin panel: Argon2 hash (see hash_password.py) or plaintext in development
    ADMIN_PASSWORD: str = DEFAULT_ADMIN_PASSWORD
    ADMIN_COOKIE_NAME: str = "admin_token"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = DEFAULT_ACCESS_TOKEN_EXPIRE_MINUTES

    # HTTP
    CORS_ORIGINS: Union[List[str], str] = ["*"]
    REDIS_URL: Optional[str] = None  # rate limit counters shared between workers

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        """Accept a comma-separated string as well as a list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    @property
    def cookie_secure(self) -> bool:
        """Cookies only travel over HTTPS in production."""
        return self.ENVIRONMENT == "production"

    def get_database_url(self) -> str:
        """
        Resolve the SQLAlchemy database URL.

        DATABASE_URL wins over the POSTGRES_* parts. Development falls back
        to a local SQLite file; any other environment must configure one.
        """
        url = self.DATABASE_URL
        if not url and all([self.POSTGRES_USER, self.POSTGRES_PASSWORD,
                            self.POSTGRES_HOST, self.POSTGRES_DB]):
            url = (
                f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
                f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT or '5432'}/{self.POSTGRES_DB}"
            )

        if url:
            # Managed Postgres providers still hand out the legacy scheme
            if url.startswith("postgres://"):
                url = "postgresql://" + url[len("postgres://"):]
            return url

        if self.ENVIRONMENT == "development":
            return DEV_DATABASE_URL

        raise ValueError(
            "Database configuration missing. Provide either DATABASE_URL or "
            "all of: POSTGRES_USER, POSTGRES_PASSWORD, POSTGRES_HOST, POSTGRES_DB"
        )

    def production_issues(self) -> List[str]:
        """Settings that are acceptable locally but not in production."""
        issues = []
        if self.SECRET_KEY == DEFAULT_SECRET_KEY:
            issues.append("SECRET_KEY must be changed from default value")
        if self.ADMIN_PASSWORD == DEFAULT_ADMIN_PASSWORD:
            issues.append("ADMIN_PASSWORD must be changed from default value")
        if self.CORS_ORIGINS == ["*"]:
            issues.append("CORS_ORIGINS should be restricted to specific domains")
        if self.get_database_url().startswith("sqlite"):
            issues.append("DATABASE_URL must point to the production database")
        return issues

    def validate_production_config(self) -> None:
        """Raise ValueError listing every production issue. No-op elsewhere."""
        if self.ENVIRONMENT != "production":
            return

        issues = self.production_issues()
        if issues:
            raise ValueError(
                "Production configuration errors:\n" +
                "\n".join(f"  - {issue}" for issue in issues)
            )


settings = Settings()
