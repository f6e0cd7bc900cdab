"""Unit tests for application settings."""
import pytest

from sepei.core.config import Settings


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the developer's shell configuration out of these tests."""
    for name in (
        "DATABASE_URL", "POSTGRES_USER", "POSTGRES_PASSWORD", "POSTGRES_HOST",
        "POSTGRES_PORT", "POSTGRES_DB", "SECRET_KEY", "ADMIN_PASSWORD", "CORS_ORIGINS",
    ):
        monkeypatch.delenv(name, raising=False)


def _settings(**values):
    return Settings(_env_file=None, **values)


@pytest.mark.unit
class TestDatabaseUrl:
    def test_legacy_postgres_scheme(self):
        settings = _settings(DATABASE_URL="postgres://u:p@db:5432/sepei")
        assert settings.get_database_url() == "postgresql://u:p@db:5432/sepei"

    def test_components(self):
        settings = _settings(
            POSTGRES_USER="u", POSTGRES_PASSWORD="p", POSTGRES_HOST="db", POSTGRES_DB="sepei"
        )
        assert settings.get_database_url() == "postgresql://u:p@db:5432/sepei"

    def test_sqlite_fallback_in_development(self):
        assert _settings(ENVIRONMENT="development").get_database_url() == "sqlite:///sepei.db"

    def test_missing_outside_development(self):
        with pytest.raises(ValueError, match="Database configuration missing"):
            _settings(ENVIRONMENT="staging").get_database_url()


@pytest.mark.unit
class TestProductionValidation:
    def test_defaults_rejected(self):
        settings = _settings(ENVIRONMENT="production", DATABASE_URL="postgresql://u:p@db/sepei")
        with pytest.raises(ValueError) as exc_info:
            settings.validate_production_config()

        message = str(exc_info.value)
        assert "SECRET_KEY" in message
        assert "ADMIN_PASSWORD" in message
        assert "CORS_ORIGINS" in message

    def test_sqlite_rejected(self):
        settings = _settings(
            ENVIRONMENT="production",
            DATABASE_URL="sqlite:///sepei.db",
            SECRET_KEY="x" * 48,
            ADMIN_PASSWORD="$argon2id$v=19$m=65536,t=2,p=1$c2FsdA$aGFzaA",
            CORS_ORIGINS="https://sepeiunido.es",
        )
        with pytest.raises(ValueError, match="production database"):
            settings.validate_production_config()

    def test_valid_production_config(self):
        settings = _settings(
            ENVIRONMENT="production",
            DATABASE_URL="postgresql://u:p@db/sepei",
            SECRET_KEY="x" * 48,
            ADMIN_PASSWORD="Cuartel2025",
            CORS_ORIGINS="https://sepeiunido.es, https://admin.sepeiunido.es",
        )
        settings.validate_production_config()
        assert settings.CORS_ORIGINS == ["https://sepeiunido.es", "https://admin.sepeiunido.es"]

    def test_other_environments_skip_validation(self):
        _settings(ENVIRONMENT="development").validate_production_config()

    def test_app_factory_refuses_development_secrets_in_production(self):
        from sepei.main import create_app

        with pytest.raises(ValueError, match="Production configuration errors"):
            create_app(_settings(ENVIRONMENT="production", DATABASE_URL="postgresql://u:p@db/sepei"))
