# tests/unit/test_config.py
"""Unit tests for Settings validation."""

from app.config import Settings


def _settings(**overrides) -> Settings:
    values = {"DATABASE_URL": "sqlite:///:memory:"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def test_postgres_url_gets_driver():
    settings = _settings(DATABASE_URL="postgresql://u:p@db:5432/agro")
    assert settings.DATABASE_URL == "postgresql+psycopg2://u:p@db:5432/agro"


def test_storage_provider_normalized():
    assert _settings(STORAGE_PROVIDER=" S3 ").STORAGE_PROVIDER == "s3"


def test_defaults():
    settings = _settings()
    assert settings.ARCHIVE_COLD_STORAGE_CLASS == "GLACIER_IR"
    assert settings.PRESIGN_TTL_SECONDS == 3600


def test_is_development():
    assert _settings(ENVIRONMENT="Development").is_development
    assert not _settings(ENVIRONMENT="production").is_development
