# backend/tests/test_config.py
"""Tests for environment-dependent database URL validation."""

import pytest
from pydantic import ValidationError

from folio.config import Settings


def _settings(**values) -> Settings:
    return Settings(_env_file=None, **values)


class TestDatabaseConfig:

    def test_test_mode_defaults_to_memory_sqlite(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)

        settings = _settings(environment="test")

        assert settings.database_url == "sqlite:///:memory:"
        assert settings.is_sqlite
        assert settings.is_test

    def test_development_requires_url(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)

        with pytest.raises(ValidationError) as exc_info:
            _settings(environment="development")

        assert "DATABASE_URL is required" in str(exc_info.value)

    def test_development_sqlite_warns(self):
        with pytest.warns(UserWarning, match="SQLite"):
            settings = _settings(environment="development", database_url="sqlite:///./folio.db")

        assert settings.is_sqlite
        assert not settings.is_production

    def test_production_rejects_sqlite(self):
        with pytest.raises(ValidationError) as exc_info:
            _settings(environment="production", database_url="sqlite:///./folio.db")

        assert "PostgreSQL" in str(exc_info.value)

    def test_production_postgres(self):
        settings = _settings(
            environment="production",
            database_url="postgresql://folio:secret@db:5432/folio",
        )

        assert settings.is_production
        assert not settings.is_sqlite

    def test_pool_size_bounds(self):
        with pytest.raises(ValidationError):
            _settings(environment="test", db_pool_size=0)
