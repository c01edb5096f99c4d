"""
Tests for settings parsing and derived connection URLs.
"""

import pytest

from app.core.config import Settings


class TestPostgresUrls:

    @pytest.mark.parametrize("dsn", [
        "postgres://u:p@db:5432/geo",
        "postgresql://u:p@db:5432/geo",
        "postgresql+psycopg2://u:p@db:5432/geo",
    ])
    def test_async_and_sync_schemes(self, dsn):
        settings = Settings(POSTGRES_DSN=dsn)

        assert settings.postgres_url == "postgresql+asyncpg://u:p@db:5432/geo"
        assert settings.postgres_sync_url == "postgresql+psycopg2://u:p@db:5432/geo"

    def test_unknown_scheme_untouched(self):
        assert Settings(POSTGRES_DSN="sqlite:///x.db").postgres_url == "sqlite:///x.db"


class TestCors:

    def test_comma_separated_origins(self):
        settings = Settings(CORS_ORIGINS="https://a.example, https://b.example")
        assert settings.CORS_ORIGINS == ["https://a.example", "https://b.example"]

    def test_comma_separated_origins_from_environment(self, monkeypatch):
        monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
        assert Settings().CORS_ORIGINS == ["https://a.example", "https://b.example"]

    def test_single_origin_from_environment(self, monkeypatch):
        monkeypatch.setenv("CORS_ORIGINS", "https://app.example")
        assert Settings().CORS_ORIGINS == ["https://app.example"]


def test_deadline_fires_before_worker_kill():
    settings = Settings()
    assert settings.ANALYSIS_DEADLINE_SECONDS < settings.ANALYSIS_HARD_TIME_LIMIT - 3
    assert settings.CRAWLER_MAX_PAGES == 10
