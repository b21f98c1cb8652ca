"""Tests for settings and engine configuration."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from bulkload.core.config import Settings, get_settings
from bulkload.core.connections import (
    ConnectionConfig,
    ConnectionManager,
    close_default_manager,
    create_bulk_engine,
    get_connection_manager,
)
from bulkload.core.exceptions import UnsupportedConnectionError


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("BULKLOAD_RETRY_MAX_ATTEMPTS", raising=False)
        settings = Settings(_env_file=None)

        assert settings.retry_max_attempts == 2
        assert settings.retry_report == "final_outcome"
        assert settings.strict_connection_type is True
        assert settings.database_url.startswith("postgresql+psycopg://")

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("BULKLOAD_RETRY_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("BULKLOAD_RETRY_REPORT", "first_failure")
        monkeypatch.setenv("BULKLOAD_STRICT_CONNECTION_TYPE", "false")

        settings = Settings(_env_file=None)

        assert settings.retry_max_attempts == 5
        assert settings.retry_report == "first_failure"
        assert settings.strict_connection_type is False

    @pytest.mark.parametrize(
        "overrides",
        [
            {"retry_max_attempts": 0},
            {"retry_backoff_seconds": -1},
            {"retry_report": "sometimes"},
        ],
    )
    def test_invalid_values(self, overrides):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **overrides)

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestConnectionConfig:
    def test_from_settings_with_overrides(self):
        settings = Settings(
            _env_file=None,
            database_url="postgresql+psycopg://u:p@db:5432/app",
            pool_size=3,
        )

        config = ConnectionConfig.from_settings(settings, echo_sql=True)

        assert config.database_url == "postgresql+psycopg://u:p@db:5432/app"
        assert config.pool_size == 3
        assert config.echo_sql is True

    @pytest.mark.parametrize(
        "url",
        [
            "postgresql+psycopg2://u:p@db/app",
            "postgresql://u:p@db/app",
            "sqlite://",
        ],
    )
    def test_engine_requires_psycopg(self, url):
        with pytest.raises(UnsupportedConnectionError, match="postgresql\\+psycopg"):
            create_bulk_engine(ConnectionConfig(database_url=url))

    def test_engine_for_psycopg_url(self):
        engine = create_bulk_engine(
            ConnectionConfig(database_url="postgresql+psycopg://u:p@db:5432/app")
        )

        assert engine.dialect.name == "postgresql"
        assert engine.dialect.driver == "psycopg"
        engine.dispose()


class TestConnectionManager:
    def test_engine_before_initialize(self):
        manager = ConnectionManager(ConnectionConfig(database_url="postgresql+psycopg://db/app"))

        with pytest.raises(RuntimeError, match="not initialized"):
            _ = manager.engine

    def test_initialize_is_idempotent(self):
        manager = ConnectionManager(ConnectionConfig(database_url="postgresql+psycopg://db/app"))
        manager.initialize()
        engine = manager.engine

        manager.initialize()

        assert manager.engine is engine
        manager.close()
        manager.close()


class TestDefaultManager:
    """Module-level manager for simple scripts."""

    def test_created_once_and_initialized(self):
        config = ConnectionConfig(database_url="postgresql+psycopg://db/app")
        try:
            manager = get_connection_manager(config)

            assert manager.config is config
            assert manager.engine.dialect.driver == "psycopg"
            assert get_connection_manager() is manager
        finally:
            close_default_manager()

    def test_close_resets_the_default(self):
        config = ConnectionConfig(database_url="postgresql+psycopg://db/app")
        try:
            first = get_connection_manager(config)
            close_default_manager()

            second = get_connection_manager(config)

            assert second is not first
            with pytest.raises(RuntimeError, match="not initialized"):
                _ = first.engine
        finally:
            close_default_manager()
        close_default_manager()
