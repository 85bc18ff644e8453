"""Unit tests for infrastructure settings."""

import pytest
from pydantic import ValidationError

from infrastructure.settings import DatabaseSettings, SchemaSettings, Settings


class TestDatabaseSettingsPoolConfiguration:
    """Tests for connection pool configuration."""

    def test_default_pool_settings(self):
        """Should have sensible pool defaults."""
        settings = DatabaseSettings()
        assert settings.pool_min_connections == 2
        assert settings.pool_max_connections == 10

    def test_pool_max_must_be_greater_than_or_equal_to_min(self):
        """Should reject max < min."""
        with pytest.raises(ValidationError) as exc_info:
            DatabaseSettings(pool_min_connections=10, pool_max_connections=5)

        assert "pool_max_connections" in str(exc_info.value)

    def test_pool_max_equal_to_min_is_valid(self):
        """Should allow max == min."""
        settings = DatabaseSettings(pool_min_connections=5, pool_max_connections=5)
        assert settings.pool_max_connections == 5

    def test_pool_bounds(self):
        """Pool sizes must stay within 1..100."""
        with pytest.raises(ValidationError):
            DatabaseSettings(pool_min_connections=0)
        with pytest.raises(ValidationError):
            DatabaseSettings(pool_max_connections=101)

    def test_connection_string_omits_password(self):
        """The loggable connection string never contains the password."""
        settings = DatabaseSettings(password="s3cret", username="u", host="h", database="d")
        assert settings.connection_string == "postgresql://u@h:5432/d"
        assert "s3cret" not in settings.connection_string

    def test_reads_prefixed_environment(self, monkeypatch):
        """MORPH_DB_* variables configure the connection."""
        monkeypatch.setenv("MORPH_DB_HOST", "db.internal")
        monkeypatch.setenv("MORPH_DB_PORT", "6543")

        settings = DatabaseSettings()

        assert settings.host == "db.internal"
        assert settings.port == 6543


class TestSchemaSettings:
    """Tests for schema mutation settings."""

    def test_defaults(self):
        """Lock and history defaults."""
        settings = SchemaSettings()
        assert settings.lock_timeout_seconds == 30.0
        assert settings.lock_retry_interval_ms == 100
        assert settings.lock_max_retries == 50
        assert settings.history_default_limit == 100
        assert settings.max_logical_name_length == 255

    def test_reads_prefixed_environment(self, monkeypatch):
        """MORPH_SCHEMA_* variables override defaults."""
        monkeypatch.setenv("MORPH_SCHEMA_LOCK_TIMEOUT_SECONDS", "2.5")
        assert SchemaSettings().lock_timeout_seconds == 2.5

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValidationError):
            SchemaSettings(lock_timeout_seconds=0)

    def test_name_length_cannot_exceed_255(self):
        """Logical names are stored in 255-character columns."""
        with pytest.raises(ValidationError):
            SchemaSettings(max_logical_name_length=256)


class TestAppSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.app_name == "Morph Engine API"
        assert settings.debug is False
