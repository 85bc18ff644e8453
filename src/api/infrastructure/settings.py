"""Application settings using pydantic-settings.

Settings are loaded from environment variables with sensible defaults
for development. Production deployments should set all values explicitly.
"""

from functools import lru_cache

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database connection settings.

    Environment variables:
        MORPH_DB_HOST: Database host (default: localhost)
        MORPH_DB_PORT: Database port (default: 5432)
        MORPH_DB_DATABASE: Database name (default: morph)
        MORPH_DB_USERNAME: Database user (default: morph)
        MORPH_DB_PASSWORD: Database password (required in production)
        MORPH_DB_POOL_MIN_CONNECTIONS: Minimum connections in pool (default: 2)
        MORPH_DB_POOL_MAX_CONNECTIONS: Maximum connections in pool (default: 10)
    """

    model_config = SettingsConfigDict(
        env_prefix="MORPH_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    database: str = Field(default="morph", description="Database name")
    username: str = Field(default="morph", description="Database username")
    password: SecretStr = Field(
        default=SecretStr(""),
        description="Database password",
    )
    pool_min_connections: int = Field(
        default=2,
        description="Minimum connections in pool",
        ge=1,
        le=100,
    )
    pool_max_connections: int = Field(
        default=10,
        description="Maximum connections in pool",
        ge=1,
        le=100,
    )

    @model_validator(mode="after")
    def validate_pool_settings(self) -> "DatabaseSettings":
        """Validate pool max >= min."""
        if self.pool_max_connections < self.pool_min_connections:
            raise ValueError(
                f"pool_max_connections ({self.pool_max_connections}) must be >= "
                f"pool_min_connections ({self.pool_min_connections})"
            )
        return self

    @property
    def connection_string(self) -> str:
        """Generate a connection string (without password for logging)."""
        return f"postgresql://{self.username}@{self.host}:{self.port}/{self.database}"


class SchemaSettings(BaseSettings):
    """Settings for dynamic schema mutation.

    Environment variables:
        MORPH_SCHEMA_LOCK_TIMEOUT_SECONDS: Max wait for a table lock (default: 30)
        MORPH_SCHEMA_LOCK_RETRY_INTERVAL_MS: Poll interval while waiting (default: 100)
        MORPH_SCHEMA_LOCK_MAX_RETRIES: Max lock polls before giving up (default: 50)
        MORPH_SCHEMA_HISTORY_DEFAULT_LIMIT: Change-log entries per read (default: 100)
        MORPH_SCHEMA_MAX_LOGICAL_NAME_LENGTH: Max logical name length (default: 255)
    """

    model_config = SettingsConfigDict(
        env_prefix="MORPH_SCHEMA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    lock_timeout_seconds: float = Field(
        default=30.0,
        description="Maximum time to wait for a table lock",
        gt=0,
    )
    lock_retry_interval_ms: int = Field(
        default=100,
        description="Interval between lock acquisition attempts",
        ge=1,
        le=10_000,
    )
    lock_max_retries: int = Field(
        default=50,
        description="Maximum lock acquisition attempts",
        ge=1,
    )
    history_default_limit: int = Field(
        default=100,
        description="Default number of change-log entries returned",
        ge=1,
        le=1000,
    )
    max_logical_name_length: int = Field(
        default=255,
        description="Maximum length of a logical name",
        ge=1,
        le=255,
    )


class Settings(BaseSettings):
    """Main application settings aggregating all configuration sections."""

    model_config = SettingsConfigDict(
        env_prefix="MORPH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="Morph Engine API", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")

    @property
    def database(self) -> DatabaseSettings:
        """Get database settings."""
        return get_database_settings()

    @property
    def schema_settings(self) -> SchemaSettings:
        """Get schema mutation settings."""
        return get_schema_settings()


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


@lru_cache
def get_database_settings() -> DatabaseSettings:
    """Get cached database settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return DatabaseSettings()


@lru_cache
def get_schema_settings() -> SchemaSettings:
    """Get cached schema settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return SchemaSettings()
