# ==============================================================================
# Application Configuration
# ==============================================================================
"""
Configuration management using pydantic-settings.

All configuration is loaded from environment variables, with support for
.env files via python-dotenv.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file before any settings are instantiated
load_dotenv()


class RedisSettings(BaseSettings):
    """Redis connection settings for the event stream."""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: Optional[str] = Field(default=None, description="Redis password")
    db: int = Field(default=0, description="Redis database number")
    ssl: bool = Field(default=False, description="Use SSL/TLS connection")
    socket_timeout: int = Field(default=10, description="Socket timeout in seconds")

    # Stream configuration
    stream_key: str = Field(default="analytics:events", description="Event stream key")

    @property
    def url(self) -> str:
        """Build Redis connection URL."""
        scheme = "rediss" if self.ssl else "redis"
        if self.password:
            return f"{scheme}://:{self.password}@{self.host}:{self.port}/{self.db}"
        return f"{scheme}://{self.host}:{self.port}/{self.db}"


class PostgresSettings(BaseSettings):
    """PostgreSQL connection settings."""

    model_config = SettingsConfigDict(env_prefix="PG_")

    host: str = Field(default="localhost", description="PostgreSQL host")
    port: int = Field(default=5432, description="PostgreSQL port")
    user: str = Field(default="postgres", description="PostgreSQL username")
    password: str = Field(default="postgres", description="PostgreSQL password")
    database: str = Field(default="analytics", description="Database name")
    schema_name: str = Field(default="analytics", description="Schema name")
    sslmode: str = Field(default="prefer", description="SSL mode")

    @property
    def connection_string(self) -> str:
        """Build PostgreSQL connection string."""
        return (
            f"postgresql://{self.user}:{self.password}@"
            f"{self.host}:{self.port}/{self.database}?sslmode={self.sslmode}"
        )


class ConsumerSettings(BaseSettings):
    """Consumer group settings.

    Controls how each worker process reads from the stream, how long it backs
    off after a failed batch, and how stale pending entries are recovered.
    """

    model_config = SettingsConfigDict(env_prefix="CONSUMER_")

    group_name: str = Field(
        default="event-processors",
        description="Consumer group shared by all worker processes",
    )
    batch_size: int = Field(
        default=10,
        description="Maximum messages per group read",
    )
    block_ms: int = Field(
        default=5000,
        description="Group read blocking timeout in milliseconds",
    )
    error_backoff_ms: int = Field(
        default=1000,
        description="Pause after a failed batch before the next loop iteration",
    )
    reclaim_idle_ms: int = Field(
        default=60000,
        description="Claim pending entries idle longer than this (0 disables reclaim)",
    )
    max_deliveries: int = Field(
        default=5,
        description="Dead-letter entries delivered this many times (0 disables)",
    )
    dead_letter_stream: Optional[str] = Field(
        default="analytics:events:dead",
        description="Stream receiving poison messages",
    )
    summary_interval_seconds: float = Field(
        default=30.0,
        description="How often to log throughput summaries",
    )


class EnrichmentSettings(BaseSettings):
    """Enrichment lookup settings."""

    model_config = SettingsConfigDict(env_prefix="ENRICHMENT_")

    geoip_database: Optional[Path] = Field(
        default=None,
        description="Path to a MaxMind GeoLite2/GeoIP2 City database (.mmdb)",
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        extra="ignore",
    )

    # Nested settings
    redis: RedisSettings = Field(default_factory=RedisSettings)
    postgres: PostgresSettings = Field(default_factory=PostgresSettings)
    consumer: ConsumerSettings = Field(default_factory=ConsumerSettings)
    enrichment: EnrichmentSettings = Field(default_factory=EnrichmentSettings)

    # General settings
    log_level: str = Field(default="INFO", description="Logging level")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are loaded once and cached for subsequent calls.
    """
    return Settings()
