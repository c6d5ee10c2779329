# app/config.py
"""
Centralized configuration with validation.

Uses pydantic-settings to load and validate all environment variables at startup.
Fail fast with clear error messages if required config is missing.

The archive workflow itself never reads settings directly: callers build an
ArchiveConfig once and pass it in.
"""

from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BATCH_SIZE = 5000
DEFAULT_MIN_SIGNATURE_LIFETIME = timedelta(weeks=2)
DEFAULT_UPSTREAM_QUEUES = ("signature_queue", "validation_queue", "pending_validation_queue")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Databases
    LIVE_DATABASE_URL: str = Field(
        ...,
        description="Connection URL for the live queue store",
    )
    ARCHIVE_DATABASE_URL: str = Field(
        ...,
        description="Connection URL for the archive store",
    )

    # Authentication
    ADMIN_API_KEY: str | None = Field(
        default=None,
        description="API key for admin endpoints (admin endpoints fail closed when unset)",
    )

    # Archiving
    ARCHIVING_ENABLED: bool = Field(
        default=True,
        description="Master switch for all archive data movement",
    )
    ARCHIVE_BATCH_SIZE: int = Field(
        default=DEFAULT_BATCH_SIZE,
        ge=1,
        description="Maximum rows selected per sub-workflow per run",
    )
    MIN_SIGNATURE_LIFETIME: timedelta = Field(
        default=DEFAULT_MIN_SIGNATURE_LIFETIME,
        description="Grace period before an unprocessed, unmatched signature is archived (ISO 8601 or seconds)",
    )
    ORPHAN_DELETE_UNCONFIRMED: bool = Field(
        default=True,
        description="Delete every selected orphaned validation, even those whose archive write failed",
    )
    UPSTREAM_QUEUES: str = Field(
        default=",".join(DEFAULT_UPSTREAM_QUEUES),
        description="Comma-separated upstream queue names used for the drain watermark",
    )

    # Logging
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    LOG_JSON: bool = Field(
        default=True,
        description="Emit single-line JSON logs (False for human-readable output)",
    )

    @field_validator("LIVE_DATABASE_URL", "ARCHIVE_DATABASE_URL")
    @classmethod
    def fix_database_url(cls, v: str) -> str:
        """Hosted Postgres hands out postgresql:// but SQLAlchemy needs postgresql+psycopg2://"""
        if v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+psycopg2://", 1)
        return v

    @field_validator("MIN_SIGNATURE_LIFETIME")
    @classmethod
    def positive_lifetime(cls, v: timedelta) -> timedelta:
        if v < timedelta(0):
            raise ValueError("MIN_SIGNATURE_LIFETIME must not be negative")
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings. Call at startup to validate config."""
    return Settings()


@dataclass(frozen=True)
class ArchiveConfig:
    """
    Tunables for one archive run.

    Defaults:
        enabled: True
        batch_size: 5000 rows per sub-workflow
        min_signature_lifetime: 14 days
        delete_unconfirmed_orphans: True (orphans are removed even when their
            archive write failed; set False to delete only confirmed orphans)
        upstream_queues: signature_queue, validation_queue, pending_validation_queue
    """

    enabled: bool = True
    batch_size: int = DEFAULT_BATCH_SIZE
    min_signature_lifetime: timedelta = DEFAULT_MIN_SIGNATURE_LIFETIME
    delete_unconfirmed_orphans: bool = True
    upstream_queues: tuple[str, ...] = DEFAULT_UPSTREAM_QUEUES

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ArchiveConfig":
        settings = settings or get_settings()
        queues = tuple(q.strip() for q in settings.UPSTREAM_QUEUES.split(",") if q.strip())
        return cls(
            enabled=settings.ARCHIVING_ENABLED,
            batch_size=settings.ARCHIVE_BATCH_SIZE,
            min_signature_lifetime=settings.MIN_SIGNATURE_LIFETIME,
            delete_unconfirmed_orphans=settings.ORPHAN_DELETE_UNCONFIRMED,
            upstream_queues=queues,
        )
