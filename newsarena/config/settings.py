"""
NewsArena Configuration System
==============================

Configuration management with environment variables and Pydantic models.
Environment variables (prefix ``NEWSARENA_``, nested with ``__``) override
Field defaults.
"""

from pathlib import Path
from typing import Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from .. import __version__
from ..utils.exceptions import ConfigurationError, ErrorCode


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class IngestionSettings(BaseModel):
    """Feed fetching and normalization configuration."""
    request_timeout: float = Field(default=10.0, gt=0, le=120, description="Per-attempt fetch timeout in seconds")
    max_fetch_attempts: int = Field(default=3, ge=1, le=10, description="Total fetch attempts per feed")
    retry_base_delay: float = Field(default=2.0, ge=0.0, le=60.0, description="Seconds multiplied by attempt number between fetch retries")
    source_delay_seconds: float = Field(default=2.0, ge=0.0, le=60.0, description="Pause between consecutive sources in a multi-source run")
    max_summary_length: int = Field(default=300, ge=50, le=2000, description="Summary length before the ellipsis is appended")
    max_snippet_length: int = Field(default=500, ge=50, le=5000, description="Content snippet length before the ellipsis is appended")
    max_tags: int = Field(default=10, ge=1, le=10, description="Maximum tags per article")
    default_category: str = Field(default="general", description="Category when no keyword matches")
    default_language: str = Field(default="en", description="Language when no script is detected")
    user_agent: Optional[str] = Field(default=None, description="Override for the User-Agent header")

    @field_validator("default_category", "default_language")
    @classmethod
    def validate_not_blank(cls, v):
        """Defaults must be non-empty tokens."""
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class SchedulerSettings(BaseModel):
    """Recurring ingestion schedule."""
    interval_minutes: float = Field(default=15, gt=0, le=24 * 60, description="Minutes between scheduled runs")
    max_retries: int = Field(default=3, ge=0, le=10, description="Whole-run retries when any source fails")
    retry_delay_minutes: float = Field(default=5, ge=0, le=24 * 60, description="Minutes before a failed run is retried")


class DatabaseSettings(BaseModel):
    """Database configuration."""
    path: str = Field(default="data/newsarena.db", description="SQLite database file path")
    pool_size: int = Field(default=5, ge=1, le=20, description="Connection pool size")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default="logs/newsarena.log", description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging on the console")
    console_logging: bool = Field(default=True, description="Enable console logging")


class NewsArenaSettings(BaseSettings):
    """Main application settings."""

    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    app_name: str = Field(default="NewsArena", description="Application name")
    version: str = Field(default=__version__, description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "env_prefix": "NEWSARENA_",
        "extra": "ignore",
    }

    @property
    def user_agent(self) -> str:
        """User-Agent header sent with every feed request."""
        return self.ingestion.user_agent or f"{self.app_name}/{self.version} (News Aggregator)"

    def validate_configuration(self) -> None:
        """Validate complete configuration and prepare writable paths."""
        errors = []

        try:
            db_path = Path(self.database.path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Invalid database path: {e}")

        if self.logging.file_path:
            try:
                log_path = Path(self.logging.file_path)
                log_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Invalid log file path: {e}")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID
            )

    def get_effective_log_level(self) -> str:
        """Get effective log level considering debug mode."""
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


def load_settings() -> NewsArenaSettings:
    """Load settings from environment variables, ``.env`` and defaults.

    Returns:
        Loaded and validated settings

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        settings = NewsArenaSettings()
        settings.validate_configuration()
        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID
        ) from e


_settings: Optional[NewsArenaSettings] = None


def get_settings(reload: bool = False) -> NewsArenaSettings:
    """Get global settings instance (singleton pattern).

    Args:
        reload: Force reload of settings

    Returns:
        Global settings instance
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings
