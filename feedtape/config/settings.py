"""
FeedTape Configuration System
============================

Configuration management with environment variables and Pydantic models.
Environment variables (``FEEDTAPE_`` prefix, ``__`` for nesting) override
Field defaults, e.g. ``FEEDTAPE_PIPELINE__FEED_WORKERS=3``.
"""

from pathlib import Path
from typing import Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from ..utils.exceptions import ConfigurationError, ErrorCode


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class PipelineSettings(BaseModel):
    """Worker pool sizing for the two-level scheduler."""
    feed_workers: int = Field(default=5, ge=1, le=50, description="Concurrent feed workers")
    entry_workers: int = Field(default=5, ge=1, le=50, description="Concurrent entry workers per feed")
    max_entries_per_feed: int = Field(default=15, ge=1, le=500, description="Entries kept per feed document")
    max_concurrent_retries: int = Field(default=5, ge=1, le=50, description="Manual feed retries allowed at once")


class LimitsSettings(BaseModel):
    """Timeouts and content size limits."""
    fetch_timeout: float = Field(default=15.0, gt=0, le=300, description="Feed fetch ceiling in seconds")
    max_content_length: int = Field(default=500_000, ge=1_000, description="Raw body byte ceiling before cleaning")
    min_content_length: int = Field(default=50, ge=0, description="Shortest cleaned text worth speaking")

    @model_validator(mode="after")
    def validate_bounds(self):
        """Ensure the minimum cleaned length stays below the raw ceiling."""
        if self.min_content_length >= self.max_content_length:
            raise ValueError("min_content_length must be smaller than max_content_length")
        return self


class ApiSettings(BaseModel):
    """Backend API used by the feed directory and authenticated fetches."""
    base_url: Optional[str] = Field(default=None, description="Backend base URL")
    access_token: Optional[str] = Field(default=None, description="Bearer token for backend calls")
    user_agent: str = Field(default="FeedTape/1.0 (+https://feedtape.app)", description="HTTP User-Agent")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v):
        """Strip trailing slash and require an http(s) scheme."""
        if v is None:
            return v
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("api.base_url must start with http:// or https://")
        return v


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default=None, description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging")
    console_logging: bool = Field(default=True, description="Enable console logging")


class FeedTapeSettings(BaseSettings):
    """Main application settings."""

    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    limits: LimitsSettings = Field(default_factory=LimitsSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    app_name: str = Field(default="FeedTape", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "env_prefix": "FEEDTAPE_",
        "extra": "ignore",
    }

    def validate_configuration(self) -> None:
        """Validate cross-section configuration."""
        errors = []

        if self.logging.file_path:
            try:
                Path(self.logging.file_path).parent.mkdir(parents=True, exist_ok=True)
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


def load_settings() -> FeedTapeSettings:
    """Load settings from environment variables, ``.env`` and defaults.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        settings = FeedTapeSettings()
        settings.validate_configuration()
        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID
        ) from e


# Global settings instance
_settings: Optional[FeedTapeSettings] = None


def get_settings(reload: bool = False) -> FeedTapeSettings:
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
