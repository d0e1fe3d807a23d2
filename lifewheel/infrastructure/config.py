"""
Centralized configuration management for the wheel of life application.

Provides environment-specific configuration with validation, type safety,
and comprehensive settings management using Pydantic.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings

from .exceptions import ConfigurationError

DEFAULT_SESSION_TTL_SECONDS = 2 * 60 * 60


class DatabaseConfig(BaseSettings):
    """
    Database configuration settings.

    Example:
        >>> db_config = DatabaseConfig(sqlite_path="./test.db")
        >>> print(db_config.get_connection_url())
        >>> # sqlite:///./test.db
    """

    sqlite_path: str = Field("./wheel_of_life.db", description="SQLite database file path")
    pool_pre_ping: bool = Field(True, description="Enable connection pool pre-ping")
    echo: bool = Field(False, description="Enable SQL query logging")

    model_config = {"env_prefix": "DB_", "case_sensitive": False}

    @field_validator("sqlite_path")
    def validate_sqlite_path(cls, v):
        """Validate SQLite path and ensure directory exists."""
        if v and v != ":memory:":
            path = Path(v)
            path.parent.mkdir(parents=True, exist_ok=True)
            if not path.suffix:
                v = str(path.with_suffix(".db"))
        return v

    def get_connection_url(self) -> str:
        return f"sqlite:///{self.sqlite_path}"

    def get_engine_options(self) -> dict[str, Any]:
        """
        Get SQLAlchemy engine options.

        Returns:
            Dictionary of engine configuration options
        """
        return {
            "echo": self.echo,
            "future": True,
            "pool_pre_ping": self.pool_pre_ping,
            "connect_args": {"check_same_thread": False},
        }


class LoggingConfig(BaseSettings):
    """
    Logging configuration settings.

    Example:
        >>> log_config = LoggingConfig(level="DEBUG", file_path="./logs/app.log")
        >>> log_config.structured
        True
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        "INFO", description="Minimum logging level"
    )
    file_path: str | None = Field("./logs/app.log", description="Log file path")
    max_bytes: int = Field(10 * 1024 * 1024, ge=1024, description="Max log file size in bytes")
    backup_count: int = Field(5, ge=1, description="Number of backup log files")
    structured: bool = Field(True, description="Use structured JSON logging")
    console_enabled: bool = Field(True, description="Enable console output")

    model_config = {"env_prefix": "LOG_", "case_sensitive": False}


class AssessmentConfig(BaseSettings):
    """
    Assessment flow settings: score bounds, processing delay, trend window
    and the identifiers that are granted the admin role on registration.
    """

    score_min: int = Field(1, ge=0, description="Lowest score a category can hold")
    score_max: int = Field(10, ge=1, description="Highest score a category can hold")
    default_score: int = Field(5, description="Score every category starts with")
    processing_delay_ms: int = Field(4000, ge=0, description="Settling animation duration (ms)")
    trend_window: int = Field(5, ge=1, description="Number of recent entries in the trend")
    session_ttl_seconds: int = Field(
        DEFAULT_SESSION_TTL_SECONDS, ge=1, description="Idle time before an open assessment is dropped"
    )
    admin_identifiers: list[str] = Field(
        default_factory=lambda: ["09120000000"],
        description="Mobile numbers registered with the admin role",
    )

    model_config = {"env_prefix": "ASSESSMENT_", "case_sensitive": False}

    @model_validator(mode="after")
    def validate_score_bounds(self):
        if self.score_min >= self.score_max:
            raise ValueError("score_min must be lower than score_max")
        if not (self.score_min <= self.default_score <= self.score_max):
            raise ValueError("default_score must lie within [score_min, score_max]")
        return self

    @property
    def processing_delay_seconds(self) -> float:
        return self.processing_delay_ms / 1000.0


class NarrativeConfig(BaseSettings):
    """
    Settings for the generated narrative analysis.

    Example:
        >>> cfg = NarrativeConfig(api_key="sk-ant-...", timeout_seconds=20)
        >>> cfg.enabled
        True
    """

    api_key: str | None = Field(None, description="Anthropic API key")
    model: str = Field("claude-3-5-haiku-latest", description="Model used for the analysis")
    max_tokens: int = Field(600, ge=64, description="Max tokens per reply")
    timeout_seconds: float = Field(30.0, gt=0, description="Hard limit for one narrative call")

    missing_key_message: str = Field(
        "سرویس تحلیل هوشمند در حال حاضر در دسترس نیست. لطفا کلید API را بررسی کنید."
    )
    error_message: str = Field(
        "متاسفانه مشکلی در ارتباط با هوش مصنوعی پیش آمد. لطفاً اتصال اینترنت خود را بررسی کنید."
    )
    empty_reply_message: str = Field("خطا در دریافت پاسخ از هوش مصنوعی.")

    model_config = {"env_prefix": "NARRATIVE_", "case_sensitive": False}

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


class ApplicationConfig(BaseSettings):
    """
    Main application configuration.

    Example:
        >>> config = get_settings()
        >>> print(config.app.environment)
    """

    environment: Literal["development", "testing", "production"] = Field(
        "development", description="Application environment"
    )
    debug: bool = Field(False, description="Enable debug mode")
    title: str = Field("Wheel of Life", description="Application title")
    version: str = Field("0.1.0", description="Application version")

    model_config = {"env_prefix": "APP_", "case_sensitive": False}

    @model_validator(mode="after")
    def debug_implies_development(self):
        """Ensure debug mode is only enabled in development."""
        if self.debug and self.environment == "production":
            raise ValueError("Debug mode cannot be enabled in production")
        return self


def _load(factory, key: str, **overrides: Any):
    try:
        return factory(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid {key} configuration: {e}", config_key=key) from e


class Settings:
    """
    Complete application settings container.

    Example:
        >>> settings = get_settings()
        >>> print(settings.database.get_connection_url())
        >>> print(settings.assessment.trend_window)
    """

    def __init__(self):
        self._app: ApplicationConfig | None = None
        self._database: DatabaseConfig | None = None
        self._logging: LoggingConfig | None = None
        self._assessment: AssessmentConfig | None = None
        self._narrative: NarrativeConfig | None = None

    @property
    def app(self) -> ApplicationConfig:
        if self._app is None:
            self._app = _load(ApplicationConfig, "app")
        return self._app

    @property
    def database(self) -> DatabaseConfig:
        if self._database is None:
            self._database = _load(DatabaseConfig, "database")
        return self._database

    @property
    def logging(self) -> LoggingConfig:
        if self._logging is None:
            level = "DEBUG" if self.app.debug else "INFO"
            if self.app.environment == "production":
                level = "WARNING"
            self._logging = _load(LoggingConfig, "logging", level=level)
        return self._logging

    @property
    def assessment(self) -> AssessmentConfig:
        if self._assessment is None:
            self._assessment = _load(AssessmentConfig, "assessment")
        return self._assessment

    @property
    def narrative(self) -> NarrativeConfig:
        if self._narrative is None:
            self._narrative = _load(NarrativeConfig, "narrative")
        return self._narrative

    def get_environment_info(self) -> dict[str, Any]:
        """Get summary of current environment configuration."""
        return {
            "environment": self.app.environment,
            "version": self.app.version,
            "debug": self.app.debug,
            "logging_level": self.logging.level,
            "narrative_enabled": self.narrative.enabled,
            "processing_delay_ms": self.assessment.processing_delay_ms,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get application settings instance (cached).

    Returns:
        Settings instance with all configuration loaded
    """
    return Settings()


def override_settings(**kwargs) -> Settings:
    """
    Override specific settings for testing or development.

    Keys are environment variable names without the case requirement, e.g.
    ``assessment_processing_delay_ms=0`` or ``app_environment="testing"``.

    Example:
        >>> settings = override_settings(app_environment="testing", db_sqlite_path=":memory:")
    """
    for key, value in kwargs.items():
        os.environ[key.upper()] = str(value)

    get_settings.cache_clear()
    return get_settings()


def reset_settings() -> None:
    """Reset settings cache to reload from environment."""
    get_settings.cache_clear()
