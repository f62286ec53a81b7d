"""
Configuration management using pydantic-settings.

Loads deployment settings from environment variables and .env files.
Engine thresholds themselves live in src.engine.config; the fields here
only override them per deployment.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # Storage
    audit_db_path: Optional[str] = Field(
        default=None,
        description="SQLite file for audit events (defaults to data/audit.db)",
    )

    # Engine Configuration
    engine_config_file: Optional[str] = Field(
        default=None,
        description="JSON file with engine rule weights, keyword tables and limits",
    )
    risk_medium_threshold: Optional[float] = Field(default=None, description="Override MEDIUM tier breakpoint")
    risk_high_threshold: Optional[float] = Field(default=None, description="Override HIGH tier breakpoint")
    risk_critical_threshold: Optional[float] = Field(default=None, description="Override CRITICAL tier breakpoint")
    risk_escalation_threshold: Optional[float] = Field(
        default=None,
        description="Override SIU escalation threshold (must be >= HIGH)",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to avoid re-reading environment on every call.
    """
    return Settings()


# Global settings instance
settings = get_settings()
