"""
Configuration management for ManualFolio.
Uses pydantic-settings for type-safe, centralized configuration.
"""

from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Uses pydantic-settings for validation and type safety.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore'
    )

    # Database
    database_url: str = "sqlite:///manualfolio.db"
    db_echo: bool = False

    # Ledger rules
    oversell_policy: Literal["clamp", "reject"] = "clamp"
    min_password_length: int = 6

    # Display
    display_decimals: int = 2
    app_title: str = "ManualFolio"
    log_level: str = "INFO"

    @property
    def rejects_oversell(self) -> bool:
        """Check if sells beyond the held quantity are refused at entry."""
        return self.oversell_policy == "reject"


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Reload settings from environment (useful for testing)."""
    global _settings
    _settings = Settings()
    return _settings
