"""Configuration management for SplitCheck."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SPLITCHECK_",
        case_sensitive=False,
        extra="ignore",
    )

    # Locale used when a check is opened without an explicit one
    default_locale: str = "en-US"

    # Item and contributor names are truncated to this many characters
    name_max_length: int = 255

    log_level: str = "INFO"

    # Database path
    database_path: Path = Path.home() / ".splitcheck" / "splitcheck.db"

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check the SPLITCHECK_* environment "
            f"variables and your .env file.\n"
            f"Error: {e}"
        ) from e
