"""Configuration management for Poker Ledger."""

from decimal import Decimal
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Game defaults
    default_currency: str = "USD"
    default_buyin_amount: Decimal = Decimal("20.00")

    # Database path
    database_path: Path = Path.home() / ".poker_ledger" / "poker_ledger.db"

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path = self.database_path.expanduser()
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check your .env file and environment "
            f"variables (DATABASE_PATH, DEFAULT_CURRENCY, DEFAULT_BUYIN_AMOUNT).\n"
            f"Error: {e}"
        ) from e
