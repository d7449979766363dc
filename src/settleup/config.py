"""Configuration management for SettleUp."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SETTLEUP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Gateway (prod) or dev proxy origin; services are routed by prefix
    api_base_url: str = "http://localhost:8080"

    # Service prefixes (no trailing slashes)
    membership_prefix: str = "/api/membership"
    expense_prefix: str = "/api/expense"
    settlement_prefix: str = "/api/settlement"

    request_timeout: float = 30.0

    # Currency used for new expense drafts
    default_currency: str = "USD"

    # Local CLI state (active group selection only)
    database_path: Path = Path.home() / ".settleup" / "settleup.db"

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
            f"Failed to load settings. Check the SETTLEUP_* variables in your "
            f"environment or .env file.\n"
            f"Error: {e}"
        ) from e
