from pathlib import Path

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from flaredeck.constants import API_BASE_URL

__all__ = ["Settings"]


class Settings(BaseSettings):
    """
    Process-level settings for flaredeck.

    Loaded from environment variables with 'FLAREDECK_' prefix or a .env file.
    """

    account_id: str | None = None
    """Cloudflare account ID. Required for anything that talks to the API."""

    api_token: SecretStr | None = None
    """Cloudflare API token."""

    api_base_url: str = API_BASE_URL
    """Base URL of the Cloudflare v4 API."""

    config_home: Path | None = None
    """Overrides the global config directory (certificates, local registry)."""

    await_reports: bool = False
    """Wait for background reports (bundle size) before returning. Used by tests."""

    send_metrics: bool = False
    """Attach usage metric headers to upload requests."""

    model_config = SettingsConfigDict(
        env_prefix="FLAREDECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
