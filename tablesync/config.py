"""Synchronizer configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path
from urllib.parse import urlparse

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOCALHOST_HOSTS = {"localhost", "127.0.0.1", "::1"}

DEFAULT_TOKEN_INFO_URL = "https://www.googleapis.com/oauth2/v1/tokeninfo"


class Settings(BaseSettings):
    """Table synchronizer settings."""

    model_config = SettingsConfigDict(
        env_prefix="TABLESYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server
    server_url: str = "http://localhost:8080"
    app_name: str = "default"
    client_version: str = "2"

    # Local replica
    app_root: Path = Path("./apps")

    # Auth
    access_token: str = ""
    token_info_url: str = DEFAULT_TOKEN_INFO_URL
    verify_token: bool = True

    # Transport
    connect_timeout: float = Field(default=30.0, gt=0)
    read_timeout: float = Field(default=60.0, gt=0)
    download_max_retries: int = Field(default=1, ge=0, le=1)

    debug: bool = False

    @property
    def app_folder(self) -> Path:
        """Directory holding this application's local replica."""
        return self.app_root / self.app_name


def validate_server_url(server_url: str, allow_insecure_http: bool = False) -> str:
    """Validate server URL and enforce HTTPS for non-localhost hosts by default."""
    normalized = server_url.strip().rstrip("/")
    parsed = urlparse(normalized)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError("Server URL must include scheme and host (e.g. https://example.com)")

    hostname = parsed.hostname
    if parsed.scheme == "http" and not allow_insecure_http and hostname not in _LOCALHOST_HOSTS:
        raise ValueError(
            "HTTPS is required for non-localhost servers. "
            "Use --allow-insecure-http only on trusted networks."
        )

    return normalized
