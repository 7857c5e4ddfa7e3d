"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from QUICKSHARE_* environment variables."""

    relay_host: str = "localhost.run"
    relay_user: str = "nokey"
    relay_ssh_port: int = 22
    relay_public_port: int = 80
    relay_bind_host: str = "localhost"
    relay_domain: str = "lhr.life"
    connect_timeout: float = 30.0
    stop_timeout: float = 5.0
    bind_host: str = "0.0.0.0"  # noqa: S104
    local_port: int = 8080
    token_bytes: int = 12
    thumbnail_max_dimension: int = 512
    thumbnail_quality: int = 20
    download_chunk_size: int = 64 * 1024
    log_history_limit: int = 100
    shutdown_grace_seconds: float = 1.0
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_prefix="QUICKSHARE_",
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
