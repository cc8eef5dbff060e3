"""Application configuration using pydantic-settings."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ASSETVAULT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "AssetVault"
    version: str = "0.3.0"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=8080, description="Server port")
    public_base_url: str = Field(
        default="http://localhost:8080",
        description="Externally reachable base URL used when building signed upload URLs",
    )

    # Paths - Container volume mounts
    config_path: Path = Field(
        default=Path("/config"),
        description="Path for configuration files and database",
    )
    storage_path: Path = Field(
        default=Path("/vault"),
        description="Root directory for stored asset objects",
    )
    staging_path: Path = Field(
        default=Path("/staging"),
        description="Path for staging remote files before they are stored",
    )

    # Database
    database_url: str | None = Field(
        default=None,
        description="Database connection URL (defaults to SQLite under config_path)",
    )

    # CORS
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins",
    )

    # Secrets
    encryption_key: str | None = Field(
        default=None,
        description="Fernet key for encrypting stored provider tokens",
    )
    signing_secret: str | None = Field(
        default=None,
        description="HMAC secret for signed upload URLs",
    )
    upload_url_ttl_seconds: int = Field(
        default=3600,
        ge=60,
        le=86400,
        description="Lifetime of a signed upload URL",
    )

    # Google Drive
    google_client_id: str | None = Field(default=None, description="Google OAuth client ID")
    google_client_secret: str | None = Field(
        default=None, description="Google OAuth client secret"
    )
    google_request_delay: float = Field(
        default=0.2,
        ge=0.0,
        le=10.0,
        description="Minimum seconds between Google API requests",
    )
    google_requests_per_minute: int = Field(
        default=120,
        ge=1,
        le=1000,
        description="Maximum Google API requests per minute",
    )
    drive_page_size: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Files requested per Drive listing page",
    )

    # Import pipeline
    transfer_chunk_size: int = Field(
        default=1024 * 1024,
        ge=4096,
        description="Chunk size in bytes for streaming transfers",
    )
    ffprobe_path: str = Field(default="ffprobe", description="ffprobe binary name or path")
    ffprobe_timeout: float = Field(default=30.0, gt=0, description="ffprobe timeout in seconds")
    allowed_extensions: list[str] | None = Field(
        default=None,
        description="Override the accepted file extensions (e.g. [\".wav\", \".mp3\"])",
    )
    allowed_mime_types: list[str] | None = Field(
        default=None,
        description="Override the accepted MIME types",
    )

    # Local watcher
    watcher_stability_seconds: float = Field(
        default=3.0,
        gt=0,
        le=300,
        description="Quiet period after the last write before a file is processed",
    )

    # Scheduled Drive imports
    drive_sync_enabled: bool = Field(
        default=False,
        description="Periodically start imports for enabled Drive folder selections",
    )
    drive_sync_interval: int = Field(
        default=900,
        ge=60,
        le=86400,
        description="Interval in seconds between scheduled Drive imports",
    )


# Global settings instance
settings = Settings()
