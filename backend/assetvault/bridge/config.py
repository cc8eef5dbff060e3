"""Bridge configuration persisted as JSON in the user's home directory."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

CONFIG_DIR = Path.home() / ".assetvault"
CONFIG_FILE = CONFIG_DIR / "bridge-config.json"


class BridgeConfigError(Exception):
    """Raised when the bridge is not initialized or its config is unreadable."""

    pass


class BridgeConfig(BaseModel):
    """Connection settings written by ``assetvault-bridge init``."""

    api_url: str = Field(..., min_length=1)
    token: str = Field(..., min_length=1)
    device_name: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def api_base(self) -> str:
        """Base URL of the versioned API."""
        return f"{self.api_url.rstrip('/')}/api/v1"


def default_config_path() -> Path:
    override = os.environ.get("ASSETVAULT_BRIDGE_CONFIG")
    return Path(override).expanduser() if override else CONFIG_FILE


def load_config(path: Path | None = None) -> BridgeConfig:
    """Read the bridge config.

    Raises:
        BridgeConfigError: If the file is missing or invalid.
    """
    path = path or default_config_path()
    if not path.exists():
        raise BridgeConfigError(f"Bridge not initialized ({path} missing). Run: assetvault-bridge init")
    try:
        return BridgeConfig.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        raise BridgeConfigError(f"Invalid bridge config at {path}: {e}") from e


def save_config(config: BridgeConfig, path: Path | None = None) -> Path:
    """Write the bridge config, readable by the current user only."""
    path = path or default_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(config.model_dump_json(indent=2), encoding="utf-8")
    path.chmod(0o600)
    return path
