"""Configuration for the Pelican client.

Settings come from (highest priority first) constructor arguments,
``PELICAN_*`` environment variables and ``~/.pelican-client/config.json``.

Changes:
  - 2026-10-17: Added callback server host/port for the loopback login flow.
  - 2026-10-15: Initial settings (redirect URI, scopes, cache TTL, HTTP timeout).
"""

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

_CONFIG_DIR_ENV = "PELICAN_CONFIG_DIR"
_DEFAULT_CONFIG_DIR = Path.home() / ".pelican-client"

DEFAULT_STORAGE_SCOPE = "storage.read:/ storage.create:/ storage.modify:/"


def get_config_dir() -> Path:
    """Get/create the configuration directory."""
    d = Path(os.environ.get(_CONFIG_DIR_ENV, _DEFAULT_CONFIG_DIR)).expanduser()
    d.mkdir(parents=True, exist_ok=True)
    return d


def get_config_path() -> Path:
    return get_config_dir() / "config.json"


class Settings(BaseSettings):
    """Pelican client settings."""

    model_config = SettingsConfigDict(env_prefix="PELICAN_", extra="ignore")

    # OAuth client registration / authorization
    redirect_uri: str = Field(
        default="http://localhost:8765/callback",
        description="Redirect URI registered with issuers and used in the code flow",
    )
    client_name: str = "Pelican Python Client"
    registration_scope: str = f"openid {DEFAULT_STORAGE_SCOPE}"
    authorization_scope: str = DEFAULT_STORAGE_SCOPE

    # Loopback callback receiver
    callback_host: str = "127.0.0.1"
    callback_port: int = 8765

    # Caching and transport
    list_cache_ttl: float = Field(default=300.0, ge=0)
    http_timeout: float = Field(default=30.0, gt=0)

    # Session persistence; empty means <config dir>/session.json
    session_file: str = ""

    log_level: str = "INFO"

    def get_session_path(self) -> Path:
        if self.session_file:
            return Path(self.session_file).expanduser()
        return get_config_dir() / "session.json"

    def save(self) -> None:
        """Persist settings to the config file."""
        path = get_config_path()
        path.write_text(json.dumps(self.model_dump(), indent=2))
        logger.debug("Saved settings to %s", path)

    @classmethod
    def load(cls) -> Settings:
        """Load settings from the config file, overlaid by environment variables."""
        path = get_config_path()
        data: dict = {}
        if path.exists():
            try:
                data = json.loads(path.read_text())
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("Failed to read settings from %s: %s", path, e)
        # Environment variables win over the file
        env_keys = {
            name for name in cls.model_fields if f"PELICAN_{name.upper()}" in os.environ
        }
        return cls(**{k: v for k, v in data.items() if k not in env_keys})


@lru_cache
def get_settings() -> Settings:
    """Get the process-wide settings (cached)."""
    return Settings.load()
