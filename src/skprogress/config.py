"""
Configuration for progress sync, stored as YAML in the progress home.

    ~/.skprogress/
    ├── config.yaml     # this file
    ├── stores/         # local progress stores
    ├── cloud/          # LocalCloudStore documents (local backend)
    └── session.json    # fallback sign-in session
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from . import PROGRESS_HOME

logger = logging.getLogger("skprogress.config")

CLOUD_URL_ENV = "SKPROGRESS_CLOUD_URL"


class CloudBackendType(str, Enum):
    """Where cloud progress lives."""

    LOCAL = "local"
    REST = "rest"


class CloudConfig(BaseModel):
    """Cloud store settings."""

    backend: CloudBackendType = CloudBackendType.LOCAL
    url: Optional[str] = None
    api_key_env: str = "SKPROGRESS_CLOUD_KEY"
    local_path: Optional[Path] = None
    timeout_seconds: float = 30.0

    @property
    def api_key(self) -> Optional[str]:
        return os.environ.get(self.api_key_env) or None


class ProgressConfig(BaseModel):
    """Complete progress sync configuration."""

    cloud: CloudConfig = Field(default_factory=CloudConfig)
    stores_dir: Optional[Path] = None
    debounce_seconds: float = Field(default=1.0, ge=0.0)


def progress_home(home: Optional[Path] = None) -> Path:
    return (home or Path(PROGRESS_HOME)).expanduser()


def load_config(home: Optional[Path] = None) -> ProgressConfig:
    """Load config.yaml from the progress home.

    A missing or unreadable file yields the defaults. The cloud URL
    environment variable, when set, overrides the file.
    """
    config_file = progress_home(home) / "config.yaml"
    config = ProgressConfig()
    if config_file.exists():
        try:
            data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
            config = ProgressConfig(**data)
        except (yaml.YAMLError, TypeError, ValueError) as exc:
            logger.warning("Failed to load progress config: %s", exc)

    env_url = os.environ.get(CLOUD_URL_ENV)
    if env_url:
        config.cloud.url = env_url
    return config


def save_config(config: ProgressConfig, home: Optional[Path] = None) -> Path:
    """Persist configuration to config.yaml."""
    root = progress_home(home)
    root.mkdir(parents=True, exist_ok=True)
    config_file = root / "config.yaml"
    data = config.model_dump(mode="json", exclude_none=True)
    config_file.write_text(
        yaml.dump(data, default_flow_style=False), encoding="utf-8",
    )
    return config_file


def stores_dir(config: ProgressConfig, home: Optional[Path] = None) -> Path:
    return (config.stores_dir or progress_home(home) / "stores").expanduser()
