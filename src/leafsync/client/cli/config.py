"""Configuration utilities for the leafsync CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from leafsync.client.state import LocalCache
from leafsync.core.config import Settings


def get_config_dir() -> Path:
    """Get the configuration directory for leafsync.

    Returns:
        Path to ~/.leafsync or equivalent.
    """
    return Path.home() / ".leafsync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_cache_file() -> Path:
    """Get the path to the local cache database."""
    return get_config_dir() / "cache.db"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def load_settings() -> Settings:
    """Load settings, with stored values merged over the defaults."""
    return Settings.from_dict(load_config())


def save_settings(settings: Settings) -> None:
    """Persist settings to the config file."""
    save_config(settings.to_dict())


def open_cache() -> LocalCache:
    """Open the local cache database."""
    return LocalCache(get_cache_file())


def mask_token(token: str) -> str:
    """Mask a token for display, keeping its last four characters.

    Args:
        token: Access token.

    Returns:
        Masked token, or "(not set)" if empty.
    """
    if not token:
        return "(not set)"
    if len(token) <= 4:
        return "****"
    return "*" * 8 + token[-4:]
