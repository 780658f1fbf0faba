"""Configuration loader for RealityCheck.

Handles loading, saving, and default creation of config.json.
Resolves platform-appropriate data directories:
  - macOS:   ~/Library/Application Support/RealityCheck
  - Windows: %APPDATA%/RealityCheck
  - Other:   ~/.realitycheck
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def get_data_directory() -> Path:
    """Return the platform-appropriate data directory for RealityCheck."""
    if sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    elif sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        base = Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
    else:
        return Path.home() / ".realitycheck"
    return base / "RealityCheck"


def get_default_config() -> dict[str, Any]:
    """Return the default configuration dictionary."""
    data_dir = get_data_directory()
    return {
        "database_path": str(data_dir / "realitycheck.db"),
        "snapshot_path": "",
        "sync": {
            "interval_minutes": 15,
            "backoff_minutes": 10,
            "max_attempts": 3,
        },
        "categories": {
            "extra": {},
            "productive_extra": [],
        },
        "dashboard": {
            "host": "127.0.0.1",
            "port": 5123,
        },
    }


def get_default_config_path() -> Path:
    """Return the default path for config.json."""
    return get_data_directory() / "config.json"


def load_config(path: str | Path | None = None) -> dict[str, Any]:
    """Load configuration from a JSON file.

    If *path* is ``None``, the platform default location is used.
    When the file does not exist, a default configuration is created,
    written to disk, and returned.  If the file exists but is invalid
    JSON, the error is logged and defaults are returned.
    """
    config_path = Path(path) if path is not None else get_default_config_path()

    if not config_path.exists():
        logger.info("Config file not found at %s, creating defaults.", config_path)
        defaults = get_default_config()
        save_config(defaults, config_path)
        return defaults

    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError("Top-level JSON value must be an object")
        return data
    except (json.JSONDecodeError, ValueError, OSError) as exc:
        logger.error("Failed to load config from %s: %s; using defaults.", config_path, exc)
        return get_default_config()


def save_config(config: dict[str, Any], path: str | Path | None = None) -> None:
    """Write *config* to a JSON file.

    If *path* is ``None``, the platform default location is used.
    Parent directories are created automatically.
    """
    config_path = Path(path) if path is not None else get_default_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)
        fh.write("\n")


def get_section(config: dict[str, Any], name: str) -> dict[str, Any]:
    """Return config section *name* with missing keys filled from defaults."""
    section = dict(get_default_config()[name])
    section.update(config.get(name) or {})
    return section
