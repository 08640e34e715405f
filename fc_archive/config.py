"""Configuration management for fc-archive.

Loads settings from ~/.config/fc-archive/config.yaml with sensible defaults.
All settings are optional except the Neynar API key, which comes from the
environment or from pass (see auth.py).
"""
from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .auth import load_api_key
from .errors import ConfigError

# ============================================================================
# DEFAULTS
# ============================================================================

DEFAULT_CONFIG = {
    # Neynar REST API (feeds, conversations, batched casts)
    "neynar": {
        "base_url": "https://api.neynar.com/v2",
        "user_agent": "curl/8.5.0",    # default python-requests UA gets 403s
        "page_size": 50,               # some endpoints cap limit at 50
        "max_items": 10000,            # hard cap per assembled feed
        "reply_depth": 5,
        "timeout": 30,
    },

    # Snapchain node HTTP API (castsByParent)
    "snapchain": {
        "base_url": "https://snap.farcaster.xyz:3381/v1",
        "page_size": 100,
        "max_messages": 1000,          # hard cap per parent
        "timeout": 30,
    },

    # Optional profile fallback for authors we never saw in a cast payload
    "shim": {
        "base_url": None,              # e.g. https://shim.artlu.xyz
        "timeout": 15,
    },

    # Per-page retry policy
    "retry": {
        "times": 5,
        "base_seconds": 1.0,
        "max_seconds": 30.0,
    },

    # Batched hydration of traversal results
    "hydrate": {
        "batch_size": 25,              # Neynar limit for /farcaster/casts
        "workers": 4,
    },

    # API behavior
    "api": {
        "calls_per_minute": 300,       # Client-side request cap across both APIs
    },

    # Local files
    "storage": {
        "db_path": "~/.fc-archive/archive.db",
        "out_dir": "out",
    },
}

# Config file locations (first found wins)
CONFIG_PATHS = [
    Path.home() / ".config/fc-archive/config.yaml",
    Path.home() / ".config/fc-archive/config.yml",
    Path.home() / ".fc-archive.yaml",
    Path("./fc-archive.yaml"),
]


# ============================================================================
# CONFIG LOADING
# ============================================================================

def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override into base, returning new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def find_config_file() -> Path | None:
    """Find the first existing config file."""
    for path in CONFIG_PATHS:
        if path.exists():
            return path
    return None


def load_config(path: Path | None = None) -> dict:
    """Load configuration with defaults.

    Returns merged config: defaults + user overrides. A config file that
    exists but cannot be parsed is a startup error.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    config_file = path or find_config_file()
    if config_file:
        try:
            user_config = yaml.safe_load(Path(config_file).read_text()) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not load config from {config_file}: {e}") from e
        if not isinstance(user_config, dict):
            raise ConfigError(f"Config file {config_file} must contain a mapping")
        config = _deep_merge(config, user_config)

    return config


def get(config: dict, key: str, default: Any = None) -> Any:
    """Get a config value by dot-separated key.

    Example:
        get(config, "neynar.page_size")  # Returns 50
        get(config, "storage")           # Returns the storage section
    """
    parts = key.split(".")
    value = config
    for part in parts:
        if isinstance(value, dict) and part in value:
            value = value[part]
        else:
            return default
    return value


# ============================================================================
# VALIDATED SETTINGS
# ============================================================================

@dataclass(frozen=True)
class Settings:
    api_key: str
    neynar_url: str
    user_agent: str
    page_size: int
    max_items: int
    reply_depth: int
    neynar_timeout: float
    snapchain_url: str
    snapchain_page_size: int
    snapchain_max_messages: int
    snapchain_timeout: float
    shim_url: str | None
    shim_timeout: float
    retry_times: int
    retry_base_seconds: float
    retry_max_seconds: float
    batch_size: int
    hydrate_workers: int
    calls_per_minute: int
    db_path: Path
    out_dir: Path

    @classmethod
    def from_config(cls, config: dict, api_key: str | None) -> "Settings":
        if not api_key:
            raise ConfigError("NEYNAR_API_KEY is not set (environment or pass api/neynar)")

        try:
            settings = cls(
                api_key=api_key,
                neynar_url=str(get(config, "neynar.base_url")).rstrip("/"),
                user_agent=str(get(config, "neynar.user_agent")),
                page_size=int(get(config, "neynar.page_size")),
                max_items=int(get(config, "neynar.max_items")),
                reply_depth=int(get(config, "neynar.reply_depth")),
                neynar_timeout=float(get(config, "neynar.timeout")),
                snapchain_url=str(get(config, "snapchain.base_url")).rstrip("/"),
                snapchain_page_size=int(get(config, "snapchain.page_size")),
                snapchain_max_messages=int(get(config, "snapchain.max_messages")),
                snapchain_timeout=float(get(config, "snapchain.timeout")),
                shim_url=(str(get(config, "shim.base_url")).rstrip("/") if get(config, "shim.base_url") else None),
                shim_timeout=float(get(config, "shim.timeout")),
                retry_times=int(get(config, "retry.times")),
                retry_base_seconds=float(get(config, "retry.base_seconds")),
                retry_max_seconds=float(get(config, "retry.max_seconds")),
                batch_size=int(get(config, "hydrate.batch_size")),
                hydrate_workers=int(get(config, "hydrate.workers")),
                calls_per_minute=int(get(config, "api.calls_per_minute")),
                db_path=Path(str(get(config, "storage.db_path"))).expanduser(),
                out_dir=Path(str(get(config, "storage.out_dir"))).expanduser(),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration value: {e}") from e

        if settings.page_size < 1 or settings.snapchain_page_size < 1:
            raise ConfigError("page sizes must be positive")
        if settings.retry_times < 1:
            raise ConfigError("retry.times must be at least 1")
        if not 1 <= settings.batch_size <= 25:
            raise ConfigError("hydrate.batch_size must be between 1 and 25")
        if settings.hydrate_workers < 1:
            raise ConfigError("hydrate.workers must be at least 1")
        return settings

    @classmethod
    def load(cls, path: Path | None = None, env: dict | None = None) -> "Settings":
        """Load config + credentials once at startup."""
        config = load_config(path)
        return cls.from_config(config, load_api_key(os.environ if env is None else env))


# ============================================================================
# CLI HELPER
# ============================================================================

def init_config(force: bool = False) -> Path:
    """Create example config file in default location."""
    config_path = CONFIG_PATHS[0]

    if config_path.exists() and not force:
        raise FileExistsError(f"Config already exists: {config_path}")

    config_path.parent.mkdir(parents=True, exist_ok=True)

    example = """# fc-archive configuration
# All settings are optional - defaults work out of the box.
# The API key is read from $NEYNAR_API_KEY or `pass show api/neynar`.

neynar:
  page_size: 50                  # casts per page (Neynar max for feeds)
  max_items: 10000               # stop assembling a feed past this size
  reply_depth: 5                 # conversation depth

snapchain:
  base_url: https://snap.farcaster.xyz:3381/v1
  page_size: 100
  max_messages: 1000             # children per parent

# shim:
#   base_url: https://shim.artlu.xyz   # profile fallback for unknown authors

retry:
  times: 5                       # attempts per page
  base_seconds: 1.0              # backoff = min(base * 2^n, max)
  max_seconds: 30.0

hydrate:
  workers: 4                     # concurrent batched lookups

api:
  calls_per_minute: 300          # client-side cap (logs when throttled)

storage:
  db_path: ~/.fc-archive/archive.db
  out_dir: out
"""

    config_path.write_text(example)
    return config_path


def show_config(config: dict | None = None) -> None:
    """Print current configuration."""
    config = config if config is not None else load_config()
    config_file = find_config_file()

    print("=" * 60)
    print("fc-archive configuration")
    print("=" * 60)

    if config_file:
        print(f"Config file: {config_file}")
    else:
        print("Config file: (using defaults)")

    print()
    print(yaml.dump(config, default_flow_style=False, sort_keys=False))
