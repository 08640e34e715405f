"""Static API credential loading."""
from __future__ import annotations

import logging
import subprocess
from typing import Mapping

LOG = logging.getLogger(__name__)

PASS_PATH = "api/neynar"
API_KEY_NAME = "NEYNAR_API_KEY"


def load_from_pass(pass_path: str = PASS_PATH) -> dict | None:
    """Load KEY=value lines from a pass entry."""
    try:
        result = subprocess.run(
            ["pass", "show", pass_path],
            capture_output=True, text=True, timeout=5
        )
    except (OSError, subprocess.SubprocessError) as e:
        LOG.debug("pass unavailable for %s: %s", pass_path, e)
        return None
    if result.returncode != 0:
        return None
    out: dict[str, str] = {}
    for line in result.stdout.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        k, v = line.split("=", 1)
        out[k.strip()] = v.strip()
    return out if out else None


def load_api_key(env: Mapping[str, str], pass_path: str = PASS_PATH) -> str | None:
    """Return the Neynar API key from the environment, falling back to pass."""
    key = (env.get(API_KEY_NAME) or "").strip()
    if key:
        return key
    stored = load_from_pass(pass_path) or {}
    key = (stored.get(API_KEY_NAME) or "").strip()
    return key or None
