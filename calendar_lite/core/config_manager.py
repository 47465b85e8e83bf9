"""Environment-driven configuration overrides for calendar_lite.

Values come from CALENDARLITE_* variables; a ``.env`` file in the working
directory can supply defaults for variables the environment does not set.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# env var -> (config key, converter)
ENV_OVERRIDES: dict[str, tuple[str, Callable[[str], Any]]] = {
    "CALENDARLITE_TIMEZONE": ("timezone", str),
    "CALENDARLITE_POLL_INTERVAL": ("poll_interval_seconds", int),
    "CALENDARLITE_DEFAULT_LEAD_MINUTES": ("default_lead_minutes", int),
    "CALENDARLITE_SOUND_PROFILE": ("sound_profile", str),
    "CALENDARLITE_REMINDER_STORE": ("reminder_store_path", str),
    "CALENDARLITE_MIN_BLOCK_MINUTES": ("min_block_minutes", int),
    "CALENDARLITE_LOG_LEVEL": ("log_level", str),
}


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_env_file(path: Path) -> dict[str, str]:
    """Read ``KEY=VALUE`` pairs from a .env file.

    Blank lines, ``#`` comments and lines without ``=`` are ignored. An
    optional leading ``export`` is accepted and surrounding quotes are
    removed from values. A missing or unreadable file yields ``{}``.
    """
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except FileNotFoundError:
        return {}
    except OSError:
        logger.debug("Could not read %s; ignoring", path, exc_info=True)
        return {}

    pairs: dict[str, str] = {}
    for line in (raw.strip() for raw in lines):
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()
        key, sep, value = line.partition("=")
        key = key.strip()
        if sep and key:
            pairs[key] = _unquote(value.strip())
    return pairs


class ConfigManager:
    """Collects configuration overrides from the process environment."""

    ENV_KEYS = ENV_OVERRIDES

    def __init__(self, env_file_path: Path | None = None):
        """
        Args:
            env_file_path: .env file to read defaults from (default: ./.env)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Export .env entries the environment does not already define.

        Returns:
            Names of the variables that were set from the file
        """
        defaults = parse_env_file(self.env_file_path)
        if not defaults:
            logger.debug("No .env defaults from %s", self.env_file_path)
            return []

        added = [key for key in defaults if key not in os.environ]
        for key in added:
            os.environ[key] = defaults[key]

        if added:
            logger.debug("Applied .env defaults: %s", ", ".join(added))
        return added

    def build_config_from_env(self) -> dict[str, Any]:
        """Map set CALENDARLITE_* variables onto config keys.

        A value that fails conversion is logged and left out.
        """
        overrides: dict[str, Any] = {}
        for env_key, (cfg_key, convert) in self.ENV_KEYS.items():
            raw = os.environ.get(env_key, "").strip()
            if not raw:
                continue
            try:
                overrides[cfg_key] = convert(raw)
            except ValueError:
                logger.warning("Invalid %s=%r; ignoring", env_key, raw)
        return overrides

    def load_full_config(self) -> dict[str, Any]:
        """Apply .env defaults, then return the environment overrides."""
        self.load_env_file()
        return self.build_config_from_env()
