"""calendar_lite.config_loader

Lightweight config loader for calendar_lite.

- Reads YAML (PyYAML); JSON files load too since JSON is a YAML subset.
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override and layers CALENDARLITE_* environment values on top.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .lite_exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 15
DEFAULT_SOUND_PROFILE = "telegram"
DEFAULT_MIN_BLOCK_MINUTES = 20


def default_reminder_store_path() -> str:
    """Per-user location of the persisted reminder records."""
    return str(Path.home() / ".local" / "share" / "calendar_lite" / "reminders.json")


@dataclass
class Config:
    """Typed configuration for calendar_lite.

    Fields:
        timezone: IANA name of the viewing timezone (None = detect from env/default)
        poll_interval_seconds: dispatcher poll period (5..300)
        default_lead_minutes: lead time used when an event carries none
        sound_profile: sound key passed along with fired alerts
        reminder_store_path: JSON file holding armed reminders
        min_block_minutes: minimum rendered height of an event block
        log_level: logging level name
    """

    timezone: str | None = None
    poll_interval_seconds: int = DEFAULT_POLL_INTERVAL_SECONDS
    default_lead_minutes: int = 0
    sound_profile: str = DEFAULT_SOUND_PROFILE
    reminder_store_path: str = field(default_factory=default_reminder_store_path)
    min_block_minutes: int = DEFAULT_MIN_BLOCK_MINUTES
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Numeric-like values are coerced to int and poll_interval_seconds is
        clamped to 5..300, logging warnings when coercions occur.
        """
        if data is None:
            data = {}

        def _coerce_int(key: str, default: int) -> int:
            raw = data.get(key, default)
            try:
                return int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default

        poll = _coerce_int("poll_interval_seconds", DEFAULT_POLL_INTERVAL_SECONDS)
        if poll < 5:
            logger.warning("poll_interval_seconds %d below minimum; coercing to 5", poll)
            poll = 5
        elif poll > 300:
            logger.warning("poll_interval_seconds %d above maximum; coercing to 300", poll)
            poll = 300

        lead = _coerce_int("default_lead_minutes", 0)
        if lead < 0:
            logger.warning("default_lead_minutes %d is negative; coercing to 0", lead)
            lead = 0

        min_block = _coerce_int("min_block_minutes", DEFAULT_MIN_BLOCK_MINUTES)
        if min_block < 1:
            logger.warning("min_block_minutes %d below minimum; coercing to 1", min_block)
            min_block = 1

        timezone = data.get("timezone")
        timezone = str(timezone) if timezone else None

        sound = data.get("sound_profile") or DEFAULT_SOUND_PROFILE

        store_path = data.get("reminder_store_path") or default_reminder_store_path()

        log_level = data.get("log_level", "INFO")
        log_level = str(log_level).upper() if log_level is not None else "INFO"

        return cls(
            timezone=timezone,
            poll_interval_seconds=poll,
            default_lead_minutes=lead,
            sound_profile=str(sound),
            reminder_store_path=str(Path(store_path).expanduser()),
            min_block_minutes=min_block,
            log_level=log_level,
        )


def _load_yaml(path: Path) -> Any:
    """Load a mapping from a YAML (or JSON) file."""
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Unable to read config {path}: {exc}") from exc
    # safe_load returns None for empty files
    if loaded is None:
        return {}
    return loaded


def load_config(path: str | None = None, apply_env: bool = True) -> Config:
    """Load configuration from a YAML/JSON file and return a Config instance.

    Args:
        path: Optional path to the config file. Defaults to
              ~/.config/calendar_lite/config.yaml.
        apply_env: When True, CALENDARLITE_* environment variables (and a .env
              file in the working directory) override file values.

    Behavior:
    - If file is missing: defaults are used.
    - If file exists but top-level is not a mapping: raises ConfigError.
    """
    p = Path(path) if path else Path.home() / ".config" / "calendar_lite" / "config.yaml"
    logger.debug("Attempting to load config from %s", p)

    raw: dict[str, Any] = {}
    if p.exists():
        loaded = _load_yaml(p)
        if not isinstance(loaded, dict):
            logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, loaded)
            raise ConfigError("Config file must contain a mapping at top level")
        raw.update(loaded)
        logger.info("Loaded configuration from %s", p)
    else:
        logger.info("Config file %s not found; using defaults", p)

    if apply_env:
        from .core.config_manager import ConfigManager

        raw.update(ConfigManager().load_full_config())

    cfg = Config.from_dict(raw)
    logger.debug("Configuration values: %s", cfg)
    return cfg
