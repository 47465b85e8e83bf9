"""
Central logging configuration for calendar_lite.

Keeps the scheduler and dispatcher chatty at DEBUG when troubleshooting while
suppressing event-loop noise from asyncio.
"""

import logging
import os
from typing import Optional

LITE_MODULES = [
    "calendar_lite",
    "calendar_lite.app",
    "calendar_lite.domain.overlap_layout",
    "calendar_lite.domain.reminder_scheduler",
    "calendar_lite.domain.reminder_store",
    "calendar_lite.domain.notification_dispatcher",
]


def configure_lite_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for calendar_lite.

    Args:
        debug_mode: Whether to enable debug logging for calendar_lite modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        CALENDARLITE_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        CALENDARLITE_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("CALENDARLITE_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("CALENDARLITE_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only add a basic handler if none exist (preserve the colorlog setup from __init__.py)
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)s - %(name)s - %(message)s")
        )
        root_logger.addHandler(handler)

    logger_config: dict[str, int] = {
        "asyncio": logging.WARNING,
    }

    lite_level = logging.DEBUG if final_debug else logging.INFO
    for module in LITE_MODULES:
        logger_config[module] = lite_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.info("Debug logging enabled for calendar_lite modules.")
    else:
        root_logger.debug("Production logging configuration applied.")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}

    for logger_name in ["calendar_lite", "asyncio", *LITE_MODULES[1:]]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)

    return status
