"""calendar_lite - day-timeline layout and reminder scheduling for a personal calendar.

This package keeps imports light at the top level; the domain modules are
imported by the entrypoints that need them.
"""

__version__ = "0.1.0"

from typing import Any, Optional


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Installs a colorlog formatter on a stderr handler so startup messages
    are visible. Honors CALENDARLITE_DEBUG (truthy values: "1", "true", "yes",
    "on") which forces DEBUG verbosity.
    """
    import logging
    import os
    import sys

    from colorlog import ColoredFormatter

    debug_env = os.environ.get("CALENDARLITE_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure a handler if none are present to avoid duplicate output.
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        # HH:MM:SS  LEVEL   logger.name: message (only the level is colorized)
        fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
        log_colors = {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        }
        handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors))
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


def run(args: Any) -> int:
    """Run a CLI command parsed by ``calendar_lite.__main__``.

    Loads configuration (file, then CALENDARLITE_* environment), applies
    command line overrides, configures logging and dispatches to the command.

    Returns:
        Process exit code
    """
    import logging
    import os

    _init_logging(getattr(args, "log_level", None) or os.environ.get("CALENDARLITE_LOG_LEVEL"))

    from .config_loader import load_config
    from .lite_logging import configure_lite_logging

    logger = logging.getLogger(__name__)

    cfg = load_config(getattr(args, "config", None))

    if getattr(args, "log_level", None):
        cfg.log_level = args.log_level.upper()
    if getattr(args, "tz", None):
        cfg.timezone = args.tz
    poll = getattr(args, "poll_interval", None)
    if poll is not None:
        cfg.poll_interval_seconds = max(poll, 1)
    store = getattr(args, "store", None)
    if store:
        cfg.reminder_store_path = store

    configure_lite_logging(debug_mode=cfg.log_level == "DEBUG")
    logger.debug("Resolved configuration: %s", cfg)

    from . import cli

    command = getattr(args, "command", None)
    if command == "layout":
        return cli.run_layout(args, cfg)
    if command == "watch":
        return cli.run_watch(args, cfg)

    logger.error("Unknown command %r", command)
    return 2
