"""Command implementations for ``python -m calendar_lite``."""

from __future__ import annotations

import asyncio
import contextlib
import datetime
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from .app import CalendarLiteApp
from .config_loader import Config
from .domain.notification_dispatcher import CallbackAlertSink
from .lite_models import LiteCalendarEvent, ReminderAlert, RenderBlock

logger = logging.getLogger(__name__)

_EVENTS_ADAPTER = TypeAdapter(list[LiteCalendarEvent])


def load_events(path: str | Path) -> list[LiteCalendarEvent]:
    """Read a JSON array of events.

    Raises:
        ValueError: if the file is not a valid event list
    """
    text = Path(path).read_text(encoding="utf-8")
    try:
        return _EVENTS_ADAPTER.validate_json(text)
    except ValidationError as exc:
        raise ValueError(f"Invalid events file {path}: {exc}") from exc


def _block_to_dict(block: RenderBlock) -> dict[str, Any]:
    a = block.assignment
    return {
        "id": a.event.id,
        "title": a.event.title,
        "color": a.event.color,
        "start": a.clipped_start.isoformat(),
        "end": a.clipped_end.isoformat(),
        "position": a.position.value,
        "is_partial": a.is_partial,
        "column": a.column,
        "total_columns": a.total_columns,
        "top": block.top_minutes,
        "height": block.height_minutes,
        "left": round(block.left_fraction, 4),
        "width": round(block.width_fraction, 4),
    }


def run_layout(args: Any, cfg: Config) -> int:
    """Print the render plan for one day as JSON."""
    try:
        events = load_events(args.events)
    except (OSError, ValueError) as exc:
        logger.error("%s", exc)
        return 1

    try:
        day = datetime.date.fromisoformat(args.day) if args.day else datetime.date.today()
    except ValueError:
        logger.error("Invalid --day %r; expected YYYY-MM-DD", args.day)
        return 2

    app = CalendarLiteApp(cfg)
    plan = app.day_layout(events, day)
    json.dump([_block_to_dict(b) for b in plan], sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


def _print_alert(alert: ReminderAlert) -> None:
    title = alert.title or alert.event_id
    print(f"[{alert.fired_at:%H:%M:%S}] {title}: {alert.message} (sound: {alert.sound_profile})")


async def _watch(events: list[LiteCalendarEvent], cfg: Config) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    async with CalendarLiteApp(cfg, sinks=[CallbackAlertSink(_print_alert)]) as app:
        outcomes = app.sync_events(events)
        for event_id, outcome in outcomes.items():
            if outcome.warning:
                logger.warning("%s", outcome.warning)
            elif outcome.armed and outcome.reminder is not None:
                logger.info("%s: fires at %s", event_id, outcome.reminder.fire_at.isoformat())
        logger.info(
            "Watching %d reminder(s); polling every %ds",
            len(app.scheduler.pending()),
            cfg.poll_interval_seconds,
        )
        await stop.wait()


def run_watch(args: Any, cfg: Config) -> int:
    """Arm reminders for the given events and print alerts until interrupted."""
    try:
        events = load_events(args.events)
    except (OSError, ValueError) as exc:
        logger.error("%s", exc)
        return 1

    try:
        asyncio.run(_watch(events, cfg))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    return 0
