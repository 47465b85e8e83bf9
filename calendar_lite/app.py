"""Application facade composing layout, scheduler and dispatcher.

The event CRUD surface calls the ``on_event_*`` hooks; the day view calls
``day_layout``. The scheduler and dispatcher are owned here and passed by
reference, never kept as module state.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable, Sequence
from typing import Any, Optional

from calendar_lite.config_loader import Config
from calendar_lite.domain.interval_classifier import DayMarker
from calendar_lite.domain.notification_dispatcher import AlertSink, NotificationDispatcher
from calendar_lite.domain.overlap_layout import build_render_plan, safe_layout
from calendar_lite.domain.reminder_scheduler import Clock, ReminderScheduler
from calendar_lite.domain.sound_profiles import SoundCatalog
from calendar_lite.lite_models import ArmOutcome, LiteCalendarEvent, RenderBlock

logger = logging.getLogger(__name__)


class CalendarLiteApp:
    """Owns one scheduler/dispatcher pair and exposes the collaborator hooks."""

    def __init__(
        self,
        config: Optional[Config] = None,
        sinks: Optional[Sequence[AlertSink]] = None,
        clock: Optional[Clock] = None,
        sound_catalog: Optional[SoundCatalog] = None,
    ):
        self.config = config or Config()
        self.scheduler = ReminderScheduler.from_config(self.config, clock=clock)
        self.dispatcher = NotificationDispatcher(
            self.scheduler,
            sinks=sinks,
            poll_interval_seconds=self.config.poll_interval_seconds,
            sound_catalog=sound_catalog,
        )

    async def start(self) -> list[str]:
        """Restore persisted reminders and start polling.

        Returns:
            Event ids of stale reminders dropped during restore.
        """
        dropped = await self.scheduler.init()
        await self.dispatcher.start()
        return dropped

    async def stop(self) -> None:
        await self.dispatcher.stop()
        await self.scheduler.shutdown()

    async def __aenter__(self) -> CalendarLiteApp:
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()

    # Event CRUD hooks

    def on_event_created(self, event: LiteCalendarEvent) -> ArmOutcome:
        return self.scheduler.arm(event)

    def on_event_updated(self, event: LiteCalendarEvent) -> ArmOutcome:
        """Rebuild the reminder unless it already fired for the same start and lead."""
        return self.scheduler.rearm(event)

    def on_event_deleted(self, event_id: str) -> bool:
        return self.scheduler.cancel(event_id)

    def on_events_imported(self, events: Iterable[LiteCalendarEvent]) -> dict[str, ArmOutcome]:
        """Arm reminders for imported events that start in the future."""
        return self.scheduler.schedule_all(events)

    def sync_events(self, events: Sequence[LiteCalendarEvent]) -> dict[str, ArmOutcome]:
        """Bring reminders in line with a full event set.

        Reminders for events no longer in the set are cancelled and every
        future event is (re)armed. Occurrences whose reminder already fired
        are not armed again.
        """
        known = {event.id for event in events}
        for event_id in self.scheduler.tracked_event_ids():
            if event_id not in known:
                self.scheduler.cancel(event_id)
        return self.scheduler.schedule_all(events)

    # Day view

    def day_layout(
        self,
        events: Sequence[LiteCalendarEvent],
        day: DayMarker,
        tz: Optional[datetime.tzinfo | str] = None,
    ) -> list[RenderBlock]:
        """Render plan for ``day`` in the configured (or given) timezone."""
        view_tz = tz or self.config.timezone
        assignments = safe_layout(events, day, view_tz)
        return build_render_plan(
            assignments, day, view_tz, min_height_minutes=self.config.min_block_minutes
        )

    def reminder_confirmation(self, event: LiteCalendarEvent) -> str:
        """Confirmation text shown after an event with a reminder is saved."""
        lead = event.notification_lead_minutes
        if lead is None:
            lead = self.config.default_lead_minutes
        if lead == 0:
            return "Will remind you when the event starts"
        if lead == 1:
            return "Will remind you 1 minute before the event starts"
        return f"Will remind you {lead} minutes before the event starts"
