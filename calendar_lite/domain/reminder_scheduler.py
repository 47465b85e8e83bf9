"""Reminder scheduling with persisted records and cancellable timers.

Per event occurrence a reminder moves Unarmed -> Armed -> Fired, or
Armed -> Cancelled. Each armed reminder has one asyncio task acting as its
timer; cancelling the reminder cancels that task and removes the persisted
record in the same synchronous call, so the next poll tick can never see it.
A fired reminder is remembered until its event starts, so arming the same
occurrence again is a no-op.

Usage:
    scheduler = ReminderScheduler(ReminderStore(path))
    await scheduler.init()            # restores armed reminders, drops stale ones
    scheduler.arm(event)              # on create / import
    scheduler.rearm(event)            # on update
    scheduler.cancel(event.id)        # on delete
    await scheduler.shutdown()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Optional

from calendar_lite.core.async_utils import maybe_await, sleep_until
from calendar_lite.core.timezone_utils import now_utc
from calendar_lite.domain.reminder_store import ReminderStore
from calendar_lite.lite_exceptions import ReminderPersistenceError
from calendar_lite.lite_models import (
    ArmOutcome,
    ArmStatus,
    LiteCalendarEvent,
    ReminderState,
    ScheduledReminder,
)

if TYPE_CHECKING:
    from calendar_lite.config_loader import Config

logger = logging.getLogger(__name__)

DueHandler = Callable[[str], Any]
Clock = Callable[[], datetime]


def _current_task() -> Optional[asyncio.Task[Any]]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class ReminderScheduler:
    """Owns the reminder store and the per-reminder timer tasks."""

    def __init__(
        self,
        store: ReminderStore,
        clock: Optional[Clock] = None,
        default_lead_minutes: int = 0,
        default_sound_profile: str = "telegram",
    ):
        """Initialize the scheduler.

        Args:
            store: Persisted reminder records; owned exclusively by this scheduler
            clock: Returns the current aware time (defaults to now_utc)
            default_lead_minutes: Lead used when neither caller nor event gives one
            default_sound_profile: Sound key used when the caller gives none
        """
        self._store = store
        self._clock: Clock = clock or now_utc
        self.default_lead_minutes = max(default_lead_minutes, 0)
        self.default_sound_profile = default_sound_profile

        self._timers: dict[str, asyncio.Task[None]] = {}
        self._due_handler: Optional[DueHandler] = None
        self._running = False
        self._initialized_at: Optional[datetime] = None

    @classmethod
    def from_config(cls, config: Config, clock: Optional[Clock] = None) -> ReminderScheduler:
        """Build a scheduler backed by the configured JSON store."""
        return cls(
            ReminderStore(config.reminder_store_path),
            clock=clock,
            default_lead_minutes=config.default_lead_minutes,
            default_sound_profile=config.sound_profile,
        )

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def running(self) -> bool:
        return self._running

    @property
    def initialized_at(self) -> Optional[datetime]:
        return self._initialized_at

    @property
    def active_timer_count(self) -> int:
        return len(self._timers)

    def set_due_handler(self, handler: Optional[DueHandler]) -> None:
        """Register the callable invoked with an event id when a timer fires."""
        self._due_handler = handler

    # Lifecycle

    async def init(self) -> list[str]:
        """Load persisted reminders and start their timers.

        Records whose fire time is already in the past are dropped without
        firing, so coming back online never produces a burst of stale alerts.

        Returns:
            Event ids of the dropped stale reminders.
        """
        if self._running:
            logger.debug("ReminderScheduler.init() called while running; ignoring")
            return []

        now = self._clock()
        dropped = self._store.load(drop_before=now)
        self._initialized_at = now
        self._running = True

        for record in self._store.records():
            if record.armed:
                self._start_timer(record)

        logger.info(
            "Reminder scheduler started: %d armed, %d stale dropped",
            len(self._timers),
            len(dropped),
        )
        return dropped

    async def shutdown(self) -> None:
        """Cancel all timers. Persisted records are kept for the next init()."""
        if not self._running:
            return
        self._running = False

        timers = list(self._timers.values())
        self._timers.clear()
        for task in timers:
            task.cancel()
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)
        logger.info("Reminder scheduler stopped (%d timer(s) cancelled)", len(timers))

    async def __aenter__(self) -> ReminderScheduler:
        await self.init()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.shutdown()

    # Arming

    def arm(
        self,
        event: LiteCalendarEvent,
        lead_minutes: Optional[int] = None,
        sound_profile: Optional[str] = None,
    ) -> ArmOutcome:
        """Arm (or replace) the reminder for ``event``.

        The fire time is ``start - lead``. Events that already started are not
        armed. When the lead reaches into the past but the event is still in
        the future, the reminder fires right away instead of being dropped.

        An occurrence whose reminder already fired with the same start and
        lead is skipped.

        Never raises for storage problems: a FAILED outcome carries a warning
        meant to be shown to the user once.
        """
        lead = self._resolve_lead(event, lead_minutes)
        sound = sound_profile or self.default_sound_profile
        now = self._clock()

        if self._already_fired(event, lead):
            logger.debug("Not arming %s: reminder for this occurrence already fired", event.id)
            return ArmOutcome(ArmStatus.SKIPPED, reason="already fired")

        if not event.has_valid_interval:
            logger.debug("Not arming %s: end is not after start", event.id)
            return ArmOutcome(ArmStatus.SKIPPED, reason="invalid interval")

        if event.start_date <= now:
            logger.debug("Not arming %s: event started at %s", event.id, event.start_date)
            return ArmOutcome(ArmStatus.SKIPPED, reason="event already started")

        fire_at = event.start_date - timedelta(minutes=lead)
        if fire_at < now:
            logger.debug(
                "Lead of %d min for %s reaches into the past; firing immediately", lead, event.id
            )
            fire_at = now

        self._cancel_timer(event.id)
        record = ScheduledReminder(
            event_id=event.id,
            fire_at=fire_at,
            sound_profile=sound,
            event_start=event.start_date,
            title=event.title,
            lead_minutes=lead,
            created_at=now,
        )

        try:
            self._store.put(record)
        except ReminderPersistenceError as exc:
            warning = f"Reminder for '{event.title or event.id}' could not be saved: {exc}"
            logger.warning("%s", warning)
            return ArmOutcome(ArmStatus.FAILED, warning=warning, reason="persistence unavailable")

        if self._running:
            self._start_timer(record)
        else:
            logger.debug("Scheduler not running; timer for %s starts at init()", event.id)

        logger.info("Armed reminder for %s at %s", event.id, fire_at.isoformat())
        return ArmOutcome(ArmStatus.ARMED, reminder=record)

    def cancel(self, event_id: str) -> bool:
        """Disarm the reminder for ``event_id``. Idempotent.

        Returns:
            True if a timer or persisted record was removed.
        """
        had_timer = self._cancel_timer(event_id)
        removed = self._store.remove(event_id) is not None
        if had_timer or removed:
            logger.info("Cancelled reminder for %s", event_id)
        return had_timer or removed

    def rearm(
        self,
        event: LiteCalendarEvent,
        lead_minutes: Optional[int] = None,
        sound_profile: Optional[str] = None,
    ) -> ArmOutcome:
        """Cancel then arm; used on every event update.

        A fired reminder is only reset when the start or the lead changed.
        """
        if self._already_fired(event, self._resolve_lead(event, lead_minutes)):
            logger.debug("Keeping fired reminder for %s: start and lead unchanged", event.id)
            return ArmOutcome(ArmStatus.SKIPPED, reason="already fired")
        self.cancel(event.id)
        return self.arm(event, lead_minutes=lead_minutes, sound_profile=sound_profile)

    def schedule_all(
        self, events: Iterable[LiteCalendarEvent], sound_profile: Optional[str] = None
    ) -> dict[str, ArmOutcome]:
        """Arm every event that starts in the future.

        Events that already started are left alone (their existing records,
        if any, are not touched). Fired markers of started events are purged
        first.
        """
        now = self._clock()
        self._store.purge_fired(now)
        outcomes: dict[str, ArmOutcome] = {}
        for event in events:
            if not event.has_valid_interval or event.start_date <= now:
                continue
            outcomes[event.id] = self.arm(event, sound_profile=sound_profile)
        armed = sum(1 for o in outcomes.values() if o.armed)
        logger.debug("schedule_all armed %d of %d future event(s)", armed, len(outcomes))
        return outcomes

    def _already_fired(self, event: LiteCalendarEvent, lead: int) -> bool:
        record = self._store.get(event.id)
        return (
            record is not None
            and record.state == ReminderState.FIRED
            and record.event_start == event.start_date
            and record.lead_minutes == lead
        )

    def _resolve_lead(self, event: LiteCalendarEvent, lead_minutes: Optional[int]) -> int:
        if lead_minutes is None:
            lead_minutes = event.notification_lead_minutes
        if lead_minutes is None:
            lead_minutes = self.default_lead_minutes
        if lead_minutes < 0:
            logger.warning("Negative lead %d for %s; using 0", lead_minutes, event.id)
            return 0
        return lead_minutes

    # Dispatcher-facing

    def pending(self) -> list[ScheduledReminder]:
        """All armed reminders in persisted order."""
        return [r for r in self._store.records() if r.armed]

    def tracked_event_ids(self) -> list[str]:
        """Ids of every stored record, armed or fired."""
        return [r.event_id for r in self._store.records()]

    def get(self, event_id: str) -> Optional[ScheduledReminder]:
        return self._store.get(event_id)

    def due_reminders(self, now: Optional[datetime] = None) -> list[ScheduledReminder]:
        """Armed reminders whose fire time has been reached, in persisted order."""
        now = now or self._clock()
        return [r for r in self._store.records() if r.is_due(now)]

    def claim(self, event_id: str, now: Optional[datetime] = None) -> Optional[ScheduledReminder]:
        """Atomically move a due reminder from Armed to Fired.

        Both the reminder's own timer and the periodic poll call this; only
        the first caller gets the record back, everyone else gets None. The
        record stays persisted as FIRED and any other pending timer for it is
        cancelled.
        """
        record = self._store.mark_fired(event_id, now or self._clock())
        if record is None:
            return None

        timer = self._timers.pop(event_id, None)
        if timer is not None and timer is not _current_task():
            timer.cancel()
        return record

    # Timers

    def _start_timer(self, record: ScheduledReminder) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "No running event loop; reminder %s will be picked up by the poll", record.event_id
            )
            return

        self._cancel_timer(record.event_id)
        task = loop.create_task(
            self._run_timer(record.event_id, record.fire_at),
            name=f"reminder-{record.event_id}",
        )
        self._timers[record.event_id] = task
        task.add_done_callback(lambda t, eid=record.event_id: self._forget_timer(eid, t))

    def _forget_timer(self, event_id: str, task: asyncio.Task[None]) -> None:
        if self._timers.get(event_id) is task:
            del self._timers[event_id]

    def _cancel_timer(self, event_id: str) -> bool:
        task = self._timers.pop(event_id, None)
        if task is None:
            return False
        if not task.done() and task is not _current_task():
            task.cancel()
        return True

    async def _run_timer(self, event_id: str, fire_at: datetime) -> None:
        await sleep_until(fire_at, self._clock)

        handler = self._due_handler
        if handler is None:
            logger.debug("Timer for %s fired with no due handler; left for the poll", event_id)
            return

        try:
            await maybe_await(handler(event_id))
        except Exception:
            logger.exception("Due handler failed for reminder %s", event_id)
