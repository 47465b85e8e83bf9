"""Exactly-once delivery of reminder alerts.

Two paths can observe a reminder as due: its own timer task and the periodic
poll, which exists to catch timers that were delayed or coalesced while the
host was suspended. Both go through ``NotificationDispatcher.fire``, which
asks the scheduler to claim the reminder (an atomic Armed -> Fired
transition); only the winner builds and delivers an alert.

Delivery to sinks runs as background tasks so the scheduler's bookkeeping
never waits on presentation.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any, Optional, Protocol, runtime_checkable

from calendar_lite.core.async_utils import BackgroundTaskSet, cancel_and_wait, maybe_await
from calendar_lite.domain.reminder_scheduler import ReminderScheduler
from calendar_lite.domain.sound_profiles import SoundCatalog
from calendar_lite.lite_models import ReminderAlert, ScheduledReminder

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 15.0
# Grace period for in-flight deliveries when the dispatcher stops
STOP_GRACE_SECONDS = 1.0


@runtime_checkable
class AlertSink(Protocol):
    """Presentation layer receiving fired alerts (banner, sound, OS notification)."""

    async def deliver(self, alert: ReminderAlert) -> None: ...


class LoggingAlertSink:
    """Writes alerts to the log; the default when no sink is configured."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    async def deliver(self, alert: ReminderAlert) -> None:
        logger.log(
            self.level,
            "Reminder: %s - %s (sound=%s)",
            alert.title or alert.event_id,
            alert.message,
            alert.sound_profile,
        )


class CallbackAlertSink:
    """Adapts a plain sync or async callable to the AlertSink protocol."""

    def __init__(self, callback: Callable[[ReminderAlert], Any]):
        self._callback = callback

    async def deliver(self, alert: ReminderAlert) -> None:
        await maybe_await(self._callback(alert))


def describe_time_until(event_start: Optional[datetime], now: datetime) -> str:
    """Alert text for an event starting at ``event_start``."""
    if event_start is None:
        return "Reminder"
    minutes = round((event_start - now).total_seconds() / 60)
    if minutes <= 0:
        return "Starting now"
    if minutes == 1:
        return "Starts in 1 minute"
    return f"Starts in {minutes} minutes"


class NotificationDispatcher:
    """Polls due reminders and fires each one exactly once."""

    def __init__(
        self,
        scheduler: ReminderScheduler,
        sinks: Optional[Sequence[AlertSink]] = None,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        sound_catalog: Optional[SoundCatalog] = None,
    ):
        """Initialize the dispatcher and register it as the scheduler's due handler.

        Args:
            scheduler: Scheduler owning the reminder records
            sinks: Alert receivers (defaults to a LoggingAlertSink)
            poll_interval_seconds: Period of the safety poll
            sound_catalog: Lookup for sound profile keys
        """
        if poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be positive")

        self._scheduler = scheduler
        self._sinks: list[AlertSink] = list(sinks) if sinks else [LoggingAlertSink()]
        self.poll_interval_seconds = poll_interval_seconds
        self._sounds = sound_catalog or SoundCatalog()

        self._deliveries = BackgroundTaskSet(name="alert-delivery")
        self._poll_task: Optional[asyncio.Task[None]] = None
        self._fired_count = 0

        scheduler.set_due_handler(self.fire)

    @property
    def fired_count(self) -> int:
        return self._fired_count

    @property
    def running(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def add_sink(self, sink: AlertSink) -> None:
        self._sinks.append(sink)

    async def start(self) -> None:
        """Start the periodic poll task."""
        if self.running:
            return
        self._poll_task = asyncio.create_task(self._poll_loop(), name="reminder-poll")
        logger.debug("Notification poll started (every %.1fs)", self.poll_interval_seconds)

    async def stop(self) -> None:
        """Stop polling and give in-flight deliveries a short grace period."""
        await cancel_and_wait(self._poll_task)
        self._poll_task = None
        await self._deliveries.wait_idle(timeout=STOP_GRACE_SECONDS)
        await self._deliveries.cancel_all()
        logger.debug("Notification poll stopped")

    async def wait_for_deliveries(self, timeout: Optional[float] = None) -> None:
        """Wait until alerts handed to sinks so far have been delivered."""
        await self._deliveries.wait_idle(timeout=timeout)

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval_seconds)
            try:
                self.poll_once()
            except Exception:
                logger.exception("Reminder poll failed; retrying next tick")

    def poll_once(self, now: Optional[datetime] = None) -> list[ReminderAlert]:
        """Fire every due reminder, in persisted-record order."""
        now = now or self._scheduler.clock()
        alerts: list[ReminderAlert] = []
        for record in self._scheduler.due_reminders(now):
            alert = self.fire(record.event_id, now)
            if alert is not None:
                alerts.append(alert)
        if alerts:
            logger.debug("Poll fired %d reminder(s)", len(alerts))
        return alerts

    def fire(self, event_id: str, now: Optional[datetime] = None) -> Optional[ReminderAlert]:
        """Fire the reminder for ``event_id`` if it is still armed and due.

        Returns:
            The dispatched alert, or None if another path already fired it,
            it was cancelled, or it is not due yet.
        """
        now = now or self._scheduler.clock()
        record = self._scheduler.claim(event_id, now)
        if record is None:
            logger.debug("Reminder %s not fired (already fired, cancelled or not due)", event_id)
            return None

        self._fired_count += 1
        alert = self._build_alert(record, now)
        logger.info("Reminder fired for %s (%s)", event_id, alert.message)
        self._dispatch(alert)
        return alert

    def _build_alert(self, record: ScheduledReminder, now: datetime) -> ReminderAlert:
        profile, sound_file = self._sounds.resolve(record.sound_profile)
        return ReminderAlert(
            event_id=record.event_id,
            title=record.title,
            event_start=record.event_start,
            fire_at=record.fire_at,
            fired_at=now,
            sound_profile=profile,
            sound_file=sound_file,
            message=describe_time_until(record.event_start, now),
        )

    def _dispatch(self, alert: ReminderAlert) -> None:
        """Hand the alert to every sink.

        Inside an event loop delivery runs in background tasks. Without one,
        each sink is awaited in turn before returning.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; delivering alert for %s inline", alert.event_id)
            for sink in self._sinks:
                asyncio.run(self._deliver(sink, alert))
            return

        for sink in self._sinks:
            self._deliveries.spawn(self._deliver(sink, alert), name=f"alert-{alert.event_id}")

    async def _deliver(self, sink: AlertSink, alert: ReminderAlert) -> None:
        try:
            await sink.deliver(alert)
        except Exception:
            logger.exception("Alert sink %r failed for %s", sink, alert.event_id)
