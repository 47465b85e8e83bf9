"""Unit tests for calendar_lite.domain.reminder_scheduler."""

import json
from datetime import timedelta

import pytest

from calendar_lite.config_loader import Config
from calendar_lite.domain.reminder_scheduler import ReminderScheduler
from calendar_lite.domain.reminder_store import ReminderStore
from calendar_lite.lite_models import ArmStatus, ReminderState

pytestmark = pytest.mark.unit


@pytest.fixture
def store(store_path):
    return ReminderStore(store_path)


@pytest.fixture
def scheduler(store, clock):
    return ReminderScheduler(store, clock=clock)


@pytest.fixture
def future_event(at, make_event):
    """Starts two hours after the fake clock (08:00 Pacific)."""
    return make_event("standup", at(2025, 3, 10, 10), at(2025, 3, 10, 10, 30), title="Standup")


class TestArm:
    def test_fire_time_is_start_minus_lead(self, scheduler, store, future_event):
        outcome = scheduler.arm(future_event, lead_minutes=15)

        assert outcome.status == ArmStatus.ARMED
        assert outcome.armed
        assert outcome.reminder.fire_at == future_event.start_date - timedelta(minutes=15)
        assert outcome.reminder.sound_profile == "telegram"
        assert outcome.reminder.title == "Standup"
        assert store.get("standup").state == ReminderState.ARMED

    def test_lead_zero_fires_at_start(self, scheduler, future_event):
        outcome = scheduler.arm(future_event, lead_minutes=0)

        assert outcome.reminder.fire_at == future_event.start_date

    def test_lead_precedence(self, store, clock, at, make_event):
        scheduler = ReminderScheduler(store, clock=clock, default_lead_minutes=5)
        start = at(2025, 3, 10, 10)
        plain = make_event("plain", start, start + timedelta(hours=1))
        with_lead = make_event(
            "lead", start, start + timedelta(hours=1), notification_lead_minutes=30
        )

        assert scheduler.arm(plain).reminder.lead_minutes == 5
        assert scheduler.arm(with_lead).reminder.lead_minutes == 30
        assert scheduler.arm(with_lead, lead_minutes=1).reminder.lead_minutes == 1

    def test_negative_lead_is_treated_as_zero(self, scheduler, future_event):
        outcome = scheduler.arm(future_event, lead_minutes=-10)

        assert outcome.reminder.lead_minutes == 0
        assert outcome.reminder.fire_at == future_event.start_date

    def test_lead_longer_than_remaining_time_fires_now(self, scheduler, clock, future_event):
        outcome = scheduler.arm(future_event, lead_minutes=180)

        assert outcome.armed
        assert outcome.reminder.fire_at == clock.now
        assert [r.event_id for r in scheduler.due_reminders()] == ["standup"]

    def test_started_event_is_skipped(self, scheduler, store, at, make_event):
        started = make_event("started", at(2025, 3, 10, 7, 30), at(2025, 3, 10, 9))

        outcome = scheduler.arm(started)

        assert outcome.status == ArmStatus.SKIPPED
        assert outcome.reminder is None
        assert "started" not in store

    def test_event_starting_exactly_now_is_skipped(self, scheduler, at, make_event):
        now_event = make_event("now", at(2025, 3, 10, 8), at(2025, 3, 10, 9))

        assert scheduler.arm(now_event).status == ArmStatus.SKIPPED

    def test_invalid_interval_is_skipped(self, scheduler, at, make_event):
        inverted = make_event("inv", at(2025, 3, 10, 11), at(2025, 3, 10, 10))

        outcome = scheduler.arm(inverted)

        assert outcome.status == ArmStatus.SKIPPED
        assert outcome.reason == "invalid interval"

    def test_sound_profile_override(self, scheduler, future_event):
        assert scheduler.arm(future_event, sound_profile="chime").reminder.sound_profile == "chime"

    def test_persistence_failure_reports_warning(self, tmp_path, clock, future_event):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        scheduler = ReminderScheduler(ReminderStore(blocker / "reminders.json"), clock=clock)

        outcome = scheduler.arm(future_event)

        assert outcome.status == ArmStatus.FAILED
        assert outcome.warning is not None
        assert "Standup" in outcome.warning
        assert scheduler.pending() == []


class TestCancelAndRearm:
    def test_cancel_removes_record(self, scheduler, store, future_event):
        scheduler.arm(future_event)

        assert scheduler.cancel("standup") is True
        assert "standup" not in store
        assert scheduler.cancel("standup") is False

    def test_cancel_unknown_event(self, scheduler):
        assert scheduler.cancel("missing") is False

    def test_rearm_replaces_fire_time(self, scheduler, future_event, make_event, at):
        scheduler.arm(future_event, lead_minutes=10)
        moved = make_event("standup", at(2025, 3, 10, 14), at(2025, 3, 10, 15), title="Standup")

        outcome = scheduler.rearm(moved, lead_minutes=10)

        assert outcome.reminder.fire_at == at(2025, 3, 10, 13, 50)
        assert [r.event_id for r in scheduler.pending()] == ["standup"]

    def test_rearm_into_the_past_disarms(self, scheduler, store, future_event, make_event, at):
        scheduler.arm(future_event)
        moved = make_event("standup", at(2025, 3, 10, 7), at(2025, 3, 10, 7, 30))

        outcome = scheduler.rearm(moved)

        assert outcome.status == ArmStatus.SKIPPED
        assert "standup" not in store


class TestScheduleAll:
    def test_only_future_events_are_armed(self, scheduler, at, make_event):
        events = [
            make_event("past", at(2025, 3, 10, 6), at(2025, 3, 10, 7)),
            make_event("future", at(2025, 3, 10, 9), at(2025, 3, 10, 10)),
            make_event("tomorrow", at(2025, 3, 11, 9), at(2025, 3, 11, 10)),
        ]

        outcomes = scheduler.schedule_all(events, sound_profile="bell")

        assert set(outcomes) == {"future", "tomorrow"}
        assert all(o.armed for o in outcomes.values())
        assert {r.sound_profile for r in scheduler.pending()} == {"bell"}


class TestClaim:
    def test_claim_is_single_use(self, scheduler, clock, future_event):
        scheduler.arm(future_event, lead_minutes=0)
        clock.advance(hours=2)

        first = scheduler.claim("standup")
        second = scheduler.claim("standup")

        assert first is not None and first.state == ReminderState.FIRED
        assert second is None
        assert scheduler.pending() == []
        assert scheduler.get("standup").state == ReminderState.FIRED

    def test_claim_before_due_returns_none(self, scheduler, future_event):
        scheduler.arm(future_event)

        assert scheduler.claim("standup") is None
        assert scheduler.get("standup") is not None



class TestFiredOccurrence:
    def _fire(self, scheduler, clock, event, lead):
        scheduler.arm(event, lead_minutes=lead)
        clock.now = event.start_date - timedelta(minutes=lead)
        assert scheduler.claim(event.id) is not None

    def test_arm_skips_occurrence_that_already_fired(self, scheduler, clock, future_event):
        self._fire(scheduler, clock, future_event, lead=10)
        clock.advance(minutes=2)

        outcome = scheduler.arm(future_event, lead_minutes=10)

        assert outcome.status == ArmStatus.SKIPPED
        assert outcome.reason == "already fired"
        assert scheduler.due_reminders() == []

    def test_schedule_all_does_not_rearm_fired_occurrence(self, scheduler, clock, future_event):
        self._fire(scheduler, clock, future_event, lead=10)
        clock.advance(minutes=2)

        repeat = future_event.model_copy(update={"notification_lead_minutes": 10})
        outcomes = scheduler.schedule_all([repeat])

        assert outcomes["standup"].status == ArmStatus.SKIPPED
        assert scheduler.pending() == []

    def test_rearm_with_same_start_and_lead_keeps_marker(self, scheduler, clock, future_event):
        self._fire(scheduler, clock, future_event, lead=10)

        outcome = scheduler.rearm(future_event.model_copy(update={"title": "Renamed"}), 10)

        assert outcome.status == ArmStatus.SKIPPED
        assert scheduler.get("standup").state == ReminderState.FIRED

    def test_rearm_with_new_start_arms_again(self, scheduler, clock, future_event):
        self._fire(scheduler, clock, future_event, lead=10)
        moved = future_event.model_copy(
            update={
                "start_date": future_event.start_date + timedelta(hours=1),
                "end_date": future_event.end_date + timedelta(hours=1),
            }
        )

        outcome = scheduler.rearm(moved, lead_minutes=10)

        assert outcome.status == ArmStatus.ARMED
        assert outcome.reminder.fire_at == moved.start_date - timedelta(minutes=10)

    def test_rearm_with_new_lead_arms_again(self, scheduler, clock, future_event):
        self._fire(scheduler, clock, future_event, lead=10)

        outcome = scheduler.rearm(future_event, lead_minutes=5)

        assert outcome.status == ArmStatus.ARMED
        assert outcome.reminder.fire_at == future_event.start_date - timedelta(minutes=5)

    def test_schedule_all_purges_markers_of_started_events(
        self, scheduler, store, clock, future_event
    ):
        self._fire(scheduler, clock, future_event, lead=10)
        clock.now = future_event.start_date

        scheduler.schedule_all([])

        assert "standup" not in store


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_init_drops_stale_records(self, store_path, clock, store):
        stale = {
            "event_id": "old",
            "fire_at": (clock.now - timedelta(hours=1)).isoformat(),
            "sound_profile": "telegram",
            "state": "armed",
        }
        fresh = {
            "event_id": "new",
            "fire_at": (clock.now + timedelta(hours=1)).isoformat(),
            "sound_profile": "telegram",
            "state": "armed",
        }
        store_path.write_text(json.dumps({"old": stale, "new": fresh}), encoding="utf-8")

        scheduler = ReminderScheduler(store, clock=clock)
        try:
            dropped = await scheduler.init()

            assert dropped == ["old"]
            assert [r.event_id for r in scheduler.pending()] == ["new"]
            assert scheduler.due_reminders() == []
            assert scheduler.active_timer_count == 1
            assert scheduler.initialized_at == clock.now
        finally:
            await scheduler.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_keeps_records_for_next_start(self, scheduler, store, future_event):
        await scheduler.init()
        scheduler.arm(future_event)
        assert scheduler.active_timer_count == 1

        await scheduler.shutdown()

        assert scheduler.running is False
        assert scheduler.active_timer_count == 0
        assert "standup" in store

    @pytest.mark.asyncio
    async def test_due_timer_calls_handler(self, scheduler, future_event, wait_until):
        claimed = []
        scheduler.set_due_handler(lambda event_id: claimed.append(scheduler.claim(event_id)))

        async with scheduler:
            scheduler.arm(future_event, lead_minutes=240)
            assert await wait_until(lambda: claimed)

        assert claimed[0].event_id == "standup"
        assert scheduler.pending() == []

    @pytest.mark.asyncio
    async def test_cancel_stops_timer(self, scheduler, future_event):
        calls = []
        scheduler.set_due_handler(calls.append)

        async with scheduler:
            scheduler.arm(future_event)
            assert scheduler.active_timer_count == 1
            scheduler.cancel("standup")
            assert scheduler.active_timer_count == 0

        assert calls == []

    @pytest.mark.asyncio
    async def test_handler_errors_are_contained(self, scheduler, future_event, wait_until):
        calls = []

        def explode(event_id):
            calls.append(event_id)
            raise RuntimeError("sink exploded")

        scheduler.set_due_handler(explode)
        async with scheduler:
            scheduler.arm(future_event, lead_minutes=240)
            assert await wait_until(lambda: calls)
            assert await wait_until(lambda: scheduler.active_timer_count == 0)

        assert calls == ["standup"]


def test_from_config_uses_configured_defaults(store_path, clock, future_event):
    config = Config(
        reminder_store_path=str(store_path), default_lead_minutes=10, sound_profile="chime"
    )

    scheduler = ReminderScheduler.from_config(config, clock=clock)
    outcome = scheduler.arm(future_event)

    assert outcome.reminder.lead_minutes == 10
    assert outcome.reminder.sound_profile == "chime"
    assert store_path.exists()
