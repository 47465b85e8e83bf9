import asyncio
import datetime
from collections.abc import Callable, Generator
from typing import Any
from zoneinfo import ZoneInfo

import pytest

from calendar_lite.lite_models import LiteCalendarEvent, ReminderAlert

VIEW_TZ_NAME = "America/Los_Angeles"


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime.datetime):
        self.now = start.astimezone(datetime.UTC)

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime.datetime:
        self.now = self.now + datetime.timedelta(**kwargs)
        return self.now


class CollectingSink:
    """Alert sink that records everything delivered to it."""

    def __init__(self) -> None:
        self.alerts: list[ReminderAlert] = []

    async def deliver(self, alert: ReminderAlert) -> None:
        self.alerts.append(alert)


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> bool:
    """Yield to the loop until ``predicate()`` holds or ``timeout`` expires."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() >= deadline:
            return False
        await asyncio.sleep(0.01)
    return True


@pytest.fixture
def view_tz() -> ZoneInfo:
    """Deterministic viewing timezone so tests don't depend on the host."""
    return ZoneInfo(VIEW_TZ_NAME)


@pytest.fixture
def at(view_tz: ZoneInfo) -> Callable[..., datetime.datetime]:
    """Build aware datetimes in the viewing timezone: at(2025, 3, 10, 9, 30)."""

    def _at(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime.datetime:
        return datetime.datetime(year, month, day, hour, minute, tzinfo=view_tz)

    return _at


@pytest.fixture
def make_event() -> Callable[..., LiteCalendarEvent]:
    """Factory for events with sensible defaults."""

    def _make(
        event_id: str,
        start: datetime.datetime,
        end: datetime.datetime,
        **extra: Any,
    ) -> LiteCalendarEvent:
        extra.setdefault("title", f"Event {event_id}")
        return LiteCalendarEvent(id=event_id, start_date=start, end_date=end, **extra)

    return _make


@pytest.fixture
def clock() -> FakeClock:
    """Fake clock frozen at 2025-03-10 08:00 Pacific."""
    return FakeClock(datetime.datetime(2025, 3, 10, 8, 0, tzinfo=ZoneInfo(VIEW_TZ_NAME)))


@pytest.fixture
def sink() -> CollectingSink:
    return CollectingSink()


@pytest.fixture
def store_path(tmp_path: Any) -> Any:
    return tmp_path / "reminders.json"


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Keep CALENDARLITE_* variables from leaking between tests."""
    for key in (
        "CALENDARLITE_TEST_TIME",
        "CALENDARLITE_TIMEZONE",
        "CALENDARLITE_STRICT_LAYOUT",
        "CALENDARLITE_POLL_INTERVAL",
        "CALENDARLITE_DEFAULT_LEAD_MINUTES",
        "CALENDARLITE_SOUND_PROFILE",
        "CALENDARLITE_REMINDER_STORE",
        "CALENDARLITE_MIN_BLOCK_MINUTES",
        "CALENDARLITE_LOG_LEVEL",
        "CALENDARLITE_DEBUG",
    ):
        monkeypatch.delenv(key, raising=False)
    yield


@pytest.fixture(name="wait_until")
def wait_until_fixture() -> Callable[..., Any]:
    """Expose ``wait_until`` to tests without importing from conftest."""
    return wait_until
