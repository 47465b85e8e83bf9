"""Timezone resolution, day-boundary and clock utilities for calendar_lite."""

from __future__ import annotations

import datetime
import logging
import os
import zoneinfo
from functools import lru_cache
from typing import ClassVar

logger = logging.getLogger(__name__)

# Default fallback timezone for all timezone operations
DEFAULT_VIEW_TIMEZONE = "America/Los_Angeles"

TEST_TIME_ENV = "CALENDARLITE_TEST_TIME"
TIMEZONE_ENV = "CALENDARLITE_TIMEZONE"


class TimezoneResolver:
    """Resolves configured timezone names to ``ZoneInfo`` objects."""

    # Timezone aliases mapping (obsolete/deprecated IANA names to current names)
    TZ_ALIAS_MAP: ClassVar[dict[str, str]] = {
        "US/Pacific": "America/Los_Angeles",
        "US/Mountain": "America/Denver",
        "US/Central": "America/Chicago",
        "US/Eastern": "America/New_York",
        "US/Alaska": "America/Anchorage",
        "US/Hawaii": "Pacific/Honolulu",
        "US/Arizona": "America/Phoenix",
        "PRC": "Asia/Shanghai",
        "GMT": "UTC",
        "Etc/UTC": "UTC",
        "Etc/GMT": "UTC",
        "Universal": "UTC",
        "Zulu": "UTC",
        "PST8PDT": "America/Los_Angeles",
        "EST5EDT": "America/New_York",
        "Asia/Rangoon": "Asia/Yangon",
        "America/Godthab": "America/Nuuk",
    }

    def resolve_name(self, tz_name: str) -> str | None:
        """Return the canonical IANA name for ``tz_name`` or None if unknown.

        Examples:
            >>> TimezoneResolver().resolve_name("US/Pacific")
            'America/Los_Angeles'
            >>> TimezoneResolver().resolve_name("Invalid/Zone") is None
            True
        """
        if not tz_name:
            return None

        canonical = self.TZ_ALIAS_MAP.get(tz_name, tz_name)
        try:
            zoneinfo.ZoneInfo(canonical)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r", tz_name)
            return None
        return canonical


class TimeProvider:
    """Provides current time with test time override support."""

    def now_utc(self) -> datetime.datetime:
        """Return current UTC time with tzinfo.

        Can be overridden for testing via the CALENDARLITE_TEST_TIME environment
        variable (ISO 8601, e.g. "2025-10-27T08:20:00-07:00"). Naive values are
        taken as UTC.
        """
        test_time = os.environ.get(TEST_TIME_ENV)
        if test_time:
            try:
                from dateutil import parser as date_parser

                dt = date_parser.isoparse(test_time)
                if dt.tzinfo is not None:
                    return dt.astimezone(datetime.UTC)
                return dt.replace(tzinfo=datetime.UTC)

            except (ValueError, OverflowError) as e:
                logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)
                # Fall through to real time

        return datetime.datetime.now(datetime.UTC)


# Singleton instances for global use
_resolver = TimezoneResolver()
_time_provider = TimeProvider()


def now_utc() -> datetime.datetime:
    """Get current UTC time (convenience function)."""
    return _time_provider.now_utc()


def get_default_timezone(fallback: str = DEFAULT_VIEW_TIMEZONE) -> str:
    """Get the configured viewing timezone from the environment with validation.

    Checks CALENDARLITE_TIMEZONE first, then falls back to ``fallback``.
    """
    configured = os.environ.get(TIMEZONE_ENV, fallback)
    resolved = _resolver.resolve_name(configured)
    if resolved is None:
        logger.warning("Invalid timezone %r, falling back to %r", configured, fallback)
        return fallback
    return resolved


def get_zone(tz_name: str | None = None) -> zoneinfo.ZoneInfo:
    """Return a ``ZoneInfo`` for ``tz_name`` (or the default viewing timezone).

    The default is read from the environment on every call.

    Raises:
        ValueError: if the name cannot be resolved to an IANA zone.
    """
    return _zone_for(tz_name or get_default_timezone())


@lru_cache(maxsize=32)
def _zone_for(name: str) -> zoneinfo.ZoneInfo:
    resolved = _resolver.resolve_name(name)
    if resolved is None:
        raise ValueError(f"Unknown timezone: {name!r}")
    return zoneinfo.ZoneInfo(resolved)


def ensure_aware(dt: datetime.datetime) -> datetime.datetime:
    """Attach UTC to naive datetimes; aware datetimes are returned unchanged."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=datetime.UTC)
    return dt


def local_date(dt: datetime.datetime, tz: datetime.tzinfo) -> datetime.date:
    """Calendar date of ``dt`` as seen in ``tz``."""
    return ensure_aware(dt).astimezone(tz).date()


def to_local_day(day: datetime.date | datetime.datetime, tz: datetime.tzinfo) -> datetime.date:
    """Normalize a day marker (a date, or any instant within the day) to a date in ``tz``."""
    if isinstance(day, datetime.datetime):
        return local_date(day, tz)
    return day


def day_bounds(
    day: datetime.date, tz: datetime.tzinfo
) -> tuple[datetime.datetime, datetime.datetime]:
    """Return ``[local 00:00, next local 00:00)`` for ``day`` in ``tz``.

    On DST transition days the span is 23 or 25 hours long.
    """
    start = datetime.datetime.combine(day, datetime.time.min, tzinfo=tz)
    end = datetime.datetime.combine(day + datetime.timedelta(days=1), datetime.time.min, tzinfo=tz)
    return start, end
