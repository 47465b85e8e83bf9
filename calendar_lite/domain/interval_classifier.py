"""Classify how an event intersects a single calendar day.

Dates are compared in the viewing timezone, so an event from 23:30 to 00:30
is multi-day even though it lasts one hour. Presence is boundary inclusive:
an event ending exactly at midnight still shows up on the day that midnight
opens, as a zero-width ``end`` sliver.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable
from typing import Optional

from calendar_lite.core.timezone_utils import day_bounds, get_zone, local_date, to_local_day
from calendar_lite.lite_models import DayClippedInterval, DayPosition, LiteCalendarEvent

logger = logging.getLogger(__name__)

DayMarker = datetime.date | datetime.datetime


def resolve_view_tz(tz: datetime.tzinfo | str | None) -> datetime.tzinfo:
    if tz is None or isinstance(tz, str):
        return get_zone(tz)
    return tz


def classify(
    event: LiteCalendarEvent,
    day: DayMarker,
    tz: datetime.tzinfo | str | None = None,
) -> Optional[DayClippedInterval]:
    """Return the part of ``event`` that falls on ``day``, or None if absent.

    Args:
        event: Event to classify
        day: A date, or any instant within the day (converted into ``tz``)
        tz: Viewing timezone (tzinfo or IANA name); defaults to the configured one

    Returns:
        DayClippedInterval with clipped bounds and position, or None
    """
    if not event.has_valid_interval:
        logger.debug("Event %s has end <= start; treating as absent", event.id)
        return None

    zone = resolve_view_tz(tz)
    target = to_local_day(day, zone)
    start_day = local_date(event.start_date, zone)
    end_day = local_date(event.end_date, zone)

    if not start_day <= target <= end_day:
        return None

    if start_day == end_day:
        return DayClippedInterval(
            event=event,
            clipped_start=event.start_date,
            clipped_end=event.end_date,
            is_partial=False,
            position=DayPosition.FULL,
        )

    day_start, day_end = day_bounds(target, zone)

    if target == start_day:
        return DayClippedInterval(
            event=event,
            clipped_start=event.start_date,
            clipped_end=day_end,
            is_partial=True,
            position=DayPosition.START,
        )
    if target == end_day:
        return DayClippedInterval(
            event=event,
            clipped_start=day_start,
            clipped_end=event.end_date,
            is_partial=True,
            position=DayPosition.END,
        )
    return DayClippedInterval(
        event=event,
        clipped_start=day_start,
        clipped_end=day_end,
        is_partial=True,
        position=DayPosition.MIDDLE,
    )


def classify_events(
    events: Iterable[LiteCalendarEvent],
    day: DayMarker,
    tz: datetime.tzinfo | str | None = None,
) -> list[DayClippedInterval]:
    """Classify a collection against one day, dropping absent events.

    Events sharing an id are classified once (first occurrence wins) so each
    event yields at most one interval.
    """
    zone = resolve_view_tz(tz)
    seen: set[str] = set()
    intervals: list[DayClippedInterval] = []
    for event in events:
        if event.id in seen:
            logger.debug("Duplicate event id %s ignored for day layout", event.id)
            continue
        seen.add(event.id)
        interval = classify(event, day, zone)
        if interval is not None:
            intervals.append(interval)
    return intervals
