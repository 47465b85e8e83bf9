"""Column layout of overlapping events for a single-day timeline.

Sweep-line over interval endpoints with first-fit column assignment:

1. Clip every event to the day (see interval_classifier).
2. Sort endpoints by time. At equal timestamps ends are handled before
   starts, so an event ending at 10:00 frees its column for one starting at
   10:00. Zero-width slivers end after the starts of their own instant.
3. A starting interval takes the smallest column not held by an active
   interval. Columns are never reassigned once given out, which keeps blocks
   from jumping around between renders.
4. After every change the peak ``max(column) + 1`` over the active set is
   recorded for each active interval; ``total_columns`` is the largest value
   an interval saw while active.

Everything here is a pure function of (events, day, timezone) and is safe to
call on every render.
"""

from __future__ import annotations

import datetime
import logging
import os
from collections.abc import Iterable, Sequence
from typing import Optional

from calendar_lite.core.timezone_utils import day_bounds, to_local_day
from calendar_lite.domain.interval_classifier import (
    DayMarker,
    classify,
    classify_events,
    resolve_view_tz,
)
from calendar_lite.lite_exceptions import LayoutError
from calendar_lite.lite_models import LayoutAssignment, LiteCalendarEvent, RenderBlock

logger = logging.getLogger(__name__)

STRICT_LAYOUT_ENV = "CALENDARLITE_STRICT_LAYOUT"
DEFAULT_MIN_BLOCK_MINUTES = 20

_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.UTC)
_MICROSECOND = datetime.timedelta(microseconds=1)
_MICROS_PER_MINUTE = 60_000_000

# Endpoint kinds, in processing order for equal timestamps
_END = 0
_START = 1
_ZERO_WIDTH_END = 2


def _instant(dt: datetime.datetime) -> int:
    """Absolute position of ``dt`` in microseconds since the epoch.

    Aware datetimes sharing a tzinfo subtract as wall-clock times in Python,
    so all interval math goes through this instead.
    """
    return (dt - _EPOCH) // _MICROSECOND


def layout(
    events: Iterable[LiteCalendarEvent],
    day: DayMarker,
    tz: datetime.tzinfo | str | None = None,
) -> list[LayoutAssignment]:
    """Assign every event present on ``day`` to a column.

    Args:
        events: Full event set; events absent from the day are ignored
        day: A date, or any instant within the day
        tz: Viewing timezone (tzinfo or IANA name)

    Returns:
        One LayoutAssignment per event present on the day, in input order.
        Intervals that overlap in time never share a column.
    """
    intervals = classify_events(events, day, tz)
    if not intervals:
        return []

    points: list[tuple[int, int, int]] = []
    for idx, interval in enumerate(intervals):
        start = _instant(interval.clipped_start)
        end = _instant(interval.clipped_end)
        points.append((start, _START, idx))
        points.append((end, _END if end > start else _ZERO_WIDTH_END, idx))
    points.sort()

    active: dict[int, int] = {}
    columns: dict[int, int] = {}
    peaks: dict[int, int] = {}

    def record_peak() -> None:
        if not active:
            return
        peak = max(active.values()) + 1
        for active_idx in active:
            if peak > peaks.get(active_idx, 0):
                peaks[active_idx] = peak

    last = len(points) - 1
    for i, (time_point, kind, idx) in enumerate(points):
        if kind == _START:
            used = set(active.values())
            column = 0
            while column in used:
                column += 1
            active[idx] = column
            columns[idx] = column
            record_peak()
        else:
            active.pop(idx, None)

        if i == last or points[i + 1][0] != time_point:
            record_peak()

    assignments: list[LayoutAssignment] = []
    for idx, interval in enumerate(intervals):
        if idx not in columns:
            raise LayoutError(f"Event {interval.event.id} was never assigned a column")
        assignments.append(
            LayoutAssignment(
                event=interval.event,
                clipped_start=interval.clipped_start,
                clipped_end=interval.clipped_end,
                column=columns[idx],
                total_columns=max(peaks.get(idx, 1), 1),
                is_partial=interval.is_partial,
                position=interval.position,
            )
        )
    return assignments


def _strict_from_env() -> bool:
    return os.environ.get(STRICT_LAYOUT_ENV, "").lower() in ("1", "true", "yes")


def safe_layout(
    events: Sequence[LiteCalendarEvent],
    day: DayMarker,
    tz: datetime.tzinfo | str | None = None,
    strict: Optional[bool] = None,
) -> list[LayoutAssignment]:
    """Render-path wrapper around :func:`layout`.

    In strict mode (argument, or CALENDARLITE_STRICT_LAYOUT) errors propagate.
    Otherwise events that cannot be classified are dropped from the view and
    the rest are laid out; if layout still fails the day renders empty.
    """
    if strict is None:
        strict = _strict_from_env()

    try:
        return layout(events, day, tz)
    except Exception:
        if strict:
            raise
        logger.exception("Day layout failed for %s; omitting unclassifiable events", day)

    usable: list[LiteCalendarEvent] = []
    for event in events:
        try:
            classify(event, day, tz)
        except Exception:
            logger.warning("Event %s omitted from day view", getattr(event, "id", "?"))
            continue
        usable.append(event)

    try:
        return layout(usable, day, tz)
    except Exception:
        logger.exception("Day layout failed for %s after omitting bad events", day)
        return []


def build_render_plan(
    assignments: Iterable[LayoutAssignment],
    day: DayMarker,
    tz: datetime.tzinfo | str | None = None,
    min_height_minutes: int = DEFAULT_MIN_BLOCK_MINUTES,
) -> list[RenderBlock]:
    """Turn column assignments into block geometry for a timeline renderer.

    ``top_minutes`` is elapsed minutes from local midnight; the height is the
    clipped duration, cut at the end of the day and raised to
    ``min_height_minutes`` so short events stay legible.
    """
    zone = resolve_view_tz(tz)
    day_start, day_end = day_bounds(to_local_day(day, zone), zone)
    origin = _instant(day_start)
    day_minutes = (_instant(day_end) - origin) // _MICROS_PER_MINUTE

    blocks: list[RenderBlock] = []
    for assignment in assignments:
        top = (_instant(assignment.clipped_start) - origin) // _MICROS_PER_MINUTE
        top = min(max(top, 0), day_minutes)
        duration = (
            _instant(assignment.clipped_end) - _instant(assignment.clipped_start)
        ) // _MICROS_PER_MINUTE
        visible = min(duration, day_minutes - top)
        width = 1.0 / assignment.total_columns
        blocks.append(
            RenderBlock(
                assignment=assignment,
                top_minutes=top,
                height_minutes=max(visible, min_height_minutes),
                left_fraction=assignment.column * width,
                width_fraction=width,
                z_index=assignment.column + 1,
            )
        )
    return blocks
