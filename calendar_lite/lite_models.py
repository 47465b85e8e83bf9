"""Data models for day layout and reminder scheduling - calendar_lite."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from .core.timezone_utils import ensure_aware
from .core.timezone_utils import now_utc as _now_utc

DEFAULT_EVENT_COLOR = "bg-blue-500"


class LiteCalendarEvent(BaseModel):
    """Calendar event as supplied by the event CRUD surface.

    The core only reads events. An event whose end is not after its start is
    accepted here and treated as absent from every day by the layout code.
    """

    id: str = Field(..., description="Event ID, stable for the event's lifetime")
    title: str = Field(default="", description="Event title")
    start_date: datetime = Field(..., description="Event start (aware)")
    end_date: datetime = Field(..., description="Event end (aware)")
    is_all_day: bool = Field(default=False, description="All-day flag (presentation only)")
    notification_lead_minutes: Optional[int] = Field(
        default=None,
        ge=0,
        description="Minutes before start to remind; 0 = at start, None = configured default",
    )
    color: str = Field(default=DEFAULT_EVENT_COLOR, description="Opaque presentation tag")
    calendar_id: str = Field(default="1", description="Owning calendar")
    location: Optional[str] = Field(default=None, description="Event location")
    description: Optional[str] = Field(default=None, description="Event description")

    @field_validator("start_date", "end_date")
    @classmethod
    def make_aware(cls, v: datetime) -> datetime:
        """Interpret naive datetimes as UTC."""
        return ensure_aware(v)

    @property
    def has_valid_interval(self) -> bool:
        """True when the event ends strictly after it starts."""
        return self.end_date > self.start_date

    @field_serializer("start_date", "end_date")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime fields to ISO format."""
        return dt.isoformat()


class DayPosition(str, Enum):
    """Where a day falls within an event's span."""

    FULL = "full"
    START = "start"
    MIDDLE = "middle"
    END = "end"


@dataclass(frozen=True)
class DayClippedInterval:
    """An event's span restricted to one calendar day."""

    event: LiteCalendarEvent
    clipped_start: datetime
    clipped_end: datetime
    is_partial: bool
    position: DayPosition


@dataclass(frozen=True)
class LayoutAssignment:
    """Column placement of one event on a day timeline."""

    event: LiteCalendarEvent
    clipped_start: datetime
    clipped_end: datetime
    column: int
    total_columns: int
    is_partial: bool
    position: DayPosition


@dataclass(frozen=True)
class RenderBlock:
    """Geometry for drawing one event block, in minute units.

    One minute maps to one vertical unit; horizontal placement is expressed
    as fractions of the timeline width.
    """

    assignment: LayoutAssignment
    top_minutes: int
    height_minutes: int
    left_fraction: float
    width_fraction: float
    z_index: int

    @property
    def event(self) -> LiteCalendarEvent:
        return self.assignment.event


class ReminderState(str, Enum):
    """Lifecycle of a reminder for one event occurrence."""

    ARMED = "armed"
    FIRED = "fired"
    CANCELLED = "cancelled"


class ScheduledReminder(BaseModel):
    """Persisted reminder record, keyed by event id in the reminder store."""

    event_id: str = Field(..., description="Event this reminder belongs to")
    fire_at: datetime = Field(..., description="Absolute fire time (aware UTC)")
    sound_profile: str = Field(..., description="Opaque sound key")
    state: ReminderState = Field(default=ReminderState.ARMED, description="Lifecycle state")
    event_start: Optional[datetime] = Field(default=None, description="Event start at arm time")
    title: str = Field(default="", description="Event title at arm time")
    lead_minutes: int = Field(default=0, ge=0, description="Requested lead time")
    created_at: datetime = Field(default_factory=_now_utc, description="When the record was armed")

    model_config = ConfigDict(use_enum_values=False)

    @field_validator("fire_at", "event_start", "created_at")
    @classmethod
    def make_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Interpret naive datetimes as UTC."""
        return ensure_aware(v) if v is not None else None

    @property
    def armed(self) -> bool:
        return self.state == ReminderState.ARMED

    def is_due(self, now: datetime) -> bool:
        """True when armed and the fire time has been reached."""
        return self.armed and self.fire_at <= now

    @field_serializer("fire_at", "created_at")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime fields to ISO format."""
        return dt.isoformat()

    @field_serializer("event_start", when_used="unless-none")
    def serialize_optional_datetime(self, dt: datetime) -> str:
        return dt.isoformat()


class ReminderAlert(BaseModel):
    """User-facing alert produced when a reminder fires."""

    event_id: str
    title: str = ""
    event_start: Optional[datetime] = None
    fire_at: datetime
    fired_at: datetime = Field(default_factory=_now_utc)
    sound_profile: str
    sound_file: str
    message: str


class ArmStatus(str, Enum):
    """Result of an arm request."""

    ARMED = "armed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ArmOutcome:
    """What happened when a reminder was (re)armed.

    ``warning`` is set only for FAILED outcomes and is meant to be shown to the
    user once; the event operation itself still succeeds.
    """

    status: ArmStatus
    reminder: Optional[ScheduledReminder] = None
    warning: Optional[str] = None
    reason: Optional[str] = None

    @property
    def armed(self) -> bool:
        return self.status == ArmStatus.ARMED
