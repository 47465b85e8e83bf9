"""Custom exception hierarchy for calendar_lite.

Scheduling problems are recoverable and surface as warnings on arm results;
these exceptions mark the places where callers may still want to branch on a
specific failure.
"""


class CalendarLiteError(Exception):
    """Base exception for all calendar_lite errors."""


class ConfigError(CalendarLiteError):
    """Configuration file could not be read or parsed."""


class LayoutError(CalendarLiteError):
    """Day layout computation hit an unexpected state.

    Raised when:
    - An event cannot be classified against the requested day
    - The sweep produced an interval without a column

    Well-formed input never produces this; it indicates a programming error.
    """


class ReminderError(CalendarLiteError):
    """Base exception for reminder scheduling errors."""


class ReminderPersistenceError(ReminderError):
    """The reminder store could not be written.

    Raised when:
    - The store directory is not writable
    - The disk is full or the temp file cannot be replaced into place
    """
