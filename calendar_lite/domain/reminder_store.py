"""JSON-backed reminder store for calendar_lite with atomic writes.

Only the reminder scheduler mutates this store. The on-disk format is a JSON
object mapping event_id -> ScheduledReminder record, kept in arm order so
due reminders are processed in persisted-record order.

A fired reminder stays in the store as a FIRED marker until its event starts,
so re-importing the same occurrence does not arm it a second time.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from calendar_lite.lite_exceptions import ReminderPersistenceError
from calendar_lite.lite_models import ReminderState, ScheduledReminder

logger = logging.getLogger(__name__)


def _marker_expired(record: ScheduledReminder, now: Optional[datetime]) -> bool:
    """A FIRED marker lives until its event starts; without a start it is useless."""
    if record.event_start is None:
        return True
    return now is not None and record.event_start <= now


class ReminderStore:
    """Persistent map of event_id -> ScheduledReminder.

    All times are stored as ISO-8601 strings with timezone information.
    """

    def __init__(self, path: str | Path) -> None:
        """Create a ReminderStore.

        The file is not read until :meth:`load` is called.

        Args:
            path: Path to the JSON file.
        """
        self._path = Path(path)
        self._lock = threading.Lock()
        self._records: dict[str, ScheduledReminder] = {}

    @property
    def path(self) -> Path:
        return self._path

    def load(self, drop_before: Optional[datetime] = None) -> list[str]:
        """Load JSON from disk (if present) and populate memory.

        Args:
            drop_before: Armed records whose fire time is earlier than this are
                discarded and the purge is persisted.

        Returns:
            Event ids of the records that were dropped as stale.
        """
        with self._lock:
            self._records = {}
            if not self._path.exists():
                logger.debug("Reminder store file not found; starting empty: %s", self._path)
                return []

            try:
                with self._path.open("r", encoding="utf-8") as fh:
                    data = json.load(fh)
            except (OSError, ValueError) as exc:
                logger.warning("Failed to read reminder store %s: %s", self._path, exc)
                return []

            if not isinstance(data, dict):
                logger.warning("Reminder store %s root is not an object; ignoring", self._path)
                return []

            stale: list[str] = []
            expired_markers = 0
            for event_id, raw in data.items():
                try:
                    record = ScheduledReminder.model_validate(raw)
                except ValidationError:
                    logger.warning("Skipping malformed reminder record for %r", event_id)
                    continue
                if record.event_id != event_id:
                    continue
                if record.state == ReminderState.FIRED:
                    if _marker_expired(record, drop_before):
                        expired_markers += 1
                    else:
                        self._records[event_id] = record
                    continue
                if not record.armed:
                    continue
                if drop_before is not None and record.fire_at < drop_before:
                    stale.append(event_id)
                    continue
                self._records[event_id] = record

            if stale:
                logger.info(
                    "Dropped %d stale reminder(s) on load: %s", len(stale), ", ".join(stale)
                )
            if stale or expired_markers:
                try:
                    self._persist_locked()
                except ReminderPersistenceError as exc:
                    logger.warning("Could not persist stale-reminder purge: %s", exc)

            logger.debug(
                "Loaded reminder store %s (%d records)", self._path, len(self._records)
            )
            return stale

    def _persist_locked(self) -> None:
        """Write the in-memory records to disk atomically. Called with lock held.

        Writes to a temporary file in the same directory then replaces it into place.

        Raises:
            ReminderPersistenceError: if the directory or file cannot be written
        """
        data = {k: v.model_dump(mode="json") for k, v in self._records.items()}

        tmp_path: Optional[Path] = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", dir=self._path.parent, delete=False, encoding="utf-8", suffix=".tmp"
            ) as tf:
                tmp_path = Path(tf.name)
                json.dump(data, tf, ensure_ascii=False)
                tf.flush()
                with contextlib.suppress(OSError):
                    os.fsync(tf.fileno())
            tmp_path.replace(self._path)
        except OSError as exc:
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    tmp_path.unlink()
            raise ReminderPersistenceError(
                f"Failed to persist reminder store to {self._path}: {exc}"
            ) from exc

    def put(self, reminder: ScheduledReminder) -> None:
        """Insert or replace the record for ``reminder.event_id`` and persist.

        A replaced record moves to the end of the persisted order.

        Raises:
            ReminderPersistenceError: if writing fails; memory is rolled back.
        """
        with self._lock:
            previous = self._records.pop(reminder.event_id, None)
            self._records[reminder.event_id] = reminder
            try:
                self._persist_locked()
            except ReminderPersistenceError:
                del self._records[reminder.event_id]
                if previous is not None:
                    self._records[reminder.event_id] = previous
                raise
        logger.debug("Stored reminder for %s firing at %s", reminder.event_id, reminder.fire_at)

    def remove(self, event_id: str) -> Optional[ScheduledReminder]:
        """Remove the record for ``event_id`` and persist.

        The in-memory removal always takes effect; a failed write is logged
        and retried implicitly by the next successful persist.

        Returns:
            The removed record, or None if there was none.
        """
        with self._lock:
            removed = self._records.pop(event_id, None)
            if removed is None:
                return None
            try:
                self._persist_locked()
            except ReminderPersistenceError as exc:
                logger.warning("Failed to persist removal of reminder %s: %s", event_id, exc)
            return removed

    def mark_fired(self, event_id: str, now: datetime) -> Optional[ScheduledReminder]:
        """Atomically transition an armed, due record to FIRED.

        The FIRED record is kept as a marker for its occurrence until
        :meth:`purge_fired` sees the event start.

        Returns:
            The fired record, or None when the record is missing, not armed,
            or not yet due. Only one caller can ever get the record.
        """
        with self._lock:
            record = self._records.get(event_id)
            if record is None or not record.is_due(now):
                return None
            fired = record.model_copy(update={"state": ReminderState.FIRED})
            self._records[event_id] = fired
            try:
                self._persist_locked()
            except ReminderPersistenceError as exc:
                logger.warning("Failed to persist fired reminder %s: %s", event_id, exc)
            return fired

    def purge_fired(self, now: datetime) -> list[str]:
        """Drop FIRED markers whose event has started.

        Returns:
            Event ids of the removed markers.
        """
        with self._lock:
            expired = [
                event_id
                for event_id, record in self._records.items()
                if record.state == ReminderState.FIRED and _marker_expired(record, now)
            ]
            if not expired:
                return []
            for event_id in expired:
                del self._records[event_id]
            try:
                self._persist_locked()
            except ReminderPersistenceError as exc:
                logger.warning("Failed to persist fired-marker purge: %s", exc)
        logger.debug("Purged %d fired marker(s): %s", len(expired), ", ".join(expired))
        return expired

    def get(self, event_id: str) -> Optional[ScheduledReminder]:
        with self._lock:
            return self._records.get(event_id)

    def records(self) -> list[ScheduledReminder]:
        """Snapshot of all records, armed and fired, in persisted order."""
        with self._lock:
            return list(self._records.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, event_id: object) -> bool:
        with self._lock:
            return event_id in self._records
