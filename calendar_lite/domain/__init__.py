"""Domain logic for calendar_lite.

- interval_classifier: how an event intersects one calendar day
- overlap_layout: column layout and render geometry for a day timeline
- reminder_store / reminder_scheduler: persisted, timer-backed reminders
- notification_dispatcher: exactly-once alert delivery
"""
