"""Core utilities for calendar_lite: clock, timezones, config and async helpers."""
