"""Structured logging utilities."""

from .audit import AuditEvent, JsonlEventLog, ScanEvent, sanitize_arguments, utc_timestamp

__all__ = ["AuditEvent", "JsonlEventLog", "ScanEvent", "sanitize_arguments", "utc_timestamp"]
