"""Persisted per-workspace settings: file patterns and scan state."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Mapping
from pathlib import Path

logger = logging.getLogger(__name__)

SETTINGS_SCHEMA_VERSION = 1


class JsonSettingsStore:
    """Settings backed by `settings.json` in the workspace data directory.

    Patterns persisted by `set_file_type_patterns` take precedence over the
    defaults passed in from configuration.
    """

    def __init__(self, path: Path, default_patterns: tuple[str, ...]) -> None:
        self._path = path
        self._lock = threading.Lock()
        payload = self._read()
        patterns = _patterns_from_payload(payload)
        self._patterns = patterns if patterns is not None else default_patterns
        self._scan_state = _scan_state_from_payload(payload)

    @property
    def path(self) -> Path:
        return self._path

    def file_type_patterns(self) -> tuple[str, ...]:
        with self._lock:
            return self._patterns

    def set_file_type_patterns(self, patterns: tuple[str, ...]) -> None:
        cleaned = tuple(pattern.strip() for pattern in patterns if pattern.strip())
        with self._lock:
            self._patterns = cleaned
            self._write_locked()

    def load_scan_state(self) -> dict[str, int]:
        with self._lock:
            return dict(self._scan_state)

    def save_scan_state(self, entries: Mapping[str, int]) -> None:
        with self._lock:
            self._scan_state = {path: entries[path] for path in sorted(entries)}
            self._write_locked()

    def _read(self) -> dict[str, object]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, json.JSONDecodeError) as error:
            logger.warning("Ignoring unreadable settings file %s: %s", self._path, error)
            return {}
        if not isinstance(payload, dict):
            return {}
        if payload.get("schema_version") != SETTINGS_SCHEMA_VERSION:
            logger.warning("Ignoring settings file %s with unsupported schema", self._path)
            return {}
        return payload

    def _write_locked(self) -> None:
        payload = {
            "schema_version": SETTINGS_SCHEMA_VERSION,
            "file_type_patterns": list(self._patterns),
            "last_scan_state": self._scan_state,
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, sort_keys=True)
            handle.write("\n")
        tmp.replace(self._path)


def _patterns_from_payload(payload: dict[str, object]) -> tuple[str, ...] | None:
    raw = payload.get("file_type_patterns")
    if not isinstance(raw, list):
        return None
    return tuple(item for item in raw if isinstance(item, str) and item)


def _scan_state_from_payload(payload: dict[str, object]) -> dict[str, int]:
    raw = payload.get("last_scan_state")
    if not isinstance(raw, dict):
        return {}
    output: dict[str, int] = {}
    for path, timestamp in raw.items():
        if not isinstance(path, str):
            continue
        if isinstance(timestamp, bool) or not isinstance(timestamp, int):
            continue
        output[path] = timestamp
    return output
