"""Per-file last-scanned timestamp cache."""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping


class ScanState:
    """Thread-safe `path -> mtime_ns` cache used to skip unchanged files.

    Entries only ever save work: a missing or stale entry makes the next pass
    rescan the file.
    """

    def __init__(self, initial: Mapping[str, int] | None = None) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, int] = dict(initial or {})

    def get(self, path: str) -> int | None:
        with self._lock:
            return self._entries.get(path)

    def set(self, path: str, timestamp: int) -> None:
        with self._lock:
            self._entries[path] = timestamp

    def remove(self, path: str) -> None:
        with self._lock:
            self._entries.pop(path, None)

    def clear(self) -> None:
        """Drop every entry so the next pass treats all files as dirty."""
        with self._lock:
            self._entries.clear()

    def prune(self, keep_paths: Iterable[str]) -> int:
        """Drop entries for paths outside keep_paths; return the count dropped."""
        keep = set(keep_paths)
        with self._lock:
            stale = [path for path in self._entries if path not in keep]
            for path in stale:
                del self._entries[path]
        return len(stale)

    def snapshot(self) -> dict[str, int]:
        """Return a sorted copy suitable for persistence."""
        with self._lock:
            return {path: self._entries[path] for path in sorted(self._entries)}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
