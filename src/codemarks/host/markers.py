"""Marker store adapters."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from pathlib import Path

from codemarks.host.base import MarkerStoreError
from codemarks.scan.models import TrackedMarker

logger = logging.getLogger(__name__)

MARKERS_SCHEMA_VERSION = 1


@dataclass(slots=True, frozen=True)
class MarkerBatch:
    """Mutations committed together by one transaction."""

    added: tuple[TrackedMarker, ...]
    removed: tuple[TrackedMarker, ...]


CommitListener = Callable[[MarkerBatch], None]


class InMemoryMarkerStore:
    """Ordered in-memory marker store with staged, all-or-nothing batches.

    Mutations made inside `transaction()` are staged and become visible to
    readers and listeners only when the block exits without an exception.
    """

    def __init__(self, markers: list[TrackedMarker] | None = None) -> None:
        self._lock = threading.RLock()
        self._markers: dict[str, TrackedMarker] = {}
        self._next_id = 0
        self._listeners: list[CommitListener] = []
        self._staged: dict[str, TrackedMarker] | None = None
        self._staged_added: list[TrackedMarker] = []
        self._staged_removed: list[TrackedMarker] = []
        for marker in markers or []:
            self._markers[marker.marker_id] = marker
            self._next_id = max(self._next_id, _id_sequence(marker.marker_id))

    def subscribe(self, listener: CommitListener) -> None:
        """Register a callback invoked once per committed batch."""
        with self._lock:
            self._listeners.append(listener)

    def list_markers(self, group_prefix: str) -> list[TrackedMarker]:
        with self._lock:
            return [
                marker
                for marker in self._markers.values()
                if marker.group_name.startswith(group_prefix)
            ]

    def groups(self, group_prefix: str) -> tuple[str, ...]:
        """Return distinct group names in first-seen order."""
        names: list[str] = []
        for marker in self.list_markers(group_prefix):
            if marker.group_name not in names:
                names.append(marker.group_name)
        return tuple(names)

    def add_marker(self, path: str, line: int, label: str, group_name: str) -> str:
        if not path:
            raise MarkerStoreError("Marker path must be non-empty.")
        if line < 0:
            raise MarkerStoreError(f"Marker line must be >= 0, got {line}.")
        if not group_name:
            raise MarkerStoreError("Marker group name must be non-empty.")
        with self.transaction():
            self._next_id += 1
            marker = TrackedMarker(
                marker_id=f"m-{self._next_id:06d}",
                path=path,
                line=line,
                label=label,
                group_name=group_name,
            )
            self._require_staged()[marker.marker_id] = marker
            self._staged_added.append(marker)
        return marker.marker_id

    def remove_marker(self, marker_id: str) -> None:
        with self.transaction():
            marker = self._require_staged().pop(marker_id, None)
            if marker is None:
                raise MarkerStoreError(f"Unknown marker id: {marker_id}")
            self._staged_removed.append(marker)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Stage mutations and commit them atomically; nested calls join."""
        with self._lock:
            if self._staged is not None:
                yield
                return
            self._staged = dict(self._markers)
            self._staged_added = []
            self._staged_removed = []
            try:
                yield
            except BaseException:
                self._reset_staging()
                raise
            batch = MarkerBatch(
                added=tuple(self._staged_added),
                removed=tuple(self._staged_removed),
            )
            self._markers = self._staged
            self._reset_staging()
            listeners = list(self._listeners)
        if batch.added or batch.removed:
            self._on_commit(batch)
            for listener in listeners:
                listener(batch)

    def _on_commit(self, batch: MarkerBatch) -> None:
        """Hook for persistent subclasses."""

    def _require_staged(self) -> dict[str, TrackedMarker]:
        if self._staged is None:
            raise MarkerStoreError("Marker mutation outside of a transaction.")
        return self._staged

    def _reset_staging(self) -> None:
        self._staged = None
        self._staged_added = []
        self._staged_removed = []


class JsonMarkerStore(InMemoryMarkerStore):
    """Marker store that persists committed markers to a JSON file."""

    def __init__(self, path: Path) -> None:
        self._path = path
        markers = _load_markers(path)
        self._restored = markers is not None
        super().__init__(markers)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def restored(self) -> bool:
        """False when the marker file was missing, unreadable or unsupported."""
        return self._restored

    def _on_commit(self, batch: MarkerBatch) -> None:
        markers = self.list_markers("")
        payload = {
            "schema_version": MARKERS_SCHEMA_VERSION,
            "markers": [asdict(marker) for marker in markers],
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, sort_keys=True)
            handle.write("\n")
        tmp.replace(self._path)


def _load_markers(path: Path) -> list[TrackedMarker] | None:
    if not path.exists():
        return None
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except (OSError, json.JSONDecodeError) as error:
        logger.warning("Ignoring unreadable marker file %s: %s", path, error)
        return None
    if not isinstance(payload, dict) or payload.get("schema_version") != MARKERS_SCHEMA_VERSION:
        logger.warning("Ignoring marker file %s with unsupported schema", path)
        return None
    raw_markers = payload.get("markers")
    if not isinstance(raw_markers, list):
        return None
    output: list[TrackedMarker] = []
    for obj in raw_markers:
        if not isinstance(obj, dict):
            continue
        marker_id = obj.get("marker_id")
        marker_path = obj.get("path")
        line = obj.get("line")
        label = obj.get("label")
        group_name = obj.get("group_name")
        if not isinstance(marker_id, str):
            continue
        if not isinstance(marker_path, str):
            continue
        if not isinstance(line, int):
            continue
        if not isinstance(label, str):
            continue
        if not isinstance(group_name, str):
            continue
        output.append(
            TrackedMarker(
                marker_id=marker_id,
                path=marker_path,
                line=line,
                label=label,
                group_name=group_name,
            )
        )
    return output


def _id_sequence(marker_id: str) -> int:
    _, _, digits = marker_id.rpartition("-")
    if digits.isdigit():
        return int(digits)
    return 0
