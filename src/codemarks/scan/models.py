"""Typed models for scan and reconcile state."""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(slots=True, frozen=True)
class MarkMatch:
    """One grammar match inside a text blob."""

    line: int
    tag: str | None
    label: str


@dataclass(slots=True, frozen=True)
class MarkCandidate:
    """Mark comment freshly extracted from a file."""

    path: str
    line: int
    label: str
    tag: str | None = None


@dataclass(slots=True, frozen=True)
class TrackedMarker:
    """Marker currently held by the marker store."""

    marker_id: str
    path: str
    line: int
    label: str
    group_name: str


@dataclass(slots=True, frozen=True)
class ReconcilePlan:
    """Deterministic add/remove/keep decisions for one scope."""

    to_add: tuple[MarkCandidate, ...]
    to_remove: tuple[TrackedMarker, ...]
    kept: tuple[TrackedMarker, ...]

    @property
    def is_empty(self) -> bool:
        """Return True when applying the plan would not mutate the store."""
        return not self.to_add and not self.to_remove


@dataclass(slots=True, frozen=True)
class ScanReport:
    """Outcome and counters for one scan-and-apply pass."""

    scan_id: str
    scope: str
    path: str | None
    status: str
    files_considered: int
    files_scanned: int
    files_skipped: int
    files_failed: int
    added: int
    removed: int
    kept: int
    mutation_failures: int
    duration_ms: int
    timestamp: str

    def to_dict(self) -> dict[str, object]:
        """Return serializable report payload."""
        return asdict(self)


def group_name_for(base_group_name: str, tag: str | None) -> str:
    """Return the group a mark with the given tag is routed into."""
    if tag is None:
        return base_group_name
    return f"{base_group_name} {tag}"


def marker_sort_key(marker: TrackedMarker) -> tuple[str, int, str, str]:
    """Return deterministic sort key for tracked markers."""
    return (marker.path, marker.line, marker.group_name, marker.label)
