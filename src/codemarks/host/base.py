"""Collaborator protocols the scan engine consumes from its host."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from codemarks.scan.models import TrackedMarker


class CollaboratorUnavailableError(RuntimeError):
    """Raised when the host is torn down while the engine is using it."""


class FileReadError(OSError):
    """Raised when one file cannot be read or has vanished."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class MarkerStoreError(RuntimeError):
    """Raised when the marker store rejects an add or remove."""


class FileEnumerator(Protocol):
    """Workspace file tree traversal and membership."""

    def list_content_roots(self) -> list[str]:
        """Return workspace-relative content root directories."""

    def list_children(self, directory: str) -> list[tuple[str, bool]]:
        """Return `(path, is_directory)` pairs for one directory."""

    def is_tracked(self, path: str) -> bool:
        """Return True when a path belongs to the workspace's tracked content."""


class TextAccessor(Protocol):
    """Document and file content access."""

    def exists(self, path: str) -> bool:
        """Return True when a regular file exists at path."""

    def read_text(self, path: str) -> str:
        """Return full text content."""

    def line_count(self, path: str) -> int:
        """Return number of lines, counting the text after the last newline."""

    def line_text(self, path: str, line: int) -> str:
        """Return text of a zero-based line."""

    def last_modified(self, path: str) -> int:
        """Return modification timestamp in nanoseconds."""

    def evict(self, path: str) -> None:
        """Drop any cached content for path."""

    def prune(self, keep: Iterable[str]) -> int:
        """Drop cached content for paths not in keep; return the count dropped."""


class MarkerStore(Protocol):
    """Host bookmark storage."""

    def list_markers(self, group_prefix: str) -> list[TrackedMarker]:
        """Return markers in groups whose name starts with group_prefix."""

    def add_marker(self, path: str, line: int, label: str, group_name: str) -> str:
        """Create a marker and return its id."""

    def remove_marker(self, marker_id: str) -> None:
        """Delete a marker by id."""

    def transaction(self) -> AbstractContextManager[None]:
        """Group mutations so observers see them as one batch."""


class SettingsStore(Protocol):
    """Persisted per-workspace settings."""

    def file_type_patterns(self) -> tuple[str, ...]:
        """Return configured file-name glob patterns."""

    def set_file_type_patterns(self, patterns: tuple[str, ...]) -> None:
        """Replace configured file-name glob patterns."""

    def load_scan_state(self) -> dict[str, int]:
        """Return persisted `path -> timestamp` pairs."""

    def save_scan_state(self, entries: Mapping[str, int]) -> None:
        """Persist `path -> timestamp` pairs."""
