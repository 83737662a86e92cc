"""Host collaborator interfaces and local reference implementations."""

from .base import (
    CollaboratorUnavailableError,
    FileEnumerator,
    FileReadError,
    MarkerStore,
    MarkerStoreError,
    SettingsStore,
    TextAccessor,
)
from .local import LocalFileEnumerator, LocalTextAccessor, is_binary_file, should_exclude
from .markers import InMemoryMarkerStore, JsonMarkerStore, MarkerBatch
from .settings import JsonSettingsStore

__all__ = [
    "CollaboratorUnavailableError",
    "FileEnumerator",
    "FileReadError",
    "InMemoryMarkerStore",
    "JsonMarkerStore",
    "JsonSettingsStore",
    "LocalFileEnumerator",
    "LocalTextAccessor",
    "MarkerBatch",
    "MarkerStore",
    "MarkerStoreError",
    "SettingsStore",
    "TextAccessor",
    "is_binary_file",
    "should_exclude",
]
