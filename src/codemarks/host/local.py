"""Local file-system implementations of the enumerator and text accessor."""

from __future__ import annotations

import fnmatch
import os
import threading
from collections.abc import Iterable
from pathlib import Path

from codemarks.host.base import FileReadError

_BINARY_SNIFF_BYTES = 4096


def should_exclude(relative_path: str, exclude_globs: tuple[str, ...]) -> bool:
    """Return True when a path matches configured ignore globs."""
    anchored = f"/{relative_path}"
    return any(
        fnmatch.fnmatch(relative_path, pattern)
        or fnmatch.fnmatch(anchored, pattern)
        or fnmatch.fnmatch(f"{anchored}/", pattern)
        for pattern in exclude_globs
    )


def is_binary_file(path: Path) -> bool:
    """Use content sniffing to detect binary files."""
    with path.open("rb") as handle:
        sample = handle.read(_BINARY_SNIFF_BYTES)
    if b"\x00" in sample:
        return True
    try:
        sample.decode("utf-8")
    except UnicodeDecodeError:
        # A multi-byte sequence cut at the sniff boundary is still text.
        try:
            sample[:-4].decode("utf-8")
        except UnicodeDecodeError:
            return True
    return False


def to_relative(workspace_root: Path, full_path: Path) -> str:
    """Return workspace-relative POSIX path, `.` for the root itself."""
    relative = full_path.relative_to(workspace_root).as_posix()
    return relative or "."


class LocalFileEnumerator:
    """Walk content roots under a workspace, pruning excluded directories."""

    def __init__(
        self,
        workspace_root: Path,
        content_roots: tuple[str, ...] = (".",),
        exclude_globs: tuple[str, ...] = (),
    ) -> None:
        self._root = workspace_root.resolve()
        self._content_roots = content_roots
        self._exclude_globs = exclude_globs

    @property
    def workspace_root(self) -> Path:
        return self._root

    def list_content_roots(self) -> list[str]:
        roots: list[str] = []
        for raw in self._content_roots:
            candidate = (self._root / raw).resolve()
            if not candidate.is_relative_to(self._root) or not candidate.is_dir():
                continue
            relative = to_relative(self._root, candidate)
            if relative not in roots:
                roots.append(relative)
        return sorted(roots)

    def list_children(self, directory: str) -> list[tuple[str, bool]]:
        full_dir = self._root / directory
        with os.scandir(full_dir) as entries:
            ordered = sorted(entries, key=lambda item: item.name)
        children: list[tuple[str, bool]] = []
        for entry in ordered:
            relative = _join(directory, entry.name)
            if entry.is_dir(follow_symlinks=False):
                if should_exclude(relative, self._exclude_globs):
                    continue
                children.append((relative, True))
                continue
            if not entry.is_file(follow_symlinks=False):
                continue
            if should_exclude(relative, self._exclude_globs):
                continue
            children.append((relative, False))
        return children

    def is_tracked(self, path: str) -> bool:
        if should_exclude(path, self._exclude_globs):
            return False
        full_path = (self._root / path).resolve()
        for root in self.list_content_roots():
            root_path = (self._root / root).resolve()
            if full_path.is_relative_to(root_path):
                return True
        return False


class LocalTextAccessor:
    """Read workspace files as text with a per-file line cache.

    Binary files read as empty text. Cached lines are reused while the file's
    mtime and size are unchanged. Entries go away when a read fails or when
    the owner prunes paths that left the workspace.
    """

    def __init__(self, workspace_root: Path) -> None:
        self._root = workspace_root.resolve()
        self._lock = threading.Lock()
        self._cache: dict[str, tuple[int, int, str, list[str]]] = {}

    @property
    def cached_paths(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(sorted(self._cache))

    def exists(self, path: str) -> bool:
        return (self._root / path).is_file()

    def read_text(self, path: str) -> str:
        return self._load(path)[0]

    def line_count(self, path: str) -> int:
        return len(self._load(path)[1])

    def line_text(self, path: str, line: int) -> str:
        lines = self._load(path)[1]
        if line < 0 or line >= len(lines):
            raise IndexError(f"Line {line} is out of range for {path}")
        return lines[line]

    def last_modified(self, path: str) -> int:
        try:
            return (self._root / path).stat().st_mtime_ns
        except OSError as error:
            raise FileReadError(path, error.strerror or type(error).__name__) from error

    def evict(self, path: str) -> None:
        with self._lock:
            self._cache.pop(path, None)

    def prune(self, keep: Iterable[str]) -> int:
        keep_set = set(keep)
        with self._lock:
            stale = [path for path in self._cache if path not in keep_set]
            for path in stale:
                del self._cache[path]
        return len(stale)

    def _load(self, path: str) -> tuple[str, list[str]]:
        full_path = self._root / path
        try:
            stat = full_path.stat()
            with self._lock:
                cached = self._cache.get(path)
            if cached is not None and cached[0] == stat.st_mtime_ns and cached[1] == stat.st_size:
                return cached[2], cached[3]
            if is_binary_file(full_path):
                text = ""
            else:
                text = full_path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError as error:
            self.evict(path)
            raise FileReadError(path, "file not found") from error
        except OSError as error:
            self.evict(path)
            raise FileReadError(path, error.strerror or type(error).__name__) from error
        lines = text.split("\n")
        with self._lock:
            self._cache[path] = (stat.st_mtime_ns, stat.st_size, text, lines)
        return text, lines


def _join(directory: str, name: str) -> str:
    if directory in ("", "."):
        return name
    return f"{directory}/{name}"
