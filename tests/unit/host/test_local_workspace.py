from __future__ import annotations

import os
from pathlib import Path

import pytest

from codemarks.host import FileReadError, LocalFileEnumerator, LocalTextAccessor


def _workspace(tmp_path: Path) -> Path:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("# CodeMarks: app\n", encoding="utf-8")
    (tmp_path / "README.md").write_text("readme\n", encoding="utf-8")
    (tmp_path / "node_modules" / "pkg").mkdir(parents=True)
    (tmp_path / "node_modules" / "pkg" / "index.js").write_text("x\n", encoding="utf-8")
    return tmp_path


def test_children_are_sorted_and_excluded_dirs_pruned(tmp_path: Path) -> None:
    root = _workspace(tmp_path)
    enumerator = LocalFileEnumerator(root, exclude_globs=("**/node_modules/**",))

    assert enumerator.list_content_roots() == ["."]
    assert enumerator.list_children(".") == [("README.md", False), ("src", True)]
    assert enumerator.list_children("src") == [("src/app.py", False)]
    assert enumerator.is_tracked("src/app.py") is True
    assert enumerator.is_tracked("node_modules/pkg/index.js") is False


def test_content_roots_limit_tracking(tmp_path: Path) -> None:
    root = _workspace(tmp_path)
    enumerator = LocalFileEnumerator(root, content_roots=("src", "missing", "../outside"))

    assert enumerator.list_content_roots() == ["src"]
    assert enumerator.is_tracked("src/app.py") is True
    assert enumerator.is_tracked("README.md") is False


def test_text_accessor_reads_lines_and_tracks_mtime(tmp_path: Path) -> None:
    root = _workspace(tmp_path)
    accessor = LocalTextAccessor(root)
    target = root / "src" / "app.py"

    assert accessor.exists("src/app.py")
    assert accessor.line_count("src/app.py") == 2
    assert accessor.line_text("src/app.py", 0) == "# CodeMarks: app"
    with pytest.raises(IndexError):
        accessor.line_text("src/app.py", 5)

    target.write_text("changed\n# CodeMarks: moved\n", encoding="utf-8")
    stat = target.stat()
    os.utime(target, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))

    assert accessor.line_text("src/app.py", 1) == "# CodeMarks: moved"
    assert accessor.last_modified("src/app.py") == stat.st_mtime_ns + 5_000_000_000


def test_binary_files_read_as_empty_and_missing_files_raise(tmp_path: Path) -> None:
    (tmp_path / "blob.bin").write_bytes(b"\x00\x01CodeMarks: hidden\n")
    accessor = LocalTextAccessor(tmp_path)

    assert accessor.read_text("blob.bin") == ""
    with pytest.raises(FileReadError):
        accessor.read_text("absent.py")
    with pytest.raises(FileReadError):
        accessor.last_modified("absent.py")


def test_text_cache_drops_deleted_and_pruned_files(tmp_path: Path) -> None:
    root = _workspace(tmp_path)
    accessor = LocalTextAccessor(root)
    accessor.read_text("src/app.py")
    accessor.read_text("README.md")
    assert accessor.cached_paths == ("README.md", "src/app.py")

    (root / "README.md").unlink()
    with pytest.raises(FileReadError):
        accessor.read_text("README.md")
    assert accessor.cached_paths == ("src/app.py",)

    (root / "other.py").write_text("x\n", encoding="utf-8")
    accessor.read_text("other.py")
    assert accessor.prune(["src/app.py"]) == 1
    assert accessor.cached_paths == ("src/app.py",)

    accessor.evict("src/app.py")
    assert accessor.cached_paths == ()
