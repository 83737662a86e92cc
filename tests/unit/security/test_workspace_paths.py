from __future__ import annotations

from pathlib import Path

import pytest

from codemarks.security import PathBlockedError, resolve_workspace_path


def test_relative_paths_are_normalized(tmp_path: Path) -> None:
    assert resolve_workspace_path(tmp_path, "src/app.py") == "src/app.py"
    assert resolve_workspace_path(tmp_path, "./src//app.py") == "src/app.py"
    assert resolve_workspace_path(tmp_path, "src\\app.py") == "src/app.py"


def test_absolute_path_inside_root_becomes_relative(tmp_path: Path) -> None:
    target = tmp_path / "pkg" / "mod.py"

    assert resolve_workspace_path(tmp_path, str(target)) == "pkg/mod.py"


@pytest.mark.parametrize("candidate", ["../secret.py", "src/../../x.py", "", "."])
def test_traversal_and_empty_paths_are_blocked(tmp_path: Path, candidate: str) -> None:
    with pytest.raises(PathBlockedError):
        resolve_workspace_path(tmp_path, candidate)


def test_absolute_path_outside_root_is_blocked(tmp_path: Path) -> None:
    root = tmp_path / "workspace"
    root.mkdir()

    with pytest.raises(PathBlockedError) as excinfo:
        resolve_workspace_path(root, str(tmp_path / "other.py"))

    assert "outside" in excinfo.value.reason
    assert excinfo.value.hint


def test_symlink_escape_is_blocked(tmp_path: Path) -> None:
    root = tmp_path / "workspace"
    outside = tmp_path / "outside"
    root.mkdir()
    outside.mkdir()
    (root / "link").symlink_to(outside, target_is_directory=True)

    with pytest.raises(PathBlockedError):
        resolve_workspace_path(root, "link/file.py")
