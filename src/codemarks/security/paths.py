"""Resolve request paths into workspace-relative POSIX paths."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Final

WINDOWS_DRIVE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z]:[\\/]")


class PathBlockedError(Exception):
    """Raised when a request path points outside the workspace."""

    def __init__(self, reason: str, hint: str) -> None:
        super().__init__(reason)
        self.reason = reason
        self.hint = hint


def resolve_workspace_path(workspace_root: Path, candidate: str) -> str:
    """Return `candidate` as a workspace-relative POSIX path.

    Absolute paths are accepted only when they resolve under the workspace
    root. Relative paths may not contain `..` segments. Symlinks that escape
    the root are blocked as well.
    """
    root = workspace_root.resolve()
    normalized = candidate.strip().replace("\\", "/")
    if not normalized:
        raise PathBlockedError(
            reason="Path is empty.",
            hint="Provide a workspace-relative path such as 'src/app.py'.",
        )

    if normalized.startswith("/") or WINDOWS_DRIVE_PATTERN.match(normalized):
        resolved = Path(normalized).resolve(strict=False)
        if not resolved.is_relative_to(root):
            raise PathBlockedError(
                reason="Absolute path is outside workspace_root.",
                hint="Use a path located under the configured workspace root.",
            )
        return _relative(root, resolved)

    parts = [part for part in normalized.split("/") if part not in ("", ".")]
    if ".." in parts:
        raise PathBlockedError(
            reason="Path traversal is blocked.",
            hint="Remove '..' segments and use a workspace-relative path.",
        )
    if not parts:
        raise PathBlockedError(
            reason="Path names the workspace root, not a file.",
            hint="Provide a file path under the workspace root.",
        )
    resolved = (root / Path(*parts)).resolve(strict=False)
    if not resolved.is_relative_to(root):
        raise PathBlockedError(
            reason="Resolved path escapes workspace_root.",
            hint="Use a path located under the configured workspace root.",
        )
    return "/".join(parts)


def _relative(root: Path, resolved: Path) -> str:
    relative = resolved.relative_to(root).as_posix()
    if relative in ("", "."):
        raise PathBlockedError(
            reason="Path names the workspace root, not a file.",
            hint="Provide a file path under the workspace root.",
        )
    return relative
