"""Path safety for request arguments."""

from .paths import PathBlockedError, resolve_workspace_path

__all__ = ["PathBlockedError", "resolve_workspace_path"]
