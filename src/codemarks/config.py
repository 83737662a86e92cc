"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

CONFIG_FILE_NAME = "codemarks.toml"
DEFAULT_DATA_DIR_NAME = ".codemarks"
DEFAULT_BASE_GROUP_NAME = "CodeMarks"
DEFAULT_DEBOUNCE_MS = 100
DEBOUNCE_MS_CAP = 60_000

DEFAULT_FILE_TYPE_PATTERNS = (
    "*.{py,pyi}",
    "*.{java,kt,kts,scala,groovy}",
    "*.{js,jsx,mjs,cjs,ts,tsx}",
    "*.{c,h,cc,cpp,cxx,hpp,hh}",
    "*.{cs,go,rs,rb,php,swift}",
    "*.{sh,bash,zsh,ps1}",
    "*.{md,rst,txt}",
    "*.{toml,yaml,yml,json,ini,cfg,xml}",
    "*.{html,css,scss,sql}",
    "*",
)
DEFAULT_EXCLUDE_GLOBS = (
    "**/.git/**",
    "**/__pycache__/**",
    "**/.venv/**",
    "**/node_modules/**",
)
DEFAULT_CONTENT_ROOTS = (".",)


@dataclass(slots=True, frozen=True)
class ScanConfig:
    """Scan eligibility and scheduling settings."""

    file_type_patterns: tuple[str, ...]
    exclude_globs: tuple[str, ...]
    content_roots: tuple[str, ...]
    base_group_name: str
    debounce_ms: int


@dataclass(slots=True, frozen=True)
class WorkspaceConfig:
    """Fully merged workspace configuration."""

    workspace_root: Path
    data_dir: Path
    scan: ScanConfig

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot for tool responses."""
        return {
            "workspace_root": str(self.workspace_root),
            "data_dir": str(self.data_dir),
            "scan": {
                "file_type_patterns": list(self.scan.file_type_patterns),
                "exclude_globs": list(self.scan.exclude_globs),
                "content_roots": list(self.scan.content_roots),
                "base_group_name": self.scan.base_group_name,
                "debounce_ms": self.scan.debounce_ms,
            },
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional startup overrides applied at highest precedence."""

    data_dir: Path | None = None
    base_group_name: str | None = None
    debounce_ms: int | None = None


def default_config(workspace_root: Path) -> WorkspaceConfig:
    """Build default config for a given workspace root."""
    resolved_root = workspace_root.resolve()
    return WorkspaceConfig(
        workspace_root=resolved_root,
        data_dir=resolved_root / DEFAULT_DATA_DIR_NAME,
        scan=ScanConfig(
            file_type_patterns=DEFAULT_FILE_TYPE_PATTERNS,
            exclude_globs=DEFAULT_EXCLUDE_GLOBS,
            content_roots=DEFAULT_CONTENT_ROOTS,
            base_group_name=DEFAULT_BASE_GROUP_NAME,
            debounce_ms=DEFAULT_DEBOUNCE_MS,
        ),
    )


def load_workspace_config_file(workspace_root: Path) -> dict[str, object]:
    """Load optional codemarks.toml from the workspace root."""
    config_path = workspace_root / CONFIG_FILE_NAME
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{CONFIG_FILE_NAME} must contain a top-level table.")
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def _tuple_of_strings(value: object, section: str, field: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ValueError(f"Config field '{section}.{field}' must be a list of strings.")
    output: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError(f"Config field '{section}.{field}' must contain only strings.")
        output.append(item)
    return tuple(output)


def _non_empty_string(value: object, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Config field '{name}' must be a non-empty string.")
    return value.strip()


def merge_config(
    base: WorkspaceConfig, workspace_payload: dict[str, object], overrides: CliOverrides
) -> WorkspaceConfig:
    """Merge defaults, workspace config, then CLI/startup overrides."""
    scan_payload = _get_table(workspace_payload, "scan")
    storage_payload = _get_table(workspace_payload, "storage")

    file_type_patterns = base.scan.file_type_patterns
    if "file_type_patterns" in scan_payload:
        file_type_patterns = _tuple_of_strings(
            scan_payload["file_type_patterns"], "scan", "file_type_patterns"
        )
    exclude_globs = base.scan.exclude_globs
    if "exclude_globs" in scan_payload:
        exclude_globs = _tuple_of_strings(scan_payload["exclude_globs"], "scan", "exclude_globs")
    content_roots = base.scan.content_roots
    if "content_roots" in scan_payload:
        content_roots = _tuple_of_strings(scan_payload["content_roots"], "scan", "content_roots")
        if not content_roots:
            raise ValueError("Config field 'scan.content_roots' must not be empty.")

    base_group_name = base.scan.base_group_name
    if "base_group_name" in scan_payload:
        base_group_name = _non_empty_string(
            scan_payload["base_group_name"], "scan.base_group_name"
        )
    debounce_ms = _optional_positive_int_with_cap(
        scan_payload.get("debounce_ms"),
        "scan.debounce_ms",
        base.scan.debounce_ms,
        DEBOUNCE_MS_CAP,
    )

    data_dir = base.data_dir
    if "data_dir" in storage_payload:
        raw_data_dir = _non_empty_string(storage_payload["data_dir"], "storage.data_dir")
        data_dir = base.workspace_root / raw_data_dir

    merged = WorkspaceConfig(
        workspace_root=base.workspace_root,
        data_dir=data_dir,
        scan=ScanConfig(
            file_type_patterns=file_type_patterns,
            exclude_globs=exclude_globs,
            content_roots=content_roots,
            base_group_name=base_group_name,
            debounce_ms=debounce_ms,
        ),
    )
    return apply_cli_overrides(merged, overrides)


def apply_cli_overrides(config: WorkspaceConfig, overrides: CliOverrides) -> WorkspaceConfig:
    """Apply startup overrides at highest precedence."""
    debounce_ms = _optional_positive_int_with_cap(
        overrides.debounce_ms,
        "overrides.debounce_ms",
        config.scan.debounce_ms,
        DEBOUNCE_MS_CAP,
    )
    base_group_name = config.scan.base_group_name
    if overrides.base_group_name is not None:
        base_group_name = _non_empty_string(
            overrides.base_group_name, "overrides.base_group_name"
        )
    scan = ScanConfig(
        file_type_patterns=config.scan.file_type_patterns,
        exclude_globs=config.scan.exclude_globs,
        content_roots=config.scan.content_roots,
        base_group_name=base_group_name,
        debounce_ms=debounce_ms,
    )
    data_dir = overrides.data_dir or config.data_dir
    return WorkspaceConfig(
        workspace_root=config.workspace_root,
        data_dir=data_dir.resolve(),
        scan=scan,
    )


def load_effective_config(
    workspace_root: Path, overrides: CliOverrides | None = None
) -> WorkspaceConfig:
    """Load effective config using merge order defaults -> workspace config -> overrides."""
    resolved_root = workspace_root.resolve()
    base = default_config(resolved_root)
    payload = load_workspace_config_file(resolved_root)
    return merge_config(base, payload, overrides or CliOverrides())


def _optional_positive_int_with_cap(
    value: object,
    name: str,
    default: int,
    cap: int | None,
) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Config field '{name}' must be a positive integer.")
    if cap is not None and value > cap:
        raise ValueError(f"Config field '{name}' must be <= {cap}.")
    return value
