"""Built-in codemarks.* tool handlers."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict
from pathlib import Path

from codemarks.config import WorkspaceConfig
from codemarks.host.base import SettingsStore
from codemarks.scan import GlobPatternError, ScanOrchestrator, ScanReport, Scheduler, compile_glob
from codemarks.security import resolve_workspace_path
from codemarks.tools.registry import ToolDispatchError, ToolHandler, ToolRegistry

DEFAULT_LOG_LIMIT = 50
MAX_LOG_LIMIT = 500

EntryReader = Callable[[str | None, int], list[dict[str, object]]]


def register_builtin_tools(
    registry: ToolRegistry,
    *,
    config: WorkspaceConfig,
    orchestrator: ScanOrchestrator,
    scheduler: Scheduler,
    settings: SettingsStore,
    read_scan_entries: EntryReader,
    read_audit_entries: EntryReader,
) -> None:
    """Register the codemarks tool set in listing order."""
    root = config.workspace_root
    registry.register(
        "codemarks.status",
        _status_handler(config, orchestrator, scheduler, settings),
        "Workspace, marker and scheduler summary.",
    )
    registry.register(
        "codemarks.scan_all",
        _scan_all_handler(orchestrator),
        "Scan the whole workspace now; force=true ignores cached timestamps.",
    )
    registry.register(
        "codemarks.scan_file",
        _scan_file_handler(root, orchestrator),
        "Scan one file now.",
    )
    registry.register(
        "codemarks.force_rescan",
        _force_rescan_handler(orchestrator),
        "Clear cached timestamps and scan the whole workspace.",
    )
    registry.register(
        "codemarks.notify",
        _notify_handler(root, scheduler),
        "Report changed paths; scans run after the debounce delay.",
    )
    registry.register(
        "codemarks.notify_all",
        _notify_all_handler(scheduler),
        "Schedule a debounced whole-workspace scan.",
    )
    registry.register(
        "codemarks.flush",
        _flush_handler(scheduler),
        "Run a pending debounced scan immediately.",
    )
    registry.register(
        "codemarks.list_markers",
        _list_markers_handler(root, orchestrator),
        "List tracked markers, optionally filtered by group or path.",
    )
    registry.register(
        "codemarks.organize_groups",
        _organize_groups_handler(orchestrator),
        "Sort markers by label within each group.",
    )
    registry.register(
        "codemarks.set_file_patterns",
        _set_file_patterns_handler(settings),
        "Replace the file-name glob patterns eligible for scanning.",
    )
    registry.register(
        "codemarks.scan_log",
        _log_handler("codemarks.scan_log", read_scan_entries),
        "Read recent scan pass events.",
    )
    registry.register(
        "codemarks.audit_log",
        _log_handler("codemarks.audit_log", read_audit_entries),
        "Read recent request audit events.",
    )


def _status_handler(
    config: WorkspaceConfig,
    orchestrator: ScanOrchestrator,
    scheduler: Scheduler,
    settings: SettingsStore,
) -> ToolHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        markers = orchestrator.list_markers()
        group_names = sorted({marker.group_name for marker in markers})
        last_report = orchestrator.last_report
        return {
            "workspace_root": str(config.workspace_root),
            "base_group_name": orchestrator.base_group_name,
            "marker_count": len(markers),
            "groups": group_names,
            "scan_state_entries": len(orchestrator.scan_state),
            "scan_pending": scheduler.pending,
            "file_type_patterns": list(settings.file_type_patterns()),
            "last_scan": last_report.to_dict() if last_report is not None else None,
            "effective_config": config.to_public_dict(),
        }

    return handler


def _scan_all_handler(orchestrator: ScanOrchestrator) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        force = _optional_bool(arguments, "force", "codemarks.scan_all")
        report = orchestrator.force_rescan() if force else orchestrator.scan_all()
        return _report_payload(report)

    return handler


def _scan_file_handler(workspace_root: Path, orchestrator: ScanOrchestrator) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        path = _required_path(workspace_root, arguments, "codemarks.scan_file")
        return _report_payload(orchestrator.scan_file(path))

    return handler


def _force_rescan_handler(orchestrator: ScanOrchestrator) -> ToolHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        return _report_payload(orchestrator.force_rescan())

    return handler


def _notify_handler(workspace_root: Path, scheduler: Scheduler) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        raw_paths: list[object] = []
        if "path" in arguments:
            raw_paths.append(arguments["path"])
        if "paths" in arguments:
            paths_value = arguments["paths"]
            if not isinstance(paths_value, list):
                raise ToolDispatchError(
                    code="INVALID_PARAMS",
                    message="codemarks.notify paths must be a list of strings.",
                )
            raw_paths.extend(paths_value)
        if not raw_paths:
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message="codemarks.notify requires path or paths.",
            )
        resolved: list[str] = []
        for raw in raw_paths:
            if not isinstance(raw, str) or not raw:
                raise ToolDispatchError(
                    code="INVALID_PARAMS",
                    message="codemarks.notify paths must be non-empty strings.",
                )
            resolved.append(resolve_workspace_path(workspace_root, raw))
        scheduled = scheduler.notify(resolved)
        return {"scheduled": scheduled, "scan_pending": scheduler.pending}

    return handler


def _notify_all_handler(scheduler: Scheduler) -> ToolHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        scheduled = scheduler.notify_all()
        return {"scheduled": scheduled, "scan_pending": scheduler.pending}

    return handler


def _flush_handler(scheduler: Scheduler) -> ToolHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        report = scheduler.flush()
        return {"report": report.to_dict() if report is not None else None}

    return handler


def _list_markers_handler(workspace_root: Path, orchestrator: ScanOrchestrator) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        group_value = arguments.get("group")
        if group_value is not None and not isinstance(group_value, str):
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message="codemarks.list_markers group must be a string.",
            )
        path: str | None = None
        if arguments.get("path") is not None:
            path = _required_path(workspace_root, arguments, "codemarks.list_markers")
        markers = orchestrator.list_markers(group=group_value, path=path)
        return {"markers": [asdict(marker) for marker in markers], "count": len(markers)}

    return handler


def _organize_groups_handler(orchestrator: ScanOrchestrator) -> ToolHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        return orchestrator.organize_groups()

    return handler


def _set_file_patterns_handler(settings: SettingsStore) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        patterns_value = arguments.get("patterns")
        if not isinstance(patterns_value, list) or not all(
            isinstance(item, str) for item in patterns_value
        ):
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message="codemarks.set_file_patterns patterns must be a list of strings.",
            )
        settings.set_file_type_patterns(tuple(patterns_value))
        stored = settings.file_type_patterns()
        warnings: list[str] = []
        for pattern in stored:
            try:
                compile_glob(pattern)
            except GlobPatternError as error:
                warnings.append(f"Pattern never matches: {error}")
        return {"file_type_patterns": list(stored), "__warnings__": warnings}

    return handler


def _log_handler(tool_name: str, read_entries: EntryReader) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        since_value = arguments.get("since")
        limit_value = arguments.get("limit", DEFAULT_LOG_LIMIT)
        if since_value is not None and not isinstance(since_value, str):
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message=f"{tool_name} since must be an ISO-8601 string.",
            )
        if isinstance(limit_value, bool) or not isinstance(limit_value, int):
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message=f"{tool_name} limit must be an integer.",
            )
        limit = min(max(limit_value, 1), MAX_LOG_LIMIT)
        return {"entries": read_entries(since_value, limit)}

    return handler


def _required_path(workspace_root: Path, arguments: dict[str, object], tool_name: str) -> str:
    path_value = arguments.get("path")
    if not isinstance(path_value, str) or not path_value:
        raise ToolDispatchError(
            code="INVALID_PARAMS",
            message=f"{tool_name} path must be a non-empty string.",
        )
    return resolve_workspace_path(workspace_root, path_value)


def _optional_bool(arguments: dict[str, object], key: str, tool_name: str) -> bool:
    value = arguments.get(key, False)
    if not isinstance(value, bool):
        raise ToolDispatchError(
            code="INVALID_PARAMS",
            message=f"{tool_name} {key} must be a boolean.",
        )
    return value


def _report_payload(report: object) -> dict[str, object]:
    if not isinstance(report, ScanReport):
        raise ToolDispatchError(code="INTERNAL_ERROR", message="Scan did not produce a report.")
    return report.to_dict()
