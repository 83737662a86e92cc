"""JSON-lines STDIO host driving the scan engine over a local workspace."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from codemarks.config import CliOverrides, WorkspaceConfig, load_effective_config
from codemarks.host import (
    JsonMarkerStore,
    JsonSettingsStore,
    LocalFileEnumerator,
    LocalTextAccessor,
)
from codemarks.logging import AuditEvent, JsonlEventLog, sanitize_arguments, utc_timestamp
from codemarks.scan import FileFilter, ScanOrchestrator, ScanState, Scheduler
from codemarks.security import PathBlockedError
from codemarks.tools.builtin import register_builtin_tools
from codemarks.tools.registry import ToolDispatchError, ToolRegistry

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass(slots=True, frozen=True)
class Request:
    """Normalized incoming request."""

    request_id: str
    method: str
    params: dict[str, object]


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for server startup configuration."""
    parser = argparse.ArgumentParser(prog="codemarks-server")
    parser.add_argument("--workspace-root", required=False, default=".")
    parser.add_argument("--data-dir", required=False, default=None)
    parser.add_argument("--debounce-ms", type=int, required=False, default=None)
    parser.add_argument("--base-group-name", required=False, default=None)
    parser.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        type=str.upper,
        default="WARNING",
    )
    parser.add_argument("--no-initial-scan", action="store_true")
    return parser


class StdioServer:
    """Route JSON-line requests to registered codemarks tools."""

    def __init__(self, config: WorkspaceConfig) -> None:
        self._config = config
        data_dir = config.data_dir
        self._settings = JsonSettingsStore(
            path=data_dir / "settings.json",
            default_patterns=config.scan.file_type_patterns,
        )
        self._store = JsonMarkerStore(path=data_dir / "markers.json")
        scan_state = ScanState(self._settings.load_scan_state())
        if not self._store.restored and len(scan_state):
            # Cached timestamps describe markers that are gone; rescan everything.
            logger.warning(
                "Marker file not restored; discarding %d scan timestamps", len(scan_state)
            )
            scan_state.clear()
        self._audit_log = JsonlEventLog(path=data_dir / "audit.jsonl")
        self._scan_log = JsonlEventLog(path=data_dir / "scans.jsonl")
        self._enumerator = LocalFileEnumerator(
            workspace_root=config.workspace_root,
            content_roots=config.scan.content_roots,
            exclude_globs=_exclude_globs_with_data_dir(config),
        )
        self._orchestrator = ScanOrchestrator(
            enumerator=self._enumerator,
            text=LocalTextAccessor(config.workspace_root),
            store=self._store,
            file_filter=FileFilter(self._settings.file_type_patterns),
            scan_state=scan_state,
            base_group_name=config.scan.base_group_name,
            settings=self._settings,
            scan_log=self._scan_log,
        )
        self._scheduler = Scheduler(
            self._orchestrator,
            is_eligible=self._orchestrator.is_eligible,
            delay_seconds=config.scan.debounce_ms / 1000,
        )
        self._registry = ToolRegistry()
        register_builtin_tools(
            self._registry,
            config=config,
            orchestrator=self._orchestrator,
            scheduler=self._scheduler,
            settings=self._settings,
            read_scan_entries=self._scan_log.read,
            read_audit_entries=self._audit_log.read,
        )
        self._fallback_request_counter = 0

    @property
    def orchestrator(self) -> ScanOrchestrator:
        return self._orchestrator

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    def serve(self, in_stream: TextIO, out_stream: TextIO) -> None:
        """Process JSON-line requests until EOF, then shut down scanning."""
        try:
            for raw_line in in_stream:
                line = raw_line.strip()
                if not line:
                    continue
                response = self.handle_json_line(line)
                out_stream.write(f"{json.dumps(response, sort_keys=True)}\n")
                out_stream.flush()
        finally:
            self.close()

    def close(self) -> None:
        """Cancel pending scans and stop the background worker."""
        self._scheduler.close()
        self._orchestrator.close()

    def handle_json_line(self, raw_line: str) -> dict[str, object]:
        """Handle a single JSON-line request."""
        try:
            payload = json.loads(raw_line)
        except json.JSONDecodeError:
            request_id = self.next_request_id()
            response = self.error_response(
                request_id=request_id,
                code="INVALID_JSON",
                message="Request must be valid JSON.",
            )
            self.log_request(
                request_id=request_id,
                tool_name="invalid_json",
                arguments={"raw_line_length": len(raw_line)},
                response=response,
            )
            return response
        return self.handle_payload(payload)

    def handle_payload(self, payload: object) -> dict[str, object]:
        """Validate and dispatch a parsed payload."""
        parsed = self.parse_request(payload)
        if isinstance(parsed, dict):
            request_id_value = parsed.get("request_id")
            request_id = (
                request_id_value if isinstance(request_id_value, str) else self.next_request_id()
            )
            self.log_request(
                request_id=request_id,
                tool_name="invalid_request",
                arguments={},
                response=parsed,
            )
            return parsed

        request = parsed
        if request.method == "tools/list":
            return self.success_response(
                request_id=request.request_id,
                result={"tools": self._registry.describe()},
            )

        tool_name: str
        arguments: dict[str, object]
        if request.method == "tools/call":
            tool_name_value = request.params.get("name")
            arguments_value = request.params.get("arguments", {})
            if not isinstance(tool_name_value, str) or not tool_name_value:
                return self.error_response(
                    request_id=request.request_id,
                    code="INVALID_PARAMS",
                    message="tools/call params.name must be a non-empty string.",
                )
            if not isinstance(arguments_value, dict):
                return self.error_response(
                    request_id=request.request_id,
                    code="INVALID_PARAMS",
                    message="tools/call params.arguments must be an object.",
                )
            tool_name = tool_name_value
            arguments = arguments_value
        else:
            tool_name = request.method
            arguments = request.params

        try:
            result = self._registry.dispatch(name=tool_name, arguments=arguments)
        except PathBlockedError as error:
            response = self.blocked_response(
                request_id=request.request_id,
                reason=error.reason,
                hint=error.hint,
            )
        except ToolDispatchError as error:
            response = self.error_response(
                request_id=request.request_id,
                code=error.code,
                message=error.message,
            )
        except Exception:
            logger.exception("Tool %s failed", tool_name)
            response = self.error_response(
                request_id=request.request_id,
                code="INTERNAL_ERROR",
                message="Unhandled server error while executing tool.",
            )
        else:
            response = self.success_response(
                request_id=request.request_id,
                result=result,
                warnings=_extract_result_warnings(result),
            )
        self.log_request(
            request_id=request.request_id,
            tool_name=tool_name,
            arguments=arguments,
            response=response,
        )
        return response

    def parse_request(self, payload: object) -> Request | dict[str, object]:
        """Validate request payload and return normalized Request."""
        if not isinstance(payload, dict):
            return self.error_response(
                request_id=self.next_request_id(),
                code="INVALID_REQUEST",
                message="Request must be an object.",
            )

        request_id = self.extract_request_id(payload.get("id"))
        method = payload.get("method")
        params = payload.get("params", {})

        if not isinstance(method, str) or not method:
            return self.error_response(
                request_id=request_id,
                code="INVALID_REQUEST",
                message="Request method must be a non-empty string.",
            )
        if not isinstance(params, dict):
            return self.error_response(
                request_id=request_id,
                code="INVALID_PARAMS",
                message="Request params must be an object.",
            )

        return Request(request_id=request_id, method=method, params=params)

    def extract_request_id(self, request_id: object) -> str:
        """Use the caller's id, or synthesize a sequential fallback."""
        if isinstance(request_id, str) and request_id:
            return request_id
        if isinstance(request_id, int) and not isinstance(request_id, bool):
            return str(request_id)
        return self.next_request_id()

    def next_request_id(self) -> str:
        self._fallback_request_counter += 1
        return f"req-{self._fallback_request_counter:06d}"

    @staticmethod
    def success_response(
        request_id: str,
        result: dict[str, object],
        warnings: list[str] | None = None,
    ) -> dict[str, object]:
        """Build success envelope."""
        return {
            "request_id": request_id,
            "ok": True,
            "result": result,
            "warnings": warnings or [],
            "blocked": False,
        }

    @staticmethod
    def error_response(request_id: str, code: str, message: str) -> dict[str, object]:
        """Build explicit error envelope."""
        return {
            "request_id": request_id,
            "ok": False,
            "result": {},
            "warnings": [],
            "blocked": False,
            "error": {"code": code, "message": message},
        }

    @staticmethod
    def blocked_response(request_id: str, reason: str, hint: str) -> dict[str, object]:
        """Build blocked envelope for paths outside the workspace."""
        return {
            "request_id": request_id,
            "ok": False,
            "result": {"reason": reason, "hint": hint},
            "warnings": [],
            "blocked": True,
            "error": {"code": "PATH_BLOCKED", "message": reason},
        }

    def log_request(
        self,
        request_id: str,
        tool_name: str,
        arguments: dict[str, object],
        response: dict[str, object],
    ) -> None:
        """Append one sanitized request event to audit.jsonl."""
        error_payload = response.get("error")
        error_code: str | None = None
        if isinstance(error_payload, dict):
            code_value = error_payload.get("code")
            if isinstance(code_value, str):
                error_code = code_value
        event = AuditEvent(
            timestamp=utc_timestamp(),
            request_id=request_id,
            tool=tool_name,
            ok=bool(response.get("ok", False)),
            blocked=bool(response.get("blocked", False)),
            error_code=error_code,
            metadata=sanitize_arguments(arguments),
        )
        try:
            self._audit_log.append(event)
        except OSError as error:
            logger.warning("Could not append audit event: %s", error)


def create_server(
    workspace_root: str,
    data_dir: str | None = None,
    cli_overrides: CliOverrides | None = None,
    initial_scan: bool = True,
) -> StdioServer:
    """Create a configured STDIO server, optionally scanning once up front."""
    overrides = cli_overrides or CliOverrides()
    if data_dir is not None and overrides.data_dir is None:
        overrides = CliOverrides(
            data_dir=Path(data_dir).resolve(),
            base_group_name=overrides.base_group_name,
            debounce_ms=overrides.debounce_ms,
        )
    config = load_effective_config(
        workspace_root=Path(workspace_root).resolve(), overrides=overrides
    )
    server = StdioServer(config=config)
    if initial_scan:
        report = server.orchestrator.scan_all()
        logger.info("Initial scan finished: %s", report)
    return server


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for the codemarks-server process."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format=LOG_FORMAT, stream=sys.stderr)
    overrides = CliOverrides(
        data_dir=Path(args.data_dir).resolve() if args.data_dir is not None else None,
        base_group_name=args.base_group_name,
        debounce_ms=args.debounce_ms,
    )
    try:
        server = create_server(
            workspace_root=args.workspace_root,
            cli_overrides=overrides,
            initial_scan=not args.no_initial_scan,
        )
    except ValueError as error:
        logger.error("Invalid configuration: %s", error)
        return 2
    server.serve(in_stream=sys.stdin, out_stream=sys.stdout)
    return 0


def _exclude_globs_with_data_dir(config: WorkspaceConfig) -> tuple[str, ...]:
    # Engine writes land in the data dir; keep it out of enumeration.
    try:
        relative = config.data_dir.resolve().relative_to(config.workspace_root).as_posix()
    except ValueError:
        return config.scan.exclude_globs
    if relative in ("", "."):
        return config.scan.exclude_globs
    return (*config.scan.exclude_globs, f"/{relative}/**")


def _extract_result_warnings(result: dict[str, object]) -> list[str]:
    raw = result.pop("__warnings__", None)
    if not isinstance(raw, list):
        return []
    return [item for item in raw if isinstance(item, str)]


if __name__ == "__main__":
    raise SystemExit(main())
