from __future__ import annotations

from pathlib import Path

from codemarks.server import create_server


def test_tools_call_validates_name_and_arguments(tmp_path: Path) -> None:
    server = create_server(workspace_root=str(tmp_path), initial_scan=False)

    no_name = server.handle_payload({"id": "a", "method": "tools/call", "params": {}})
    bad_args = server.handle_payload(
        {
            "id": "b",
            "method": "tools/call",
            "params": {"name": "codemarks.status", "arguments": []},
        }
    )
    ok = server.handle_payload(
        {"id": "c", "method": "tools/call", "params": {"name": "codemarks.notify_all"}}
    )
    server.close()

    assert no_name["error"]["code"] == "INVALID_PARAMS"
    assert bad_args["error"]["code"] == "INVALID_PARAMS"
    assert ok["ok"] is True
    assert ok["result"]["scheduled"] is True


def test_argument_type_errors_are_invalid_params(tmp_path: Path) -> None:
    server = create_server(workspace_root=str(tmp_path), initial_scan=False)

    force = server.handle_payload(
        {"id": "f", "method": "codemarks.scan_all", "params": {"force": "yes"}}
    )
    patterns = server.handle_payload(
        {"id": "p", "method": "codemarks.set_file_patterns", "params": {"patterns": "*.py"}}
    )
    notify = server.handle_payload({"id": "n", "method": "codemarks.notify", "params": {}})

    assert force["error"]["code"] == "INVALID_PARAMS"
    assert patterns["error"]["code"] == "INVALID_PARAMS"
    assert notify["error"]["code"] == "INVALID_PARAMS"
