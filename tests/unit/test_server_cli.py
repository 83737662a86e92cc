from __future__ import annotations

from pathlib import Path

from codemarks.server import build_arg_parser, main


def test_arg_parser_normalizes_log_level_and_flags() -> None:
    args = build_arg_parser().parse_args(
        [
            "--workspace-root",
            "ws",
            "--log-level",
            "debug",
            "--debounce-ms",
            "250",
            "--no-initial-scan",
        ]
    )

    assert args.workspace_root == "ws"
    assert args.log_level == "DEBUG"
    assert args.debounce_ms == 250
    assert args.no_initial_scan is True
    assert args.base_group_name is None


def test_main_reports_invalid_config_with_exit_code(tmp_path: Path) -> None:
    (tmp_path / "codemarks.toml").write_text("[scan]\ndebounce_ms = 0\n", encoding="utf-8")

    assert main(["--workspace-root", str(tmp_path), "--no-initial-scan"]) == 2
