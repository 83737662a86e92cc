from __future__ import annotations

from pathlib import Path

from codemarks.config import CliOverrides, load_effective_config


def test_merge_order_defaults_then_workspace_then_cli(tmp_path: Path) -> None:
    (tmp_path / "codemarks.toml").write_text(
        "\n".join(
            [
                "[scan]",
                'file_type_patterns = ["*.py"]',
                "debounce_ms = 250",
                'base_group_name = "Notes"',
            ]
        ),
        encoding="utf-8",
    )

    config = load_effective_config(tmp_path, CliOverrides(debounce_ms=40))

    assert config.scan.file_type_patterns == ("*.py",)
    assert config.scan.base_group_name == "Notes"
    assert config.scan.debounce_ms == 40
    assert config.data_dir == (tmp_path / ".codemarks").resolve()


def test_defaults_without_config_file(tmp_path: Path) -> None:
    config = load_effective_config(tmp_path)

    assert config.workspace_root == tmp_path.resolve()
    assert config.scan.base_group_name == "CodeMarks"
    assert config.scan.debounce_ms == 100
    assert config.scan.content_roots == (".",)
    assert "*" in config.scan.file_type_patterns
    assert "**/node_modules/**" in config.scan.exclude_globs


def test_data_dir_override_has_highest_precedence(tmp_path: Path) -> None:
    (tmp_path / "codemarks.toml").write_text('[storage]\ndata_dir = "state"\n', encoding="utf-8")
    from_file = load_effective_config(tmp_path)
    custom = tmp_path / "custom"
    overridden = load_effective_config(tmp_path, CliOverrides(data_dir=custom))

    assert from_file.data_dir == (tmp_path / "state").resolve()
    assert overridden.data_dir == custom.resolve()
    assert overridden.to_public_dict()["data_dir"] == str(custom.resolve())
