from __future__ import annotations

from pathlib import Path


def test_required_package_paths_exist() -> None:
    root = Path(__file__).resolve().parents[1]
    required = [
        "src/codemarks/server.py",
        "src/codemarks/config.py",
        "src/codemarks/scan/__init__.py",
        "src/codemarks/host/__init__.py",
        "src/codemarks/tools/__init__.py",
        "src/codemarks/security/__init__.py",
        "src/codemarks/logging/__init__.py",
    ]
    for rel in required:
        assert (root / rel).exists(), rel
