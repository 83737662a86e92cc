from __future__ import annotations

import json
from pathlib import Path

from codemarks.host import JsonMarkerStore


def test_committed_markers_persist_and_reload(tmp_path: Path) -> None:
    path = tmp_path / "data" / "markers.json"
    store = JsonMarkerStore(path)
    with store.transaction():
        store.add_marker("a.py", 3, "hello", "CodeMarks")
        store.add_marker("b.py", 0, "tagged", "CodeMarks t")

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["schema_version"] == 1
    assert [marker["label"] for marker in payload["markers"]] == ["hello", "tagged"]

    reloaded = JsonMarkerStore(path)
    assert reloaded.restored is True
    assert reloaded.list_markers("") == store.list_markers("")
    new_id = reloaded.add_marker("c.py", 0, "next", "CodeMarks")
    assert new_id == "m-000003"


def test_unreadable_or_foreign_files_load_empty(tmp_path: Path) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    foreign = tmp_path / "foreign.json"
    foreign.write_text(json.dumps({"schema_version": 99, "markers": []}), encoding="utf-8")

    assert JsonMarkerStore(broken).list_markers("") == []
    assert JsonMarkerStore(foreign).list_markers("") == []
    assert JsonMarkerStore(broken).restored is False
    assert JsonMarkerStore(foreign).restored is False
    assert JsonMarkerStore(tmp_path / "missing.json").restored is False
