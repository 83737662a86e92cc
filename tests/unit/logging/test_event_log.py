from __future__ import annotations

import json
from pathlib import Path

from codemarks.logging import AuditEvent, JsonlEventLog, ScanEvent


def _audit(timestamp: str, request_id: str) -> AuditEvent:
    return AuditEvent(
        timestamp=timestamp,
        request_id=request_id,
        tool="codemarks.status",
        ok=True,
        blocked=False,
        error_code=None,
        metadata={},
    )


def test_events_append_as_sorted_json_lines(tmp_path: Path) -> None:
    log = JsonlEventLog(tmp_path / "logs" / "scans.jsonl")
    log.append(
        ScanEvent(
            timestamp="2026-01-01T00:00:00.000Z",
            scan_id="scan-000001",
            scope="workspace",
            path=None,
            status="ok",
            added=1,
            removed=0,
            kept=0,
            files_scanned=1,
            files_skipped=0,
            files_failed=0,
            mutation_failures=0,
            duration_ms=3,
        )
    )

    [line] = log.path.read_text(encoding="utf-8").splitlines()
    record = json.loads(line)
    assert list(record) == sorted(record)
    assert record["scan_id"] == "scan-000001"


def test_read_filters_by_since_and_keeps_latest(tmp_path: Path) -> None:
    log = JsonlEventLog(tmp_path / "audit.jsonl")
    for index in range(5):
        log.append(_audit(f"2026-01-0{index + 1}T00:00:00.000Z", f"req-{index}"))
    with log.path.open("a", encoding="utf-8") as handle:
        handle.write("not json\n\n")

    recent = log.read(limit=2)
    since = log.read(since="2026-01-03T00:00:00.000Z")

    assert [entry["request_id"] for entry in recent] == ["req-3", "req-4"]
    assert [entry["request_id"] for entry in since] == ["req-2", "req-3", "req-4"]
    assert log.read(limit=0) == []


def test_missing_log_reads_empty(tmp_path: Path) -> None:
    assert JsonlEventLog(tmp_path / "none.jsonl").read() == []
