from __future__ import annotations

from codemarks.scan import MarkCandidate, Reconciler, TrackedMarker


class LinesAccessor:
    def __init__(self, files: dict[str, str]) -> None:
        self.files = files
        self.broken: set[str] = set()

    def exists(self, path: str) -> bool:
        return path in self.files

    def read_text(self, path: str) -> str:
        if path in self.broken:
            raise OSError(f"cannot read {path}")
        return self.files[path]

    def line_count(self, path: str) -> int:
        return len(self.read_text(path).split("\n"))

    def line_text(self, path: str, line: int) -> str:
        return self.read_text(path).split("\n")[line]

    def last_modified(self, path: str) -> int:
        return 0


def _marker(
    marker_id: str, path: str, line: int, label: str, group: str = "CodeMarks"
) -> TrackedMarker:
    return TrackedMarker(marker_id=marker_id, path=path, line=line, label=label, group_name=group)


def _reconciler(files: dict[str, str], eligible: set[str] | None = None) -> Reconciler:
    allowed = eligible if eligible is not None else set(files)
    return Reconciler(
        text=LinesAccessor(files),
        is_eligible=lambda path: path in allowed,
        base_group_name="CodeMarks",
    )


def test_matching_candidate_keeps_tracked_marker() -> None:
    reconciler = _reconciler({"a.py": "# CodeMarks: keep"})
    tracked = [_marker("m-1", "a.py", 0, "keep")]

    plan = reconciler.reconcile(
        [MarkCandidate(path="a.py", line=0, label="keep")], tracked, scanned_paths=["a.py"]
    )

    assert plan.to_add == ()
    assert plan.to_remove == ()
    assert plan.kept == tuple(tracked)
    assert plan.is_empty


def test_edited_label_is_remove_plus_add() -> None:
    reconciler = _reconciler({"a.py": "# CodeMarks: B"})
    old = _marker("m-1", "a.py", 0, "A")
    fresh = MarkCandidate(path="a.py", line=0, label="B")

    plan = reconciler.reconcile([fresh], [old], scanned_paths=["a.py"])

    assert plan.to_add == (fresh,)
    assert plan.to_remove == (old,)


def test_tag_change_removes_valid_occupant_of_other_group() -> None:
    reconciler = _reconciler({"a.py": "# CodeMarks[new]: same"})
    old = _marker("m-1", "a.py", 0, "same", "CodeMarks old")
    fresh = MarkCandidate(path="a.py", line=0, label="same", tag="new")

    plan = reconciler.reconcile([fresh], [old], scanned_paths=["a.py"])

    assert plan.to_add == (fresh,)
    assert plan.to_remove == (old,)


def test_invalid_markers_are_removed() -> None:
    reconciler = _reconciler(
        {"a.py": "# CodeMarks: a", "hidden.py": "# CodeMarks: h"}, eligible={"a.py"}
    )
    tracked = [
        _marker("m-1", "a.py", 5, "out of range"),
        _marker("m-2", "gone.py", 0, "deleted file"),
        _marker("m-3", "hidden.py", 0, "h"),
    ]

    plan = reconciler.reconcile([], tracked)

    assert [marker.marker_id for marker in plan.to_remove] == ["m-1", "m-2", "m-3"]
    assert plan.kept == ()


def test_validation_error_counts_as_invalid() -> None:
    accessor = LinesAccessor({"a.py": "# CodeMarks: a"})
    accessor.broken.add("a.py")
    reconciler = Reconciler(text=accessor, is_eligible=lambda _: True, base_group_name="CodeMarks")

    plan = reconciler.reconcile([], [_marker("m-1", "a.py", 0, "a")])

    assert [marker.marker_id for marker in plan.to_remove] == ["m-1"]


def test_markers_in_skipped_files_survive_when_valid() -> None:
    reconciler = _reconciler({"a.py": "# CodeMarks: a", "b.py": "# CodeMarks: b"})
    in_a = _marker("m-1", "a.py", 0, "a")
    in_b = _marker("m-2", "b.py", 0, "b")

    plan = reconciler.reconcile(
        [MarkCandidate(path="a.py", line=0, label="a")], [in_a, in_b], scanned_paths=["a.py"]
    )

    assert plan.kept == (in_a, in_b)
    assert plan.to_remove == ()


def test_duplicate_candidates_and_markers_collapse_to_one() -> None:
    reconciler = _reconciler({"a.py": "# CodeMarks: x  CodeMarks: y"})
    first = _marker("m-1", "a.py", 0, "x  CodeMarks: y")
    second = _marker("m-2", "a.py", 0, "x  CodeMarks: y")
    candidate = MarkCandidate(path="a.py", line=0, label="x  CodeMarks: y")

    plan = reconciler.reconcile([candidate, candidate], [first, second], scanned_paths=["a.py"])

    assert plan.to_add == ()
    assert plan.kept == (first,)
    assert plan.to_remove == (second,)


def test_base_group_name_is_exposed() -> None:
    assert _reconciler({}).base_group_name == "CodeMarks"
