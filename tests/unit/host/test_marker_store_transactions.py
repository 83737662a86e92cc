from __future__ import annotations

import pytest

from codemarks.host import InMemoryMarkerStore, MarkerBatch, MarkerStoreError


def test_transaction_commits_one_batch_to_listeners() -> None:
    store = InMemoryMarkerStore()
    batches: list[MarkerBatch] = []
    store.subscribe(batches.append)

    with store.transaction():
        first = store.add_marker("a.py", 0, "one", "CodeMarks")
        store.add_marker("a.py", 1, "two", "CodeMarks tag")
        assert store.list_markers("CodeMarks") == []
        store.remove_marker(first)

    assert len(batches) == 1
    assert [marker.label for marker in batches[0].added] == ["one", "two"]
    assert [marker.marker_id for marker in batches[0].removed] == [first]
    assert [marker.label for marker in store.list_markers("CodeMarks")] == ["two"]


def test_exception_rolls_back_staged_mutations() -> None:
    store = InMemoryMarkerStore()
    kept = store.add_marker("a.py", 0, "kept", "CodeMarks")
    batches: list[MarkerBatch] = []
    store.subscribe(batches.append)

    with pytest.raises(RuntimeError):
        with store.transaction():
            store.remove_marker(kept)
            store.add_marker("b.py", 0, "lost", "CodeMarks")
            raise RuntimeError("abort")

    assert [marker.marker_id for marker in store.list_markers("")] == [kept]
    assert batches == []


def test_invalid_mutations_raise_store_errors() -> None:
    store = InMemoryMarkerStore()

    with pytest.raises(MarkerStoreError):
        store.remove_marker("m-999999")
    with pytest.raises(MarkerStoreError):
        store.add_marker("a.py", -1, "label", "CodeMarks")
    with pytest.raises(MarkerStoreError):
        store.add_marker("", 0, "label", "CodeMarks")


def test_failed_mutation_inside_transaction_keeps_the_rest() -> None:
    store = InMemoryMarkerStore()

    with store.transaction():
        store.add_marker("a.py", 0, "ok", "CodeMarks")
        with pytest.raises(MarkerStoreError):
            store.remove_marker("m-999999")

    assert [marker.label for marker in store.list_markers("CodeMarks")] == ["ok"]


def test_group_prefix_filter_and_group_listing() -> None:
    store = InMemoryMarkerStore()
    with store.transaction():
        store.add_marker("a.py", 0, "a", "CodeMarks")
        store.add_marker("a.py", 1, "b", "CodeMarks todo")
        store.add_marker("a.py", 2, "c", "Other")

    assert len(store.list_markers("CodeMarks")) == 2
    assert store.groups("CodeMarks") == ("CodeMarks", "CodeMarks todo")
    assert store.groups("") == ("CodeMarks", "CodeMarks todo", "Other")
