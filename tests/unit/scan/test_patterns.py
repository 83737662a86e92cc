from __future__ import annotations

from codemarks.scan import MarkMatch, PatternMatcher


def test_extracts_tag_label_and_zero_based_line() -> None:
    text = "first\n    // CodeMarks: Hello  \nx = 1  # CodeMarks[todo]: Fix me\n"

    matches = PatternMatcher().extract(text)

    assert matches == [
        MarkMatch(line=1, tag=None, label="Hello"),
        MarkMatch(line=2, tag="todo", label="Fix me"),
    ]


def test_token_is_case_insensitive() -> None:
    matches = PatternMatcher().extract("# codemarks: lower\n# CODEMARKS[X]: upper\n")

    assert [(match.tag, match.label) for match in matches] == [(None, "lower"), ("X", "upper")]


def test_malformed_brackets_do_not_match() -> None:
    text = "# CodeMarks[]: empty\n# CodeMarks[open: nope\n# CodeMarks[a-b]: dash\n"

    assert PatternMatcher().extract(text) == []


def test_empty_label_is_still_emitted() -> None:
    matches = PatternMatcher().extract("# CodeMarks:\nnext line text\n")

    assert matches == [MarkMatch(line=0, tag=None, label="")]


def test_lines_without_token_and_empty_text_yield_nothing() -> None:
    matcher = PatternMatcher()

    assert matcher.extract("") == []
    assert matcher.extract("CodeMarks without colon\nCode Marks: split\n") == []


def test_crlf_line_endings_keep_labels_clean() -> None:
    matches = PatternMatcher().extract("a\r\n# CodeMarks: windows\r\nb\r\n")

    assert matches == [MarkMatch(line=1, tag=None, label="windows")]


def test_match_line_returns_first_occurrence() -> None:
    matcher = PatternMatcher()

    found = matcher.match_line("# CodeMarks[a]: one")

    assert found is not None
    assert (found.tag, found.label) == ("a", "one")
    assert matcher.match_line("plain") is None
