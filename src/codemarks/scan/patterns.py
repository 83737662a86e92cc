"""Mark-comment grammar and extraction."""

from __future__ import annotations

import bisect
import re
from typing import Final

from codemarks.scan.models import MarkMatch

MARK_TOKEN: Final[str] = "CodeMarks"

# Horizontal whitespace only after the colon so a bare "CodeMarks:" never
# borrows its label from the next line.
MARK_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"CodeMarks(?:\[(\w+)\])?:[^\S\r\n]*(.*)",
    re.IGNORECASE,
)


class PatternMatcher:
    """Extract (line, tag, label) triples from text using the mark grammar."""

    def __init__(self, pattern: re.Pattern[str] = MARK_PATTERN) -> None:
        self._pattern = pattern

    def extract(self, text: str) -> list[MarkMatch]:
        """Return every mark occurrence in text order."""
        if not text:
            return []
        line_starts = _line_start_offsets(text)
        output: list[MarkMatch] = []
        for match in self._pattern.finditer(text):
            line = bisect.bisect_right(line_starts, match.start()) - 1
            output.append(_to_mark(line, match))
        return output

    def match_line(self, line_text: str) -> MarkMatch | None:
        """Return the first mark on a single line, if any."""
        match = self._pattern.search(line_text)
        if match is None:
            return None
        return _to_mark(0, match)


def _to_mark(line: int, match: re.Match[str]) -> MarkMatch:
    return MarkMatch(line=line, tag=match.group(1), label=match.group(2).strip())


def _line_start_offsets(text: str) -> list[int]:
    offsets = [0]
    index = text.find("\n")
    while index != -1:
        offsets.append(index + 1)
        index = text.find("\n", index + 1)
    return offsets
