"""Glob-based file eligibility rules."""

from __future__ import annotations

import fnmatch
import logging
import re
import threading
from collections.abc import Callable, Iterable
from typing import Final

logger = logging.getLogger(__name__)

MATCH_ALL_PATTERN: Final[str] = "*"
MAX_BRACE_ALTERNATIVES: Final[int] = 256


class GlobPatternError(ValueError):
    """Raised when a configured file pattern cannot be compiled."""


def expand_braces(pattern: str) -> list[str]:
    """Expand one level of `{a,b}` alternatives into plain glob patterns."""
    output: list[str] = [""]
    index = 0
    while index < len(pattern):
        char = pattern[index]
        if char == "}":
            raise GlobPatternError(f"Unbalanced '}}' in pattern: {pattern!r}")
        if char != "{":
            output = [prefix + char for prefix in output]
            index += 1
            continue
        close = pattern.find("}", index + 1)
        if close == -1:
            raise GlobPatternError(f"Unterminated '{{' in pattern: {pattern!r}")
        body = pattern[index + 1 : close]
        if "{" in body:
            raise GlobPatternError(f"Nested '{{' groups are not supported: {pattern!r}")
        alternatives = body.split(",")
        output = [prefix + alternative for prefix in output for alternative in alternatives]
        if len(output) > MAX_BRACE_ALTERNATIVES:
            raise GlobPatternError(f"Too many brace alternatives in pattern: {pattern!r}")
        index = close + 1
    return output


def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a file-name glob (`*`, `?`, `[...]`, `{a,b}`) to a regex."""
    if not pattern:
        raise GlobPatternError("Empty file pattern.")
    alternatives = expand_braces(pattern)
    translated = "|".join(f"(?:{fnmatch.translate(item)})" for item in alternatives)
    try:
        return re.compile(translated)
    except re.error as error:
        raise GlobPatternError(f"Invalid pattern {pattern!r}: {error}") from error


class FileFilter:
    """Decide whether a file name is eligible for mark scanning."""

    def __init__(self, patterns: Callable[[], Iterable[str]]) -> None:
        self._patterns = patterns
        self._compiled: dict[str, re.Pattern[str] | None] = {}
        self._lock = threading.Lock()

    def should_scan(self, path: str, file_name: str, is_directory: bool) -> bool:
        """Return True when a regular file matches at least one pattern."""
        if is_directory:
            return False
        name = file_name or path.rsplit("/", 1)[-1]
        for pattern in self._patterns():
            if pattern == MATCH_ALL_PATTERN:
                return True
            compiled = self._compile(pattern)
            if compiled is not None and compiled.match(name):
                return True
        return False

    def _compile(self, pattern: str) -> re.Pattern[str] | None:
        with self._lock:
            if pattern in self._compiled:
                return self._compiled[pattern]
            try:
                compiled: re.Pattern[str] | None = compile_glob(pattern)
            except GlobPatternError as error:
                logger.warning("Ignoring file pattern that never matches: %s", error)
                compiled = None
            self._compiled[pattern] = compiled
            return compiled
