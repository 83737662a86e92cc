"""Diff freshly extracted marks against tracked markers."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from codemarks.host.base import TextAccessor
from codemarks.scan.models import (
    MarkCandidate,
    ReconcilePlan,
    TrackedMarker,
    group_name_for,
    marker_sort_key,
)
from codemarks.scan.patterns import PatternMatcher

logger = logging.getLogger(__name__)

EligibilityCheck = Callable[[str], bool]


class Reconciler:
    """Compute add/remove/keep decisions for one scope.

    A tracked marker survives only while its line still carries a mark with
    the same label. Candidates are matched to survivors on `(path, line)`
    with equal label and group; anything else becomes a remove+add pair.
    """

    def __init__(
        self,
        text: TextAccessor,
        is_eligible: EligibilityCheck,
        base_group_name: str,
        matcher: PatternMatcher | None = None,
    ) -> None:
        self._text = text
        self._is_eligible = is_eligible
        self._base_group_name = base_group_name
        self._matcher = matcher or PatternMatcher()

    @property
    def base_group_name(self) -> str:
        return self._base_group_name

    def reconcile(
        self,
        candidates: Iterable[MarkCandidate],
        tracked: Iterable[TrackedMarker],
        scanned_paths: Iterable[str] = (),
    ) -> ReconcilePlan:
        """Return the plan that makes tracked markers mirror candidates."""
        scanned = set(scanned_paths)
        to_remove: list[TrackedMarker] = []
        removed_ids: set[str] = set()
        survivors: dict[tuple[str, int], list[TrackedMarker]] = {}
        for marker in sorted(tracked, key=marker_sort_key):
            if self.is_valid(marker):
                survivors.setdefault((marker.path, marker.line), []).append(marker)
                continue
            to_remove.append(marker)
            removed_ids.add(marker.marker_id)

        to_add: list[MarkCandidate] = []
        kept: list[TrackedMarker] = []
        claimed: set[str] = set()
        seen_slots: set[tuple[str, int]] = set()
        for candidate in candidates:
            slot = (candidate.path, candidate.line)
            if slot in seen_slots:
                continue
            seen_slots.add(slot)
            group_name = group_name_for(self._base_group_name, candidate.tag)
            occupants = survivors.get(slot, [])
            match = next(
                (
                    marker
                    for marker in occupants
                    if marker.label == candidate.label and marker.group_name == group_name
                ),
                None,
            )
            if match is not None:
                claimed.add(match.marker_id)
                kept.append(match)
                continue
            to_add.append(candidate)
            for marker in occupants:
                if marker.marker_id in removed_ids:
                    continue
                to_remove.append(marker)
                removed_ids.add(marker.marker_id)

        for occupants in survivors.values():
            for marker in occupants:
                if marker.marker_id in claimed or marker.marker_id in removed_ids:
                    continue
                if marker.path in scanned:
                    # Duplicate or orphan in a freshly scanned file.
                    to_remove.append(marker)
                    removed_ids.add(marker.marker_id)
                    continue
                kept.append(marker)

        return ReconcilePlan(
            to_add=tuple(to_add),
            to_remove=tuple(sorted(to_remove, key=marker_sort_key)),
            kept=tuple(sorted(kept, key=marker_sort_key)),
        )

    def is_valid(self, marker: TrackedMarker) -> bool:
        """Return True when the marker's line still carries its mark."""
        try:
            if not self._text.exists(marker.path):
                logger.debug(
                    "Marker %s invalid: %s no longer exists", marker.marker_id, marker.path
                )
                return False
            if not self._is_eligible(marker.path):
                logger.debug("Marker %s invalid: %s is not eligible", marker.marker_id, marker.path)
                return False
            if marker.line < 0 or marker.line >= self._text.line_count(marker.path):
                logger.debug(
                    "Marker %s invalid: line %d out of range for %s",
                    marker.marker_id,
                    marker.line,
                    marker.path,
                )
                return False
            found = self._matcher.match_line(self._text.line_text(marker.path, marker.line))
        except Exception as error:
            logger.warning(
                "Could not validate marker %s at %s:%d: %s",
                marker.marker_id,
                marker.path,
                marker.line,
                error,
            )
            return False
        if found is None:
            return False
        return found.label == marker.label
