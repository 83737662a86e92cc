"""Scan-and-apply entry points for whole-workspace and single-file scans."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field

from codemarks.host.base import (
    CollaboratorUnavailableError,
    FileEnumerator,
    MarkerStore,
    MarkerStoreError,
    SettingsStore,
    TextAccessor,
)
from codemarks.logging import JsonlEventLog, ScanEvent, utc_timestamp
from codemarks.scan.filters import FileFilter
from codemarks.scan.models import (
    MarkCandidate,
    ReconcilePlan,
    ScanReport,
    TrackedMarker,
    group_name_for,
    marker_sort_key,
)
from codemarks.scan.patterns import PatternMatcher
from codemarks.scan.reconcile import Reconciler
from codemarks.scan.state import ScanState

logger = logging.getLogger(__name__)

SCOPE_WORKSPACE = "workspace"
SCOPE_FILE = "file"


class ScanCancelledError(Exception):
    """Raised inside a pass when the workspace is no longer alive."""


@dataclass(slots=True)
class _PassCounters:
    files_considered: int = 0
    files_scanned: int = 0
    files_skipped: int = 0
    files_failed: int = 0
    failed_adds: int = 0
    failed_removes: int = 0
    failed_paths: set[str] = field(default_factory=set)
    scanned_mtimes: dict[str, int] = field(default_factory=dict)
    enumerated: list[str] = field(default_factory=list)


class ScanOrchestrator:
    """Owns scan passes for one workspace.

    At most one pass runs at a time. Synchronous callers queue on the scan
    lock; background passes run on a single worker thread.
    """

    def __init__(
        self,
        *,
        enumerator: FileEnumerator,
        text: TextAccessor,
        store: MarkerStore,
        file_filter: FileFilter,
        scan_state: ScanState,
        base_group_name: str = "CodeMarks",
        matcher: PatternMatcher | None = None,
        settings: SettingsStore | None = None,
        scan_log: JsonlEventLog | None = None,
        is_alive: Callable[[], bool] | None = None,
    ) -> None:
        self._enumerator = enumerator
        self._text = text
        self._store = store
        self._filter = file_filter
        self._state = scan_state
        self._base_group_name = base_group_name
        self._matcher = matcher or PatternMatcher()
        self._settings = settings
        self._scan_log = scan_log
        self._host_alive = is_alive
        self._reconciler = Reconciler(
            text=text,
            is_eligible=self.is_eligible,
            base_group_name=base_group_name,
            matcher=self._matcher,
        )
        self._scan_lock = threading.Lock()
        self._closed = threading.Event()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="codemarks-scan")
        self._scan_counter = 0
        self._counter_lock = threading.Lock()
        self._last_report: ScanReport | None = None

    @property
    def base_group_name(self) -> str:
        return self._base_group_name

    @property
    def scan_state(self) -> ScanState:
        return self._state

    @property
    def last_report(self) -> ScanReport | None:
        return self._last_report

    @property
    def alive(self) -> bool:
        if self._closed.is_set():
            return False
        if self._host_alive is not None and not self._host_alive():
            return False
        return True

    def scan_all(self, wait: bool = True) -> ScanReport | Future[ScanReport]:
        """Scan every eligible workspace file and reconcile all markers."""
        return self._dispatch(lambda: self._run_pass(path=None, force=False), wait)

    def scan_file(self, path: str, wait: bool = True) -> ScanReport | Future[ScanReport]:
        """Scan one file and reconcile only the markers that belong to it."""
        return self._dispatch(lambda: self._run_pass(path=path, force=False), wait)

    def force_rescan(self, wait: bool = True) -> ScanReport | Future[ScanReport]:
        """Forget cached timestamps, then scan the whole workspace."""
        self._state.clear()
        return self._dispatch(lambda: self._run_pass(path=None, force=True), wait)

    def list_markers(
        self, group: str | None = None, path: str | None = None
    ) -> list[TrackedMarker]:
        """Return markers owned by this engine, optionally filtered."""
        markers = self._store.list_markers(self._base_group_name)
        if group is not None:
            markers = [marker for marker in markers if marker.group_name == group]
        if path is not None:
            markers = [marker for marker in markers if marker.path == path]
        return sorted(markers, key=marker_sort_key)

    def organize_groups(self) -> dict[str, object]:
        """Sort markers within each group by label and report group names."""
        with self._scan_lock:
            markers = self._store.list_markers(self._base_group_name)
            by_group: dict[str, list[TrackedMarker]] = {}
            for marker in markers:
                by_group.setdefault(marker.group_name, []).append(marker)
            reordered: list[str] = []
            with self._store.transaction():
                for group_name in sorted(by_group):
                    current = by_group[group_name]
                    ordered = sorted(current, key=lambda item: (item.label, item.path, item.line))
                    if ordered == current:
                        continue
                    for marker in current:
                        self._store.remove_marker(marker.marker_id)
                    for marker in ordered:
                        self._store.add_marker(
                            marker.path, marker.line, marker.label, marker.group_name
                        )
                    reordered.append(group_name)
        logger.info("Organized %d marker groups (%d reordered)", len(by_group), len(reordered))
        return {
            "groups": [
                {"name": name, "marker_count": len(by_group[name])} for name in sorted(by_group)
            ],
            "reordered": reordered,
        }

    def is_eligible(self, path: str) -> bool:
        """Return True when a file is tracked workspace content and passes the filter."""
        if not self._enumerator.is_tracked(path):
            return False
        name = path.rsplit("/", 1)[-1]
        return self._filter.should_scan(path, name, is_directory=False)

    def close(self, wait: bool = True) -> None:
        """Stop accepting work; passes still running abort before mutating."""
        self._closed.set()
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def _dispatch(
        self, run: Callable[[], ScanReport], wait: bool
    ) -> ScanReport | Future[ScanReport]:
        if wait:
            return run()
        if self._closed.is_set():
            future: Future[ScanReport] = Future()
            future.set_result(self._skipped_report())
            return future
        return self._executor.submit(run)

    def _run_pass(self, path: str | None, force: bool) -> ScanReport:
        scope = SCOPE_WORKSPACE if path is None else SCOPE_FILE
        with self._scan_lock:
            scan_id = self._next_scan_id()
            started = time.perf_counter()
            counters = _PassCounters()
            plan = ReconcilePlan(to_add=(), to_remove=(), kept=())
            status = "ok"
            try:
                self._ensure_alive()
                files = self._select_files(path)
                counters.enumerated = files
                candidates = self._extract(files, force, counters)
                tracked = self._store.list_markers(self._base_group_name)
                if path is not None:
                    tracked = [marker for marker in tracked if marker.path == path]
                plan = self._reconciler.reconcile(
                    candidates=candidates,
                    tracked=tracked,
                    scanned_paths=counters.scanned_mtimes.keys(),
                )
                self._apply(plan, counters)
                self._record_scan_state(path, counters)
                self._prune_text_cache(path, counters)
            except (ScanCancelledError, CollaboratorUnavailableError) as error:
                logger.info("Scan %s aborted: %s", scan_id, error)
                status = "cancelled"
            except Exception:
                logger.exception("Scan %s failed", scan_id)
                status = "failed"

            applied = status == "ok"
            report = ScanReport(
                scan_id=scan_id,
                scope=scope,
                path=path,
                status=status,
                files_considered=counters.files_considered,
                files_scanned=counters.files_scanned,
                files_skipped=counters.files_skipped,
                files_failed=counters.files_failed,
                added=len(plan.to_add) - counters.failed_adds if applied else 0,
                removed=len(plan.to_remove) - counters.failed_removes if applied else 0,
                kept=len(plan.kept) if applied else 0,
                mutation_failures=counters.failed_adds + counters.failed_removes,
                duration_ms=int((time.perf_counter() - started) * 1000),
                timestamp=utc_timestamp(),
            )
            self._last_report = report
            self._log_report(report)
            return report

    def _select_files(self, path: str | None) -> list[str]:
        if path is None:
            return self._enumerate_files()
        if not self._text.exists(path) or not self.is_eligible(path):
            return []
        return [path]

    def _enumerate_files(self) -> list[str]:
        files: list[str] = []
        stack = list(reversed(self._enumerator.list_content_roots()))
        visited: set[str] = set()
        while stack:
            directory = stack.pop()
            if directory in visited:
                continue
            visited.add(directory)
            try:
                children = self._enumerator.list_children(directory)
            except CollaboratorUnavailableError:
                raise
            except Exception as error:
                logger.warning("Skipping unreadable directory %s: %s", directory, error)
                continue
            for child_path, is_directory in reversed(children):
                if is_directory:
                    stack.append(child_path)
                    continue
                name = child_path.rsplit("/", 1)[-1]
                if self._filter.should_scan(child_path, name, is_directory=False):
                    files.append(child_path)
        return sorted(set(files))

    def _extract(
        self, files: list[str], force: bool, counters: _PassCounters
    ) -> list[MarkCandidate]:
        candidates: list[MarkCandidate] = []
        for path in files:
            counters.files_considered += 1
            try:
                mtime = self._text.last_modified(path)
                if not force and self._state.get(path) == mtime:
                    counters.files_skipped += 1
                    continue
                text = self._text.read_text(path)
            except CollaboratorUnavailableError:
                raise
            except Exception as error:
                counters.files_failed += 1
                logger.warning("Skipping unreadable file %s: %s", path, error)
                continue
            for match in self._matcher.extract(text):
                candidates.append(
                    MarkCandidate(path=path, line=match.line, label=match.label, tag=match.tag)
                )
            counters.files_scanned += 1
            counters.scanned_mtimes[path] = mtime
        return candidates

    def _apply(self, plan: ReconcilePlan, counters: _PassCounters) -> None:
        if plan.is_empty:
            return
        self._ensure_alive()
        with self._store.transaction():
            for marker in plan.to_remove:
                self._ensure_alive()
                try:
                    self._store.remove_marker(marker.marker_id)
                except MarkerStoreError as error:
                    counters.failed_removes += 1
                    counters.failed_paths.add(marker.path)
                    logger.warning("Could not remove marker %s: %s", marker.marker_id, error)
            for candidate in plan.to_add:
                self._ensure_alive()
                group_name = group_name_for(self._base_group_name, candidate.tag)
                try:
                    self._store.add_marker(
                        candidate.path, candidate.line, candidate.label, group_name
                    )
                except MarkerStoreError as error:
                    counters.failed_adds += 1
                    counters.failed_paths.add(candidate.path)
                    logger.warning(
                        "Could not add marker at %s:%d: %s", candidate.path, candidate.line, error
                    )
        logger.info(
            "Applied %d additions and %d removals (%d failed)",
            len(plan.to_add) - counters.failed_adds,
            len(plan.to_remove) - counters.failed_removes,
            counters.failed_adds + counters.failed_removes,
        )

    def _record_scan_state(self, path: str | None, counters: _PassCounters) -> None:
        for scanned_path, mtime in counters.scanned_mtimes.items():
            if scanned_path not in counters.failed_paths:
                self._state.set(scanned_path, mtime)
        # Files with a failed mutation must be re-read by the next pass.
        for failed_path in counters.failed_paths:
            self._state.remove(failed_path)
        if path is None:
            self._state.prune(counters.enumerated)
        elif path not in counters.enumerated:
            self._state.remove(path)
        if self._settings is None:
            return
        try:
            self._settings.save_scan_state(self._state.snapshot())
        except OSError as error:
            logger.warning("Could not persist scan state: %s", error)

    def _prune_text_cache(self, path: str | None, counters: _PassCounters) -> None:
        if path is not None:
            if path not in counters.enumerated:
                self._text.evict(path)
            return
        # Marker files outside the enumeration are still read by validation.
        keep = set(counters.enumerated)
        keep.update(marker.path for marker in self._store.list_markers(self._base_group_name))
        dropped = self._text.prune(keep)
        if dropped:
            logger.debug("Dropped %d cached files no longer in the workspace", dropped)

    def _ensure_alive(self) -> None:
        if not self.alive:
            raise ScanCancelledError("workspace closed")

    def _next_scan_id(self) -> str:
        with self._counter_lock:
            self._scan_counter += 1
            return f"scan-{self._scan_counter:06d}"

    def _skipped_report(self) -> ScanReport:
        return ScanReport(
            scan_id=self._next_scan_id(),
            scope=SCOPE_WORKSPACE,
            path=None,
            status="cancelled",
            files_considered=0,
            files_scanned=0,
            files_skipped=0,
            files_failed=0,
            added=0,
            removed=0,
            kept=0,
            mutation_failures=0,
            duration_ms=0,
            timestamp=utc_timestamp(),
        )

    def _log_report(self, report: ScanReport) -> None:
        logger.debug("Scan report: %s", report)
        if self._scan_log is None:
            return
        event = ScanEvent(
            timestamp=report.timestamp,
            scan_id=report.scan_id,
            scope=report.scope,
            path=report.path,
            status=report.status,
            added=report.added,
            removed=report.removed,
            kept=report.kept,
            files_scanned=report.files_scanned,
            files_skipped=report.files_skipped,
            files_failed=report.files_failed,
            mutation_failures=report.mutation_failures,
            duration_ms=report.duration_ms,
        )
        try:
            self._scan_log.append(event)
        except OSError as error:
            logger.warning("Could not append scan event: %s", error)
