"""Mark extraction, reconciliation and scan scheduling."""

from .filters import FileFilter, GlobPatternError, compile_glob, expand_braces
from .models import (
    MarkCandidate,
    MarkMatch,
    ReconcilePlan,
    ScanReport,
    TrackedMarker,
    group_name_for,
    marker_sort_key,
)
from .orchestrator import SCOPE_FILE, SCOPE_WORKSPACE, ScanCancelledError, ScanOrchestrator
from .patterns import MARK_PATTERN, MARK_TOKEN, PatternMatcher
from .reconcile import Reconciler
from .scheduler import DEFAULT_DEBOUNCE_SECONDS, PendingScan, Scheduler
from .state import ScanState

__all__ = [
    "DEFAULT_DEBOUNCE_SECONDS",
    "FileFilter",
    "GlobPatternError",
    "MARK_PATTERN",
    "MARK_TOKEN",
    "MarkCandidate",
    "MarkMatch",
    "PatternMatcher",
    "PendingScan",
    "ReconcilePlan",
    "Reconciler",
    "SCOPE_FILE",
    "SCOPE_WORKSPACE",
    "ScanCancelledError",
    "ScanOrchestrator",
    "ScanReport",
    "ScanState",
    "Scheduler",
    "TrackedMarker",
    "compile_glob",
    "expand_braces",
    "group_name_for",
    "marker_sort_key",
]
