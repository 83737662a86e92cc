"""Debounced scheduling of scan passes from change notifications."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from typing import Protocol

from codemarks.scan.models import ScanReport

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.1


class ScanTarget(Protocol):
    """Operations the scheduler triggers when its timer fires."""

    def scan_all(self, wait: bool = True) -> object:
        """Scan the whole workspace."""

    def scan_file(self, path: str, wait: bool = True) -> object:
        """Scan one file."""


class PendingScan:
    """Single owned timer slot with arm/cancel/fire.

    `fire` runs an armed callback synchronously. When the timer has already
    expired and its callback is still running, `fire` waits for that run and
    returns its result instead.
    """

    def __init__(self, delay_seconds: float, callback: Callable[[], object]) -> None:
        self._delay = delay_seconds
        self._callback = callback
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._timer: threading.Timer | None = None
        self._generation = 0
        self._running = False
        self._last_result: object = None

    @property
    def armed(self) -> bool:
        with self._lock:
            return self._timer is not None

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    def arm(self) -> None:
        """Cancel any pending timer and start a fresh one."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            timer = threading.Timer(self._delay, self._on_timer, args=(self._generation,))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel(self) -> bool:
        """Cancel the pending timer; return True when one was armed."""
        with self._lock:
            return self._cancel_locked()

    def fire(self) -> object:
        """Run the callback now if armed, else wait out a timer run in flight.

        Returns the callback's result, or None when nothing was pending.
        """
        with self._idle:
            if not self._cancel_locked():
                if not self._running:
                    return None
                self._idle.wait_for(lambda: not self._running)
                return self._last_result
        return self._callback()

    def _cancel_locked(self) -> bool:
        if self._timer is None:
            return False
        self._timer.cancel()
        self._timer = None
        self._generation += 1
        return True

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            # A re-arm or cancel between expiry and here supersedes this run.
            if generation != self._generation or self._timer is None:
                return
            self._timer = None
            self._running = True
        result: object = None
        try:
            result = self._callback()
        finally:
            with self._idle:
                self._running = False
                self._last_result = result
                self._idle.notify_all()


class Scheduler:
    """Coalesce bursts of change notifications into one scan pass."""

    def __init__(
        self,
        target: ScanTarget,
        is_eligible: Callable[[str], bool],
        delay_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self._target = target
        self._is_eligible = is_eligible
        self._lock = threading.Lock()
        self._paths: set[str] = set()
        self._full = False
        self._closed = False
        self._pending = PendingScan(delay_seconds, self._run_pending)

    @property
    def pending(self) -> bool:
        return self._pending.armed

    def notify(self, changed: str | Iterable[str]) -> bool:
        """Record changed paths and restart the debounce timer.

        Returns False when no path was eligible and nothing was scheduled.
        """
        paths = [changed] if isinstance(changed, str) else list(changed)
        eligible = [path for path in paths if self._safe_is_eligible(path)]
        if not eligible:
            return False
        with self._lock:
            if self._closed:
                return False
            self._paths.update(eligible)
            self._pending.arm()
        return True

    def notify_all(self) -> bool:
        """Schedule a whole-workspace scan."""
        with self._lock:
            if self._closed:
                return False
            self._full = True
            self._pending.arm()
        return True

    def flush(self) -> ScanReport | None:
        """Run a pending scan synchronously, if any.

        A debounced pass that already started on the timer thread is waited for
        and its report returned.
        """
        result = self._pending.fire()
        if isinstance(result, ScanReport):
            return result
        return None

    def cancel(self) -> bool:
        """Drop the pending scan and its accumulated change set."""
        with self._lock:
            self._paths.clear()
            self._full = False
            return self._pending.cancel()

    def close(self) -> None:
        """Cancel pending work and ignore later notifications."""
        with self._lock:
            self._closed = True
        self.cancel()

    def _run_pending(self) -> object:
        with self._lock:
            paths = sorted(self._paths)
            full = self._full
            self._paths.clear()
            self._full = False
        if full or len(paths) != 1:
            logger.debug("Debounced workspace scan for %d changed paths", len(paths))
            return self._target.scan_all(wait=True)
        logger.debug("Debounced single-file scan for %s", paths[0])
        return self._target.scan_file(paths[0], wait=True)

    def _safe_is_eligible(self, path: str) -> bool:
        try:
            return self._is_eligible(path)
        except Exception as error:
            logger.warning("Could not check eligibility of %s: %s", path, error)
            return False
