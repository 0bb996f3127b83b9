"""Worker pool and periodic resync for sync records.

Records are reconciled by a bounded thread pool. A record is never
reconciled by two workers at once: a trigger that arrives while an
attempt for the same record is in flight is merged into one follow-up
run. After each attempt the record is re-scheduled after its resync
interval with a ``threading.Timer``; a deletion event cancels the
pending resync, and a finalized record is forgotten.

The reconciler is the only writer of record status, so the status of the
last finished attempt is carried into every later snapshot of the same
record. A watch snapshot taken before that attempt wrote its status would
otherwise diff against a stale ``appliedResources``.

Usage::

    scheduler = SyncScheduler(reconciler, workers=4)
    scheduler.submit(record, EventKind.CREATED)
    ...
    scheduler.shutdown()
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from eck_config_sync.models import (
    DEFAULT_RESYNC_INTERVAL,
    EventKind,
    RecordStatus,
    SyncRecord,
    SyncResult,
    parse_duration,
)
from eck_config_sync.reconciler import Reconciler

logger = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[..., Any], tuple[Any, ...]], Any]


def _start_timer(delay: float, fn: Callable[..., Any], args: tuple[Any, ...]) -> threading.Timer:
    timer = threading.Timer(delay, fn, args=args)
    timer.daemon = True
    timer.start()
    return timer


class SyncScheduler:
    """Serializes and schedules reconciliation per record key.

    Thread-safe via a single lock on all bookkeeping; the reconciliation
    itself runs outside the lock.
    """

    def __init__(
        self,
        reconciler: Reconciler,
        workers: int = 4,
        retry_interval: str = DEFAULT_RESYNC_INTERVAL,
        _timer_factory: TimerFactory | None = None,
    ) -> None:
        self._reconciler = reconciler
        self._executor = ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="eck-sync",
        )
        self._retry_delay = parse_duration(retry_interval).total_seconds()
        self._start_timer = _timer_factory or _start_timer
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._records: dict[str, tuple[SyncRecord, EventKind]] = {}
        self._statuses: dict[str, RecordStatus] = {}
        self._in_flight: set[str] = set()
        self._dirty: set[str] = set()
        self._timers: dict[str, Any] = {}
        self._closed = False

    def submit(self, record: SyncRecord, event: EventKind) -> None:
        """Queue a reconciliation of *record* for *event*."""
        key = record.key
        with self._lock:
            if self._closed:
                logger.debug("Scheduler closed, dropping %s event for %s", event, key)
                return
            self._records[key] = (record, event)
            if event == EventKind.DELETED or record.deleting:
                self._cancel_timer_locked(key)
            self._enqueue_locked(key)

    def forget(self, key: str) -> None:
        """Drop a record that no longer exists and stop its resyncs."""
        with self._lock:
            self._records.pop(key, None)
            self._statuses.pop(key, None)
            self._cancel_timer_locked(key)

    def scheduled(self) -> list[str]:
        """Keys with a pending resync timer."""
        with self._lock:
            return list(self._timers)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no attempt is in flight. Returns ``False`` on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: not self._in_flight, timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
            for key in list(self._timers):
                self._cancel_timer_locked(key)
        self._executor.shutdown(wait=wait)

    # --- Private ---

    def _enqueue_locked(self, key: str) -> None:
        if key in self._in_flight:
            logger.debug("Attempt for %s in flight, merging trigger", key)
            self._dirty.add(key)
            return
        self._in_flight.add(key)
        self._executor.submit(self._run, key)

    def _trigger(self, key: str) -> None:
        with self._lock:
            self._timers.pop(key, None)
            if self._closed or key not in self._records:
                return
            self._enqueue_locked(key)

    def _run(self, key: str) -> None:
        while True:
            with self._lock:
                entry = self._records.get(key)
                if entry is None:
                    self._finish_locked(key)
                    return
                last_status = self._statuses.get(key)
            record, event = entry
            if last_status is not None and record.status is not last_status:
                record.status = last_status.model_copy(deep=True)

            result: SyncResult | None = None
            try:
                result = self._reconciler.reconcile(record, event)
            except Exception:
                logger.exception("Unexpected error while reconciling %s", key)

            with self._lock:
                self._after_attempt_locked(key, record, result)
                if key in self._dirty and not self._closed:
                    self._dirty.discard(key)
                    continue
                self._finish_locked(key)
                return

    def _after_attempt_locked(
        self, key: str, record: SyncRecord, result: SyncResult | None,
    ) -> None:
        self._statuses[key] = record.status
        if result is not None and result.finalized:
            current = self._records.get(key)
            if current is not None and current[0] is record:
                del self._records[key]
            self._statuses.pop(key, None)
            self._cancel_timer_locked(key)
            return
        if self._closed:
            return
        delay = self._retry_delay
        if result is not None and result.requeue_after is not None:
            delay = result.requeue_after
        self._cancel_timer_locked(key)
        self._timers[key] = self._start_timer(delay, self._trigger, (key,))
        logger.debug("Next sync of %s in %.1fs", key, delay)

    def _finish_locked(self, key: str) -> None:
        self._dirty.discard(key)
        self._in_flight.discard(key)
        self._idle.notify_all()

    def _cancel_timer_locked(self, key: str) -> None:
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()
