"""Record store protocol and an in-memory implementation.

The record store is where records live: it persists the status the
reconciler writes and removes a record once its deletion sync succeeded.
The Kubernetes-backed store lives in :mod:`eck_config_sync.kube`.
"""

from __future__ import annotations

import threading
from typing import Protocol, runtime_checkable

from eck_config_sync.models import RecordStatus, SyncRecord


@runtime_checkable
class RecordStore(Protocol):
    """Protocol for record persistence backends."""

    def update_status(self, record: SyncRecord) -> None:
        """Persist ``record.status``."""
        ...

    def finalize(self, record: SyncRecord) -> None:
        """Signal that the record's remote objects are gone and it may be purged."""
        ...


class InMemoryRecordStore:
    """Record store that keeps status snapshots in memory.

    Useful for local runs and tests. Every ``update_status`` call is kept
    in ``history`` so the sequence of phases can be inspected.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.statuses: dict[str, RecordStatus] = {}
        self.history: dict[str, list[RecordStatus]] = {}
        self.finalized: list[str] = []

    def update_status(self, record: SyncRecord) -> None:
        snapshot = record.status.model_copy(deep=True)
        with self._lock:
            self.statuses[record.key] = snapshot
            self.history.setdefault(record.key, []).append(snapshot)

    def finalize(self, record: SyncRecord) -> None:
        with self._lock:
            self.finalized.append(record.key)
            self.statuses.pop(record.key, None)

    def phases(self, key: str) -> list[str]:
        with self._lock:
            return [str(status.phase) for status in self.history.get(key, [])]
