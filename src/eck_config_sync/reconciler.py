"""Generic reconciler — drives one record toward its declared state.

The same algorithm serves every configuration kind; only the adapter
changes. A normal sync:

1. Marks the record ``Syncing``
2. Parses the resync interval (an unparseable interval fails the attempt)
3. Gets the cluster connection from the registry
4. Removes units that were applied before but are no longer declared
5. Applies every declared object (create-or-replace)
6. Records the applied units and marks the record ``Ready``

Any :class:`SyncError` aborts the attempt, marks the record ``Error``
and leaves ``appliedResources`` untouched. Removals already performed in
the failed attempt are not re-recorded; the next successful attempt
converges again.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from eck_config_sync.adapters import ADAPTERS, Adapter
from eck_config_sync.connections.registry import ConnectionRegistry
from eck_config_sync.errors import DurationError, SyncError
from eck_config_sync.models import (
    DEFAULT_RESYNC_INTERVAL,
    Condition,
    EventKind,
    Phase,
    ResourceKind,
    SyncRecord,
    SyncResult,
    parse_duration,
)
from eck_config_sync.store import RecordStore

logger = logging.getLogger(__name__)

CONDITION_SYNCED = "ResourceSynced"
REASON_SYNCED = "TargetSynced"
REASON_FAILED = "SyncFailed"


def update_condition(
    conditions: list[Condition],
    condition: Condition,
) -> list[Condition]:
    """Replace the condition of the same type, keeping its transition time if unchanged."""
    result: list[Condition] = []
    replaced = False
    for existing in conditions:
        if existing.type != condition.type:
            result.append(existing)
            continue
        if existing.status == condition.status and existing.last_transition_time:
            condition = condition.model_copy(
                update={"last_transition_time": existing.last_transition_time},
            )
        result.append(condition)
        replaced = True
    if not replaced:
        result.append(condition)
    return result


class Reconciler:
    """Reconciles :class:`SyncRecord` objects against their clusters.

    Usage::

        reconciler = Reconciler(registry, store)
        result = reconciler.reconcile(record, EventKind.MODIFIED)
        if result.requeue_after is not None:
            schedule(result.requeue_after)
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        store: RecordStore,
        adapters: dict[ResourceKind, Adapter] | None = None,
        default_resync_interval: str = DEFAULT_RESYNC_INTERVAL,
        _clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self._adapters = adapters if adapters is not None else ADAPTERS
        self._default_interval = default_resync_interval
        self._clock = _clock or (lambda: datetime.now(tz=UTC))

    def reconcile(self, record: SyncRecord, event: EventKind) -> SyncResult:
        if event == EventKind.DELETED or record.deleting:
            return self.delete(record)
        return self.sync(record)

    def sync(self, record: SyncRecord) -> SyncResult:
        """Run one normal sync attempt for *record*."""
        logger.info("Syncing %s", record.key)
        self._set_syncing(record)

        try:
            interval = self._interval(record)
        except DurationError as exc:
            logger.warning("Invalid resync interval for %s: %s", record.key, exc)
            self._set_error(record, exc)
            return self._failure(record, exc, self._fallback_interval())

        try:
            applied = self._apply_desired(record)
        except SyncError as exc:
            logger.warning("Sync of %s failed: %s", record.key, exc)
            self._set_error(record, exc)
            return self._failure(record, exc, interval)

        self._set_ready(record, applied)
        logger.info("%s synced successfully (%d applied)", record.key, len(applied))
        return SyncResult(
            success=True,
            record_key=record.key,
            phase=record.status.phase,
            applied=applied,
            requeue_after=interval,
        )

    def delete(self, record: SyncRecord) -> SyncResult:
        """Remove everything *record* owns, then let the store purge it.

        On failure the record is not finalized; the caller retries later.
        """
        logger.info("Deleting %s", record.key)
        adapter = self._adapters[record.kind]
        try:
            connection = self._registry.get_or_create(
                record.cluster_key, record.spec.cluster_selector, record.namespace,
            )
            adapter.remove(connection, adapter.deletion_names(record))
        except SyncError as exc:
            logger.warning("Deletion of %s failed: %s", record.key, exc)
            self._set_error(record, exc)
            return self._failure(record, exc, self._interval_or_fallback(record))

        self._store.finalize(record)
        logger.info("%s deleted, record finalized", record.key)
        return SyncResult(
            success=True,
            record_key=record.key,
            phase=record.status.phase,
            finalized=True,
        )

    # --- Private: algorithm ---

    def _apply_desired(self, record: SyncRecord) -> list[str]:
        adapter = self._adapters[record.kind]
        connection = self._registry.get_or_create(
            record.cluster_key, record.spec.cluster_selector, record.namespace,
        )

        desired = record.spec.resources
        desired_names = adapter.tracked_names(desired)
        wanted = set(desired_names)
        to_remove = [
            name for name in record.status.applied_resources if name not in wanted
        ]

        if to_remove:
            logger.info("Removing %d objects no longer declared by %s", len(to_remove), record.key)
            adapter.remove(connection, to_remove)

        for name, body in desired.items():
            adapter.apply(connection, name, body)

        return desired_names

    def _interval(self, record: SyncRecord) -> float:
        raw = record.spec.resync_interval or self._default_interval
        seconds = parse_duration(raw).total_seconds()
        if seconds <= 0:
            raise DurationError(f"resync interval must be positive, got {raw!r}")
        return seconds

    def _fallback_interval(self) -> float:
        try:
            return parse_duration(self._default_interval).total_seconds()
        except DurationError:
            return parse_duration(DEFAULT_RESYNC_INTERVAL).total_seconds()

    def _interval_or_fallback(self, record: SyncRecord) -> float:
        try:
            return self._interval(record)
        except DurationError:
            return self._fallback_interval()

    # --- Private: status ---

    def _target_cluster(self, record: SyncRecord) -> str:
        return record.spec.cluster_selector.display_name(record.namespace)

    def _set_syncing(self, record: SyncRecord) -> None:
        record.status.phase = Phase.SYNCING
        record.status.message = "Synchronizing with cluster"
        self._store.update_status(record)

    def _set_ready(self, record: SyncRecord, applied: list[str]) -> None:
        adapter = self._adapters[record.kind]
        status = record.status
        status.phase = Phase.READY
        status.message = f"Successfully synced {len(applied)} {adapter.noun}"
        status.target_cluster = self._target_cluster(record)
        status.applied_resources = applied
        status.last_sync_time = self._clock()
        status.conditions = update_condition(
            status.conditions,
            Condition(
                type=CONDITION_SYNCED,
                status="True",
                reason=REASON_SYNCED,
                message="Target synced successfully",
                last_transition_time=status.last_sync_time,
            ),
        )
        self._store.update_status(record)

    def _set_error(self, record: SyncRecord, exc: Exception) -> None:
        status = record.status
        status.phase = Phase.ERROR
        status.message = str(exc)
        status.target_cluster = self._target_cluster(record)
        status.conditions = update_condition(
            status.conditions,
            Condition(
                type=CONDITION_SYNCED,
                status="False",
                reason=REASON_FAILED,
                message=str(exc),
                last_transition_time=self._clock(),
            ),
        )
        self._store.update_status(record)

    def _failure(
        self, record: SyncRecord, exc: Exception, requeue_after: float,
    ) -> SyncResult:
        return SyncResult(
            success=False,
            record_key=record.key,
            phase=record.status.phase,
            applied=list(record.status.applied_resources),
            error=str(exc),
            requeue_after=requeue_after,
        )
