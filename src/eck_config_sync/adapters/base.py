"""Adapter protocol for configuration kinds.

An adapter knows how to push and remove one kind of named configuration
object on a cluster. Any object with the methods below satisfies the
protocol. No inheritance required.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from eck_config_sync.connections.registry import ClusterConnection
    from eck_config_sync.models import SyncRecord


@runtime_checkable
class Adapter(Protocol):
    """Protocol for kind adapters.

    ``apply`` must be create-or-replace: applying the same body twice
    converges to the same remote state. ``delete`` treats "not found" as
    success.
    """

    noun: str

    def apply(self, connection: ClusterConnection, name: str, body: Any) -> None:
        """Create or replace object *name* with *body*."""
        ...

    def delete(self, connection: ClusterConnection, name: str) -> None:
        """Remove the tracked unit *name*."""
        ...

    def remove(self, connection: ClusterConnection, names: list[str]) -> None:
        """Remove several tracked units (may batch calls)."""
        ...

    def tracked_names(self, resources: dict[str, Any]) -> list[str]:
        """Units recorded in ``appliedResources`` once *resources* are applied."""
        ...

    def deletion_names(self, record: SyncRecord) -> list[str]:
        """Units to remove when the whole record goes away."""
        ...
