"""Adapters for kinds addressed by a single flat name.

Each kind maps to one REST path template. ``apply`` is a PUT of the body
(optionally wrapped in an envelope), ``delete`` is a DELETE where 404
counts as success.
"""

from __future__ import annotations

import logging
import urllib.parse
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from eck_config_sync.errors import DialectMismatchError, RemoteAPIError
from eck_config_sync.models import Dialect, ResourceKind

if TYPE_CHECKING:
    from eck_config_sync.connections.registry import ClusterConnection
    from eck_config_sync.models import SyncRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlatEndpoint:
    """Maps a resource kind to its REST endpoint."""

    path: str
    noun: str
    label: str
    envelope: str = ""
    dialect: Dialect | None = None
    versioned_update: bool = False


FLAT_ENDPOINTS: dict[ResourceKind, FlatEndpoint] = {
    ResourceKind.INDEX_TEMPLATE: FlatEndpoint(
        path="/_index_template/{name}",
        noun="index templates",
        label="index template",
    ),
    ResourceKind.INDEX_LIFECYCLE_POLICY: FlatEndpoint(
        path="/_ilm/policy/{name}",
        noun="policies",
        label="ILM policy",
    ),
    ResourceKind.INDEX_STATE_MANAGEMENT: FlatEndpoint(
        path="/_plugins/_ism/policies/{name}",
        noun="policies",
        label="ISM policy",
        envelope="policy",
        dialect=Dialect.OPENSEARCH,
        versioned_update=True,
    ),
    ResourceKind.SNAPSHOT_REPOSITORY: FlatEndpoint(
        path="/_snapshot/{name}",
        noun="repositories",
        label="snapshot repository",
    ),
    ResourceKind.SNAPSHOT_LIFECYCLE_POLICY: FlatEndpoint(
        path="/_slm/policy/{name}",
        noun="policies",
        label="snapshot lifecycle policy",
    ),
}


class FlatResourceAdapter:
    """Adapter driven by a :class:`FlatEndpoint` mapping."""

    def __init__(self, kind: ResourceKind, endpoint: FlatEndpoint) -> None:
        self.kind = kind
        self.endpoint = endpoint
        self.noun = endpoint.noun

    def apply(self, connection: ClusterConnection, name: str, body: Any) -> None:
        self._check_dialect(connection)

        path = self._path(name)
        payload = {self.endpoint.envelope: body} if self.endpoint.envelope else body
        logger.info("Applying %s %s on %s", self.endpoint.label, name, connection.key)

        response = connection.client.request("PUT", path, body=payload)
        if response.status == 409 and self.endpoint.versioned_update:
            response = self._versioned_put(connection, path, payload)
        response.raise_for_status()

    def delete(self, connection: ClusterConnection, name: str) -> None:
        if self.endpoint.dialect is not None and connection.dialect != self.endpoint.dialect:
            # Nothing of this kind can exist on the other dialect.
            logger.warning(
                "Skipping delete of %s %s: cluster %s is %s",
                self.endpoint.label, name, connection.key, connection.dialect,
            )
            return

        logger.info("Deleting %s %s from %s", self.endpoint.label, name, connection.key)
        response = connection.client.request("DELETE", self._path(name))
        if response.status == 404:
            logger.info(
                "%s %s not found on %s (already deleted)",
                self.endpoint.label, name, connection.key,
            )
            return
        response.raise_for_status()

    def remove(self, connection: ClusterConnection, names: list[str]) -> None:
        for name in names:
            self.delete(connection, name)

    def tracked_names(self, resources: dict[str, Any]) -> list[str]:
        return list(resources)

    def deletion_names(self, record: SyncRecord) -> list[str]:
        return list(record.spec.resources)

    # --- Private ---

    def _path(self, name: str) -> str:
        return self.endpoint.path.format(name=urllib.parse.quote(name, safe=""))

    def _check_dialect(self, connection: ClusterConnection) -> None:
        required = self.endpoint.dialect
        if required is not None and connection.dialect != required:
            raise DialectMismatchError(
                f"{self.endpoint.label} is only available on {required}, "
                f"but cluster {connection.key} is {connection.dialect}"
            )

    def _versioned_put(
        self, connection: ClusterConnection, path: str, payload: Any,
    ) -> Any:
        """Replace an existing object using its sequence number and primary term."""
        current = connection.client.request("GET", path)
        current.raise_for_status()
        try:
            doc = current.json()
            params = {
                "if_seq_no": doc["_seq_no"],
                "if_primary_term": doc["_primary_term"],
            }
        except (ValueError, KeyError, TypeError) as exc:
            raise RemoteAPIError("GET", path, current.status, current.text) from exc

        logger.debug("Updating existing %s at %s with %s", self.endpoint.label, path, params)
        return connection.client.request("PUT", path, body=payload, params=params)
