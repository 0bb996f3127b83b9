"""Core data models for eck-config-sync.

Defines the schemas for:
- Cluster selectors (which search cluster a record targets)
- Sync records (declared resources plus the status we write back)
- Resolved credentials and sync results
"""

from __future__ import annotations

import enum
import re
from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from eck_config_sync.errors import DurationError

DEFAULT_RESYNC_INTERVAL = "10s"

# --- Enums ---


class Phase(enum.StrEnum):
    PENDING = "Pending"
    SYNCING = "Syncing"
    READY = "Ready"
    ERROR = "Error"


class Dialect(enum.StrEnum):
    ELASTICSEARCH = "elasticsearch"
    OPENSEARCH = "opensearch"


class EventKind(enum.StrEnum):
    CREATED = "Created"
    MODIFIED = "Modified"
    DELETED = "Deleted"


class ResourceKind(enum.StrEnum):
    INDEX_TEMPLATE = "IndexTemplate"
    INDEX_LIFECYCLE_POLICY = "IndexLifecyclePolicy"
    INDEX_STATE_MANAGEMENT = "IndexStateManagement"
    SNAPSHOT_REPOSITORY = "SnapshotRepository"
    SNAPSHOT_LIFECYCLE_POLICY = "SnapshotLifecyclePolicy"
    CLUSTER_SETTINGS = "ClusterSettings"


class _CamelModel(BaseModel):
    """Accepts both the camelCase wire names and snake_case field names."""

    model_config = ConfigDict(populate_by_name=True)


# --- Cluster selector ---


class SecretKeySelector(_CamelModel):
    """Points at one key of a secret; namespace defaults to the target namespace."""

    name: str
    key: str
    namespace: str = ""


class ClusterSelector(_CamelModel):
    """Identifies a target cluster.

    Either ``name`` (auto-discovery of a managed cluster) or ``endpoint``
    plus credentials (manual mode). When ``endpoint`` is set the manual
    fields win and ``name`` is only used for display.
    """

    name: str = ""
    namespace: str = ""
    endpoint: str = ""
    username: str = ""
    password_secret_ref: SecretKeySelector | None = Field(
        default=None, alias="passwordSecretRef",
    )
    ca_cert_secret_ref: SecretKeySelector | None = Field(
        default=None, alias="caCertSecretRef",
    )
    dialect_override: Dialect | None = Field(default=None, alias="clusterType")

    @property
    def manual(self) -> bool:
        return bool(self.endpoint)

    def target_namespace(self, record_namespace: str) -> str:
        return self.namespace or record_namespace

    def cluster_key(self, record_namespace: str) -> str:
        """Key under which the connection registry caches this cluster."""
        namespace = self.target_namespace(record_namespace)
        if self.manual:
            return f"{namespace}_{self.endpoint}_{self.username}"
        return f"{namespace}_{self.name}"

    def display_name(self, record_namespace: str) -> str:
        return f"{self.target_namespace(record_namespace)}/{self.name or self.endpoint}"


# --- Records ---


class Condition(_CamelModel):
    type: str
    status: str
    reason: str
    message: str = ""
    last_transition_time: datetime | None = Field(
        default=None, alias="lastTransitionTime",
    )


class RecordSpec(_CamelModel):
    cluster_selector: ClusterSelector = Field(alias="resourceSelector")
    resync_interval: str = Field(
        default=DEFAULT_RESYNC_INTERVAL, alias="syncInterval",
    )
    resources: dict[str, Any] = Field(default_factory=dict)


class RecordStatus(_CamelModel):
    phase: Phase = Phase.PENDING
    message: str = ""
    target_cluster: str = Field(default="", alias="targetCluster")
    applied_resources: list[str] = Field(
        default_factory=list, alias="appliedResources",
    )
    last_sync_time: datetime | None = Field(default=None, alias="lastSyncTime")
    conditions: list[Condition] = Field(default_factory=list)


class SyncRecord(_CamelModel):
    """One declarative record: desired resources for one cluster.

    The record store owns ``spec`` and the metadata; the reconciler only
    ever writes ``status``.
    """

    kind: ResourceKind
    name: str
    namespace: str
    spec: RecordSpec
    status: RecordStatus = Field(default_factory=RecordStatus)
    finalizers: list[str] = Field(default_factory=list)
    deleting: bool = False
    generation: int = 0
    resource_version: str = ""

    @property
    def key(self) -> str:
        return f"{self.kind}/{self.namespace}/{self.name}"

    @property
    def cluster_key(self) -> str:
        return self.spec.cluster_selector.cluster_key(self.namespace)

    @classmethod
    def from_object(cls, kind: ResourceKind | str, obj: dict[str, Any]) -> SyncRecord:
        """Build a record from a custom-object dict as served by the API server."""
        metadata = obj.get("metadata") or {}
        return cls(
            kind=ResourceKind(kind),
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            spec=RecordSpec.model_validate(obj.get("spec") or {}),
            status=RecordStatus.model_validate(obj.get("status") or {}),
            finalizers=list(metadata.get("finalizers") or []),
            deleting=metadata.get("deletionTimestamp") is not None,
            generation=int(metadata.get("generation") or 0),
            resource_version=metadata.get("resourceVersion", ""),
        )

    def status_payload(self) -> dict[str, Any]:
        """The status sub-document in wire form."""
        return self.status.model_dump(mode="json", by_alias=True, exclude_none=True)


# --- Connections ---


class ClusterCredentials(BaseModel):
    """Output of the credential resolver."""

    endpoint: str
    username: str
    password: str = Field(repr=False)
    ca_cert: bytes = Field(default=b"", repr=False)


# --- Results ---


class SyncResult(BaseModel):
    """The outcome of one reconciliation attempt."""

    success: bool
    record_key: str
    phase: Phase
    applied: list[str] = Field(default_factory=list)
    error: str | None = None
    requeue_after: float | None = None
    finalized: bool = False


# --- Durations ---

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: str) -> timedelta:
    """Parse a duration string such as ``"30s"``, ``"5m"`` or ``"1h30m"``.

    Raises:
        DurationError: If the string is empty or not made of number+unit parts.
    """
    text = value.strip()
    if not text:
        raise DurationError(f"invalid duration: {value!r}")
    if text == "0":
        return timedelta(0)

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            raise DurationError(f"invalid duration: {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text) or pos == 0:
        raise DurationError(f"invalid duration: {value!r}")
    return timedelta(seconds=total)
