"""eck-config-sync: keeps Elasticsearch and OpenSearch configuration in sync with declared records."""

__version__ = "0.1.0"

from eck_config_sync.adapters import ADAPTERS, Adapter, get_adapter
from eck_config_sync.config import SyncConfig, find_config, load_config
from eck_config_sync.connections.registry import ClusterConnection, ConnectionRegistry
from eck_config_sync.connections.resolver import CredentialResolver
from eck_config_sync.errors import (
    ClusterConnectionError,
    ConfigurationError,
    DependencyError,
    DetectionError,
    DialectMismatchError,
    DurationError,
    NotFoundError,
    RemoteAPIError,
    SyncError,
)
from eck_config_sync.models import (
    ClusterCredentials,
    ClusterSelector,
    Dialect,
    EventKind,
    Phase,
    ResourceKind,
    SyncRecord,
    SyncResult,
    parse_duration,
)
from eck_config_sync.reconciler import Reconciler
from eck_config_sync.scheduler import SyncScheduler
from eck_config_sync.store import InMemoryRecordStore, RecordStore

__all__ = [
    "ADAPTERS",
    "Adapter",
    "ClusterConnection",
    "ClusterConnectionError",
    "ClusterCredentials",
    "ClusterSelector",
    "ConfigurationError",
    "ConnectionRegistry",
    "CredentialResolver",
    "DependencyError",
    "DetectionError",
    "Dialect",
    "DialectMismatchError",
    "DurationError",
    "EventKind",
    "find_config",
    "get_adapter",
    "InMemoryRecordStore",
    "load_config",
    "NotFoundError",
    "parse_duration",
    "Phase",
    "Reconciler",
    "RecordStore",
    "RemoteAPIError",
    "ResourceKind",
    "SyncConfig",
    "SyncError",
    "SyncRecord",
    "SyncResult",
    "SyncScheduler",
    "__version__",
]
