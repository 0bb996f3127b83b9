"""Cluster connections: credential resolution, transport, dialect detection, registry."""

from eck_config_sync.connections.detector import detect
from eck_config_sync.connections.registry import ClusterConnection, ConnectionRegistry
from eck_config_sync.connections.resolver import CredentialResolver
from eck_config_sync.connections.stores import (
    ClusterDirectory,
    SecretStore,
    StaticClusterDirectory,
    StaticSecretStore,
)
from eck_config_sync.connections.transport import (
    ClusterClient,
    ClusterResponse,
    build_ssl_context,
)

__all__ = [
    "ClusterClient",
    "ClusterConnection",
    "ClusterDirectory",
    "ClusterResponse",
    "ConnectionRegistry",
    "CredentialResolver",
    "SecretStore",
    "StaticClusterDirectory",
    "StaticSecretStore",
    "build_ssl_context",
    "detect",
]
