"""Read-only collaborators the credential resolver depends on.

Defines the interfaces for secret lookup and managed-cluster discovery.
Kubernetes-backed implementations live in :mod:`eck_config_sync.kube`;
the static implementations here are for local development and tests.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from eck_config_sync.errors import NotFoundError


@runtime_checkable
class SecretStore(Protocol):
    """Protocol for secret lookups.

    Any object with a ``get()`` method satisfies this protocol.
    """

    def get(self, namespace: str, name: str, key: str) -> bytes:
        """Return the raw value of *key* in secret *namespace/name*.

        Returns ``b""`` when the secret exists but has no such key.

        Raises:
            NotFoundError: If the secret does not exist.
        """
        ...


@runtime_checkable
class ClusterDirectory(Protocol):
    """Protocol for discovering auto-managed clusters."""

    def exists(self, namespace: str, name: str) -> bool:
        """Whether the managed cluster *namespace/name* exists."""
        ...


class StaticSecretStore:
    """Secret store backed by a nested dict: ``{(namespace, name): {key: value}}``."""

    def __init__(
        self,
        secrets: dict[tuple[str, str], dict[str, bytes | str]] | None = None,
    ) -> None:
        self._secrets = secrets or {}

    def get(self, namespace: str, name: str, key: str) -> bytes:
        data = self._secrets.get((namespace, name))
        if data is None:
            raise NotFoundError(f"secret {namespace}/{name} not found")
        value = data.get(key, b"")
        if isinstance(value, str):
            return value.encode("utf-8")
        return value


class StaticClusterDirectory:
    """Cluster directory backed by a set of ``(namespace, name)`` pairs."""

    def __init__(self, clusters: set[tuple[str, str]] | None = None) -> None:
        self._clusters = clusters or set()

    def exists(self, namespace: str, name: str) -> bool:
        return (namespace, name) in self._clusters
