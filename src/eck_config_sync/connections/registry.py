"""Connection registry — one reusable client per target cluster.

Resolves credentials, builds the TLS context and HTTP client, and detects
the cluster dialect on first use of a cluster key. The result is cached
for the lifetime of the registry (or until ``delete()``).

Thread-safe: lookups share a reader lock, inserts take the writer lock,
and construction for a given key is serialized by a per-key lock so
concurrent workers never probe the same cluster twice. Nothing is cached
when construction fails.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from eck_config_sync.connections.detector import detect
from eck_config_sync.connections.resolver import CredentialResolver
from eck_config_sync.connections.transport import ClusterClient, build_ssl_context
from eck_config_sync.errors import ClusterConnectionError, SyncError
from eck_config_sync.models import ClusterSelector, Dialect

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., ClusterClient]
Detector = Callable[..., tuple[Dialect, str]]


@dataclass(frozen=True)
class ClusterConnection:
    """An established, immutable connection to one cluster."""

    key: str
    endpoint: str
    username: str
    dialect: Dialect
    version: str
    client: ClusterClient = field(repr=False)
    password: str = field(default="", repr=False)
    ca_cert: bytes = field(default=b"", repr=False)


class ReadWriteLock:
    """Many concurrent readers or one writer; writers are not starved."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()


class ConnectionRegistry:
    """Cache of :class:`ClusterConnection` objects keyed by cluster key."""

    def __init__(
        self,
        resolver: CredentialResolver,
        request_timeout: float = 10.0,
        insecure_fallback: bool = True,
        client_factory: ClientFactory = ClusterClient,
        detector: Detector = detect,
    ) -> None:
        self._resolver = resolver
        self._request_timeout = request_timeout
        self._insecure_fallback = insecure_fallback
        self._client_factory = client_factory
        self._detector = detector
        self._rw = ReadWriteLock()
        self._store: dict[str, ClusterConnection] = {}
        self._creation_guard = threading.Lock()
        self._creation_locks: dict[str, threading.Lock] = {}

    def get(self, key: str) -> ClusterConnection | None:
        self._rw.acquire_read()
        try:
            return self._store.get(key)
        finally:
            self._rw.release_read()

    def get_or_create(
        self,
        key: str,
        selector: ClusterSelector,
        record_namespace: str,
    ) -> ClusterConnection:
        """Return the cached connection for *key*, creating it if needed.

        Raises:
            ClusterConnectionError: If resolving, connecting or detecting
                fails. The underlying error is chained as ``__cause__``.
        """
        connection = self.get(key)
        if connection is not None:
            logger.debug("Using existing connection for cluster %s", key)
            return connection

        with self._creation_guard:
            key_lock = self._creation_locks.setdefault(key, threading.Lock())

        with key_lock:
            connection = self.get(key)
            if connection is not None:
                return connection

            logger.info("Creating new connection for cluster %s", key)
            try:
                connection = self._connect(key, selector, record_namespace)
            except SyncError as exc:
                raise ClusterConnectionError(
                    f"failed to connect to cluster {key}: {exc}"
                ) from exc

            self._rw.acquire_write()
            try:
                self._store[key] = connection
            finally:
                self._rw.release_write()

        return connection

    def delete(self, key: str) -> None:
        self._rw.acquire_write()
        try:
            self._store.pop(key, None)
        finally:
            self._rw.release_write()
        with self._creation_guard:
            self._creation_locks.pop(key, None)

    def keys(self) -> list[str]:
        self._rw.acquire_read()
        try:
            return list(self._store)
        finally:
            self._rw.release_read()

    # --- Private ---

    def _connect(
        self,
        key: str,
        selector: ClusterSelector,
        record_namespace: str,
    ) -> ClusterConnection:
        credentials = self._resolver.resolve(selector, record_namespace)
        ssl_context = build_ssl_context(credentials.ca_cert, self._insecure_fallback)
        client = self._client_factory(
            credentials.endpoint,
            credentials.username,
            credentials.password,
            ssl_context=ssl_context,
            timeout=self._request_timeout,
        )
        dialect, version = self._detector(client, selector.dialect_override)
        logger.info(
            "Connected to cluster %s at %s (type: %s, version: %s)",
            key, credentials.endpoint, dialect, version,
        )
        return ClusterConnection(
            key=key,
            endpoint=credentials.endpoint,
            username=credentials.username,
            dialect=dialect,
            version=version,
            client=client,
            password=credentials.password,
            ca_cert=credentials.ca_cert,
        )
