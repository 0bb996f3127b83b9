"""Shared fakes and builders for eck-config-sync tests."""

from __future__ import annotations

import json
from typing import Any

import pytest

from eck_config_sync.connections.registry import ClusterConnection
from eck_config_sync.connections.transport import ClusterResponse
from eck_config_sync.errors import ClusterConnectionError
from eck_config_sync.models import Dialect, ResourceKind, SyncRecord


class FakeClusterClient:
    """Records every request and answers from a route table.

    Routes map ``(method, path)`` to a response or to a list of responses
    consumed in order (the last one repeats). Unrouted calls answer 200.
    """

    def __init__(
        self,
        routes: dict[tuple[str, str], Any] | None = None,
        endpoint: str = "https://es.example:9200",
    ) -> None:
        self.routes = routes or {}
        self.calls: list[tuple[str, str, Any, dict[str, Any] | None]] = []
        self.endpoint = endpoint
        self.unreachable = False

    def request(
        self,
        method: str,
        path: str,
        body: Any | None = None,
        params: dict[str, Any] | None = None,
    ) -> ClusterResponse:
        self.calls.append((method, path, body, params))
        if self.unreachable:
            raise ClusterConnectionError(f"{method} {self.endpoint}{path} failed: refused")

        answer = self.routes.get((method, path), (200, {"acknowledged": True}))
        if isinstance(answer, list):
            answer = answer.pop(0) if len(answer) > 1 else answer[0]
        status, payload = answer
        body_bytes = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
        return ClusterResponse(method, path, status, body_bytes)

    def paths(self, method: str | None = None) -> list[str]:
        return [path for m, path, _, _ in self.calls if method is None or m == method]


def make_connection(
    client: FakeClusterClient | None = None,
    dialect: Dialect = Dialect.ELASTICSEARCH,
    key: str = "default_logging",
) -> ClusterConnection:
    return ClusterConnection(
        key=key,
        endpoint="https://es.example:9200",
        username="elastic",
        dialect=dialect,
        version="8.11.0",
        client=client or FakeClusterClient(),
    )


def make_record(
    kind: ResourceKind = ResourceKind.INDEX_TEMPLATE,
    resources: dict[str, Any] | None = None,
    applied: list[str] | None = None,
    name: str = "logs",
    namespace: str = "default",
    selector: dict[str, Any] | None = None,
    interval: str = "10s",
    **metadata: Any,
) -> SyncRecord:
    obj: dict[str, Any] = {
        "metadata": {
            "name": name,
            "namespace": namespace,
            "generation": 1,
            **metadata,
        },
        "spec": {
            "resourceSelector": selector or {"name": "logging"},
            "syncInterval": interval,
            "resources": resources if resources is not None else {},
        },
    }
    if applied is not None:
        obj["status"] = {"appliedResources": applied}
    return SyncRecord.from_object(kind, obj)


class FakeRegistry:
    """Registry stand-in handing out one fixed connection (or an error)."""

    def __init__(
        self,
        connection: ClusterConnection | None = None,
        error: Exception | None = None,
    ) -> None:
        self.connection = connection or make_connection()
        self.error = error
        self.requests: list[str] = []

    def get_or_create(self, key: str, selector: Any, record_namespace: str) -> ClusterConnection:
        self.requests.append(key)
        if self.error is not None:
            raise self.error
        return self.connection


@pytest.fixture()
def fake_client() -> FakeClusterClient:
    return FakeClusterClient()


@pytest.fixture()
def es_connection(fake_client: FakeClusterClient) -> ClusterConnection:
    return make_connection(fake_client, Dialect.ELASTICSEARCH)


@pytest.fixture()
def os_connection(fake_client: FakeClusterClient) -> ClusterConnection:
    return make_connection(fake_client, Dialect.OPENSEARCH)
