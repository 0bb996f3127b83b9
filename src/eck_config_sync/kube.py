"""Kubernetes-backed collaborators.

Uses the official ``kubernetes`` Python client library. Provides:

- ``KubeSecretStore``: reads keys out of core/v1 Secrets
- ``KubeClusterDirectory``: checks that a managed Elasticsearch resource exists
- ``KubeRecordStore``: patches record status, manages the finalizer
- ``RecordWatcher``: turns custom-object watch streams into scheduler submissions

Supports kubeconfig file, context selection, or in-cluster config.
"""

from __future__ import annotations

import base64
import logging
import threading
from dataclasses import dataclass
from typing import Any

from kubernetes import client, config, watch
from kubernetes.client.exceptions import ApiException
from pydantic import ValidationError

from eck_config_sync.errors import DependencyError, NotFoundError
from eck_config_sync.models import EventKind, Phase, ResourceKind, SyncRecord
from eck_config_sync.scheduler import SyncScheduler

logger = logging.getLogger(__name__)

FINALIZER = "eck-config-operator.freepik.com/finalizer"

MANAGED_CLUSTER_GROUP = "elasticsearch.k8s.elastic.co"
MANAGED_CLUSTER_VERSION = "v1"
MANAGED_CLUSTER_PLURAL = "elasticsearches"

PLURALS: dict[ResourceKind, str] = {
    ResourceKind.INDEX_TEMPLATE: "indextemplates",
    ResourceKind.INDEX_LIFECYCLE_POLICY: "indexlifecyclepolicies",
    ResourceKind.INDEX_STATE_MANAGEMENT: "indexstatemanagements",
    ResourceKind.SNAPSHOT_REPOSITORY: "snapshotrepositories",
    ResourceKind.SNAPSHOT_LIFECYCLE_POLICY: "snapshotlifecyclepolicies",
    ResourceKind.CLUSTER_SETTINGS: "clustersettings",
}


def build_api_client(
    kubeconfig: str | None = None,
    context: str | None = None,
    in_cluster: bool = False,
) -> client.ApiClient:
    """Build a kubernetes ApiClient from in-cluster config or a kubeconfig."""
    if in_cluster:
        config.load_incluster_config()
        return client.ApiClient()

    kwargs: dict[str, Any] = {}
    if kubeconfig:
        kwargs["config_file"] = kubeconfig
    if context:
        kwargs["context"] = context
    config.load_kube_config(**kwargs)
    return client.ApiClient()


class KubeSecretStore:
    """Secret store backed by core/v1 Secrets."""

    def __init__(self, core_api: client.CoreV1Api) -> None:
        self._core = core_api

    def get(self, namespace: str, name: str, key: str) -> bytes:
        try:
            secret = self._core.read_namespaced_secret(name=name, namespace=namespace)
        except ApiException as exc:
            if exc.status == 404:
                raise NotFoundError(f"secret {namespace}/{name} not found") from exc
            raise DependencyError(
                f"failed to read secret {namespace}/{name}: "
                f"K8s API error ({exc.status}): {exc.reason}"
            ) from exc

        value = (secret.data or {}).get(key)
        if not value:
            return b""
        return base64.b64decode(value)


class KubeClusterDirectory:
    """Looks up managed Elasticsearch resources."""

    def __init__(self, custom_api: client.CustomObjectsApi) -> None:
        self._custom = custom_api

    def exists(self, namespace: str, name: str) -> bool:
        try:
            self._custom.get_namespaced_custom_object(
                group=MANAGED_CLUSTER_GROUP,
                version=MANAGED_CLUSTER_VERSION,
                namespace=namespace,
                plural=MANAGED_CLUSTER_PLURAL,
                name=name,
            )
        except ApiException as exc:
            if exc.status == 404:
                return False
            raise DependencyError(
                f"failed to get managed cluster {namespace}/{name}: "
                f"K8s API error ({exc.status}): {exc.reason}"
            ) from exc
        return True


class KubeRecordStore:
    """Persists record status and finalizers as custom-object patches."""

    def __init__(
        self,
        custom_api: client.CustomObjectsApi,
        group: str,
        version: str,
    ) -> None:
        self._custom = custom_api
        self._group = group
        self._version = version

    def update_status(self, record: SyncRecord) -> None:
        try:
            self._custom.patch_namespaced_custom_object_status(
                group=self._group,
                version=self._version,
                namespace=record.namespace,
                plural=PLURALS[record.kind],
                name=record.name,
                body={"status": record.status_payload()},
            )
        except ApiException as exc:
            if exc.status == 404:
                logger.debug("Record %s is gone, status not written", record.key)
                return
            raise

    def ensure_finalizer(self, record: SyncRecord) -> None:
        if FINALIZER in record.finalizers:
            return
        self._patch_finalizers(record, [*record.finalizers, FINALIZER])

    def finalize(self, record: SyncRecord) -> None:
        if FINALIZER not in record.finalizers:
            return
        self._patch_finalizers(record, [f for f in record.finalizers if f != FINALIZER])

    def mark_invalid(
        self, kind: ResourceKind, namespace: str, name: str, message: str,
    ) -> None:
        """Flag a record that cannot be parsed. Other status fields are left alone."""
        try:
            self._custom.patch_namespaced_custom_object_status(
                group=self._group,
                version=self._version,
                namespace=namespace,
                plural=PLURALS[kind],
                name=name,
                body={"status": {"phase": str(Phase.ERROR), "message": message}},
            )
        except ApiException as exc:
            if exc.status == 404:
                return
            raise

    def _patch_finalizers(self, record: SyncRecord, finalizers: list[str]) -> None:
        try:
            self._custom.patch_namespaced_custom_object(
                group=self._group,
                version=self._version,
                namespace=record.namespace,
                plural=PLURALS[record.kind],
                name=record.name,
                body={"metadata": {"finalizers": finalizers}},
            )
        except ApiException as exc:
            if exc.status == 404:
                logger.debug("Record %s is gone, finalizers not updated", record.key)
                return
            raise
        record.finalizers = finalizers


@dataclass(frozen=True)
class WatchEvent:
    """A record change as seen by the watch stream."""

    kind: EventKind
    record: SyncRecord
    purged: bool = False


def translate_event(kind: ResourceKind, raw: dict[str, Any]) -> WatchEvent:
    """Map a raw watch event (ADDED/MODIFIED/DELETED) to a :class:`WatchEvent`."""
    record = SyncRecord.from_object(kind, raw["object"])
    event_type = raw["type"]
    if event_type == "DELETED":
        return WatchEvent(EventKind.DELETED, record, purged=True)
    if record.deleting:
        return WatchEvent(EventKind.DELETED, record)
    if event_type == "ADDED":
        return WatchEvent(EventKind.CREATED, record)
    return WatchEvent(EventKind.MODIFIED, record)


class RecordWatcher:
    """Feeds record changes for every kind into a :class:`SyncScheduler`.

    Only spec changes (a new ``metadata.generation``) and deletions are
    forwarded; the status patches the reconciler writes are ignored.
    A record that fails validation is never submitted; its status is set
    to Error once per generation and the watch carries on.
    """

    def __init__(
        self,
        store: KubeRecordStore,
        scheduler: SyncScheduler,
        custom_api: client.CustomObjectsApi,
        group: str,
        version: str,
        namespace: str | None = None,
        kinds: list[ResourceKind] | None = None,
        watch_timeout: int = 300,
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self._custom = custom_api
        self._group = group
        self._version = version
        self._namespace = namespace
        self._kinds = kinds or list(ResourceKind)
        self._watch_timeout = watch_timeout
        self._lock = threading.Lock()
        self._generations: dict[str, int] = {}
        self._deleting: set[str] = set()
        self._invalid: dict[str, int] = {}
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    def start(self) -> None:
        for kind in self._kinds:
            thread = threading.Thread(
                target=self._watch_kind, args=(kind,),
                name=f"watch-{kind}", daemon=True,
            )
            thread.start()
            self._threads.append(thread)

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout)

    def handle(self, event: WatchEvent) -> None:
        """Forward one event to the scheduler, dropping status-only updates."""
        record = event.record
        key = record.key

        if event.purged:
            with self._lock:
                self._generations.pop(key, None)
                self._deleting.discard(key)
            self._scheduler.forget(key)
            return

        if event.kind == EventKind.DELETED:
            if FINALIZER not in record.finalizers:
                return
            # Retries of a failed deletion are driven by the scheduler.
            with self._lock:
                if key in self._deleting:
                    return
                self._deleting.add(key)
        else:
            with self._lock:
                if self._generations.get(key) == record.generation:
                    return
                self._generations[key] = record.generation
            self._store.ensure_finalizer(record)

        self._scheduler.submit(record, event.kind)

    def process(self, kind: ResourceKind, raw: dict[str, Any]) -> None:
        """Translate and handle one raw watch event."""
        try:
            event = translate_event(kind, raw)
        except ValidationError as exc:
            self._reject(kind, raw, exc)
            return
        with self._lock:
            self._invalid.pop(event.record.key, None)
        self.handle(event)

    def _reject(
        self, kind: ResourceKind, raw: dict[str, Any], exc: ValidationError,
    ) -> None:
        metadata = (raw.get("object") or {}).get("metadata") or {}
        namespace = metadata.get("namespace", "")
        name = metadata.get("name", "")
        key = f"{kind}/{namespace}/{name}"
        generation = int(metadata.get("generation") or 0)

        with self._lock:
            if raw.get("type") == "DELETED":
                self._invalid.pop(key, None)
                return
            # Writing the status triggers a MODIFIED event of the same generation.
            if self._invalid.get(key) == generation:
                return
            self._invalid[key] = generation
            self._generations.pop(key, None)
        # Stop resyncing the last valid spec so the Error status stays put.
        self._scheduler.forget(key)

        logger.warning("Ignoring invalid record %s: %s", key, exc)
        try:
            self._store.mark_invalid(kind, namespace, name, f"invalid record: {exc}")
        except ApiException as api_exc:
            logger.warning(
                "Failed to write status of %s: K8s API error (%s): %s",
                key, api_exc.status, api_exc.reason,
            )

    def _watch_kind(self, kind: ResourceKind) -> None:
        plural = PLURALS[kind]
        while not self._stop.is_set():
            w = watch.Watch()
            try:
                if self._namespace:
                    stream = w.stream(
                        self._custom.list_namespaced_custom_object,
                        self._group, self._version, self._namespace, plural,
                        timeout_seconds=self._watch_timeout,
                    )
                else:
                    stream = w.stream(
                        self._custom.list_cluster_custom_object,
                        self._group, self._version, plural,
                        timeout_seconds=self._watch_timeout,
                    )
                for raw in stream:
                    if self._stop.is_set():
                        w.stop()
                        break
                    self.process(kind, raw)
            except ApiException as exc:
                logger.warning(
                    "Watch for %s failed: K8s API error (%s): %s",
                    plural, exc.status, exc.reason,
                )
                self._stop.wait(5.0)
            except Exception:
                logger.exception("Watch for %s crashed, restarting", plural)
                self._stop.wait(5.0)
