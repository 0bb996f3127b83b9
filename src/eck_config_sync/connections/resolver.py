"""Credential resolver — turns a cluster selector into connection material.

The resolver:
1. Picks manual or auto-discovery mode from the selector
2. Defaults every namespace to the record's namespace
3. Reads passwords and CA bundles from the secret store
4. Returns ClusterCredentials (endpoint, username, password, CA PEM)

The resolver performs read-only lookups only. It never builds a client
or talks to the search cluster; that remains the job of the
connection registry.
"""

from __future__ import annotations

import logging

from eck_config_sync.connections.stores import ClusterDirectory, SecretStore
from eck_config_sync.errors import (
    ConfigurationError,
    DependencyError,
    NotFoundError,
)
from eck_config_sync.models import ClusterCredentials, ClusterSelector, SecretKeySelector

logger = logging.getLogger(__name__)

MANAGED_CLUSTER_USER = "elastic"
MANAGED_CA_KEY = "tls.crt"


def managed_endpoint(name: str, namespace: str) -> str:
    """HTTP service URL the operator creates for a managed cluster."""
    return f"https://{name}-es-http.{namespace}.svc:9200"


def managed_credentials_secret(name: str) -> str:
    return f"{name}-es-elastic-user"


def managed_ca_secret(name: str) -> str:
    return f"{name}-es-http-certs-public"


class CredentialResolver:
    """Resolves endpoint, credentials and CA material for a selector.

    Stateless: all context comes from the selector and the two stores.
    """

    def __init__(
        self,
        secrets: SecretStore,
        clusters: ClusterDirectory,
    ) -> None:
        self._secrets = secrets
        self._clusters = clusters

    def resolve(
        self,
        selector: ClusterSelector,
        record_namespace: str,
    ) -> ClusterCredentials:
        """Resolve connection material for *selector*.

        Args:
            selector: The record's cluster selector.
            record_namespace: Namespace of the record; used whenever the
                selector or a secret reference leaves its namespace empty.

        Raises:
            ConfigurationError: Manual mode without username, password
                reference, or with an empty referenced key.
            NotFoundError: The managed cluster does not exist.
            DependencyError: A required secret is missing.
        """
        namespace = selector.target_namespace(record_namespace)
        if selector.manual:
            return self._resolve_manual(selector, namespace)
        if not selector.name:
            raise ConfigurationError(
                "cluster selector needs either a name or an endpoint"
            )
        return self._resolve_managed(selector.name, namespace)

    # --- Private ---

    def _resolve_manual(
        self, selector: ClusterSelector, namespace: str,
    ) -> ClusterCredentials:
        logger.info("Using manual configuration for endpoint %s", selector.endpoint)

        if not selector.username:
            raise ConfigurationError(
                "username is required when using manual configuration"
            )
        if selector.password_secret_ref is None:
            raise ConfigurationError(
                "passwordSecretRef is required when using manual configuration"
            )

        password = self._read_ref(selector.password_secret_ref, namespace, "password")

        ca_cert = b""
        if selector.ca_cert_secret_ref is not None:
            ca_cert = self._read_ref(
                selector.ca_cert_secret_ref, namespace, "CA certificate",
            )

        return ClusterCredentials(
            endpoint=selector.endpoint,
            username=selector.username,
            password=password.decode("utf-8"),
            ca_cert=ca_cert,
        )

    def _read_ref(
        self, ref: SecretKeySelector, namespace: str, what: str,
    ) -> bytes:
        ref_namespace = ref.namespace or namespace
        try:
            value = self._secrets.get(ref_namespace, ref.name, ref.key)
        except NotFoundError as exc:
            raise DependencyError(f"failed to get {what} secret: {exc}") from exc
        if not value:
            raise ConfigurationError(
                f"{what} not found in secret {ref_namespace}/{ref.name} key {ref.key}"
            )
        return value

    def _resolve_managed(self, name: str, namespace: str) -> ClusterCredentials:
        logger.info("Using managed cluster discovery for %s/%s", namespace, name)

        if not self._clusters.exists(namespace, name):
            raise NotFoundError(f"managed cluster {namespace}/{name} not found")

        endpoint = managed_endpoint(name, namespace)

        try:
            password = self._secrets.get(
                namespace, managed_credentials_secret(name), MANAGED_CLUSTER_USER,
            )
        except NotFoundError as exc:
            raise DependencyError(
                f"failed to get credentials secret for {namespace}/{name}: {exc}"
            ) from exc
        if not password:
            raise DependencyError(
                f"credentials secret {namespace}/{managed_credentials_secret(name)} "
                f"has no '{MANAGED_CLUSTER_USER}' key"
            )

        try:
            ca_cert = self._secrets.get(namespace, managed_ca_secret(name), MANAGED_CA_KEY)
        except NotFoundError as exc:
            raise DependencyError(
                f"failed to get CA certificate secret for {namespace}/{name}: {exc}"
            ) from exc

        return ClusterCredentials(
            endpoint=endpoint,
            username=MANAGED_CLUSTER_USER,
            password=password.decode("utf-8"),
            ca_cert=ca_cert,
        )
