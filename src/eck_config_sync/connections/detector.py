"""Dialect detection — Elasticsearch or OpenSearch, and which version."""

from __future__ import annotations

import logging

from eck_config_sync.connections.transport import ClusterClient
from eck_config_sync.errors import ClusterConnectionError, DetectionError
from eck_config_sync.models import Dialect

logger = logging.getLogger(__name__)


def detect(
    client: ClusterClient,
    override: Dialect | str | None = None,
) -> tuple[Dialect, str]:
    """Probe the cluster root endpoint and classify it.

    An explicit *override* is trusted verbatim; the probe is still issued
    to learn the version. Without one, ``version.distribution ==
    "opensearch"`` means OpenSearch and anything else means Elasticsearch.

    Returns:
        ``(dialect, version)``

    Raises:
        DetectionError: If the probe fails or the answer is unparseable.
    """
    try:
        response = client.request("GET", "/")
    except ClusterConnectionError as exc:
        raise DetectionError(f"failed to get cluster info: {exc}") from exc

    if not response.ok:
        raise DetectionError(
            f"cluster info request failed: HTTP {response.status} - {response.text}"
        )

    try:
        info = response.json()
        version_info = info["version"]
        number = str(version_info["number"])
    except (ValueError, KeyError, TypeError) as exc:
        raise DetectionError(f"failed to parse cluster info: {exc}") from exc

    if override:
        try:
            dialect = Dialect(override)
        except ValueError as exc:
            raise DetectionError(f"unknown cluster type override: {override!r}") from exc
        logger.info("Using configured cluster type %s (version %s)", dialect, number)
        return dialect, number

    if version_info.get("distribution") == "opensearch":
        dialect = Dialect.OPENSEARCH
    else:
        dialect = Dialect.ELASTICSEARCH

    logger.info("Auto-detected cluster type %s (version %s)", dialect, number)
    return dialect, number
