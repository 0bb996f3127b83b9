"""Adapter for cluster-wide settings.

Resources are keyed by category (``persistent``, ``transient``); each
value is an object of setting paths. Tracking happens per setting as
``category.settingPath`` so that a removed setting is reset on its own,
without touching the rest of its category.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from eck_config_sync.errors import ConfigurationError

if TYPE_CHECKING:
    from eck_config_sync.connections.registry import ClusterConnection
    from eck_config_sync.models import SyncRecord

logger = logging.getLogger(__name__)

SETTINGS_PATH = "/_cluster/settings"


def split_setting(full_key: str) -> tuple[str, str] | None:
    """Split ``"persistent.cluster.routing.allocation.enable"`` at the first dot."""
    category, sep, setting = full_key.partition(".")
    if not sep or not category or not setting:
        return None
    return category, setting


def group_by_category(full_keys: list[str]) -> dict[str, list[str]]:
    grouped: dict[str, list[str]] = {}
    for full_key in full_keys:
        parts = split_setting(full_key)
        if parts is None:
            logger.warning("Ignoring malformed setting key %r", full_key)
            continue
        category, setting = parts
        grouped.setdefault(category, []).append(setting)
    return grouped


class ClusterSettingsAdapter:
    noun = "settings"

    def apply(self, connection: ClusterConnection, name: str, body: Any) -> None:
        settings = _as_settings(name, body)
        logger.info(
            "Applying %d cluster settings for category %s on %s",
            len(settings), name, connection.key,
        )
        response = connection.client.request("PUT", SETTINGS_PATH, body={name: settings})
        response.raise_for_status()

    def delete(self, connection: ClusterConnection, name: str) -> None:
        self.remove(connection, [name])

    def remove(self, connection: ClusterConnection, names: list[str]) -> None:
        for category, settings in group_by_category(names).items():
            self._reset(connection, category, settings)

    def tracked_names(self, resources: dict[str, Any]) -> list[str]:
        names: list[str] = []
        for category, body in resources.items():
            names.extend(f"{category}.{setting}" for setting in _as_settings(category, body))
        return names

    def deletion_names(self, record: SyncRecord) -> list[str]:
        return list(record.status.applied_resources)

    def _reset(
        self, connection: ClusterConnection, category: str, settings: list[str],
    ) -> None:
        logger.info(
            "Resetting %d cluster settings in category %s on %s",
            len(settings), category, connection.key,
        )
        body = {category: dict.fromkeys(settings)}
        response = connection.client.request("PUT", SETTINGS_PATH, body=body)
        if response.status == 404:
            logger.info("Cluster settings for category %s not found (already reset)", category)
            return
        response.raise_for_status()


def _as_settings(category: str, body: Any) -> dict[str, Any]:
    if not isinstance(body, dict):
        raise ConfigurationError(
            f"settings for category {category} must be an object, "
            f"got {type(body).__name__}"
        )
    return body
