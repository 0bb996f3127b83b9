"""Kind adapters: one strategy per configuration kind.

Adapters: FlatResourceAdapter (index templates, ILM, ISM, snapshot
repositories, SLM) and ClusterSettingsAdapter.
"""

from eck_config_sync.adapters.base import Adapter
from eck_config_sync.adapters.cluster_settings import ClusterSettingsAdapter
from eck_config_sync.adapters.flat import FLAT_ENDPOINTS, FlatEndpoint, FlatResourceAdapter
from eck_config_sync.models import ResourceKind

ADAPTERS: dict[ResourceKind, Adapter] = {
    kind: FlatResourceAdapter(kind, endpoint) for kind, endpoint in FLAT_ENDPOINTS.items()
}
ADAPTERS[ResourceKind.CLUSTER_SETTINGS] = ClusterSettingsAdapter()


def get_adapter(kind: ResourceKind | str) -> Adapter:
    return ADAPTERS[ResourceKind(kind)]


__all__ = [
    "ADAPTERS",
    "Adapter",
    "ClusterSettingsAdapter",
    "FLAT_ENDPOINTS",
    "FlatEndpoint",
    "FlatResourceAdapter",
    "get_adapter",
]
