"""Error taxonomy for eck-config-sync.

Every error raised while resolving a cluster or pushing configuration
derives from :class:`SyncError`. The reconciler catches ``SyncError``,
records it on the record's status and retries on the next resync.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for failures that abort a sync attempt."""


class ConfigurationError(SyncError):
    """The record's selector is incomplete or points at unusable data.

    Retrying will not help until the record is edited.
    """


class DurationError(ConfigurationError):
    """A resync interval could not be parsed."""


class NotFoundError(SyncError):
    """A referenced object (secret or managed cluster) does not exist."""


class DependencyError(SyncError):
    """A secret the managed cluster should provide is missing."""


class ClusterConnectionError(SyncError):
    """A client for the cluster could not be established."""


class DetectionError(SyncError):
    """The cluster-info probe failed or returned something unparseable."""


class DialectMismatchError(SyncError):
    """The resource kind is not supported by the detected cluster dialect."""


class RemoteAPIError(SyncError):
    """The cluster answered with a non-2xx status."""

    def __init__(self, method: str, path: str, status: int, body: str) -> None:
        self.method = method
        self.path = path
        self.status = status
        self.body = body
        super().__init__(f"{method} {path} failed: HTTP {status} - {body}")
