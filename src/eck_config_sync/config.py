"""Config file loading and auto-discovery for eck-config-sync.

Searches for ``eck-config-sync.yaml`` in the current directory and parent
directories, parses it, and resolves a relative kubeconfig path against
the config file's location.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from eck_config_sync.models import DEFAULT_RESYNC_INTERVAL

CONFIG_FILENAME = "eck-config-sync.yaml"


@dataclass(frozen=True)
class SyncConfig:
    """Parsed eck-config-sync process configuration."""

    config_path: Path | None = None
    workers: int = 4
    default_resync_interval: str = DEFAULT_RESYNC_INTERVAL
    request_timeout: float = 10.0
    idle_timeout: float = 10.0
    insecure_fallback: bool = True
    namespace: str | None = None
    kubeconfig: str | None = None
    context: str | None = None
    in_cluster: bool = False
    crd_group: str = "eck-config-operator.freepik.com"
    crd_version: str = "v1alpha1"
    log_level: str = "INFO"


def find_config(start: Path | None = None) -> Path | None:
    """Walk from *start* (default ``cwd()``) up to the filesystem root.

    Returns the first ``eck-config-sync.yaml`` found, or ``None``.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(
    path: str | Path | None = None,
    *,
    auto_discover: bool = True,
) -> SyncConfig:
    """Load an eck-config-sync config file.

    Resolution order:

    1. Explicit *path* (error if it doesn't exist).
    2. Auto-discover by walking parent directories.
    3. Return an empty ``SyncConfig`` (all defaults).
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).resolve()
        if not config_path.is_file():
            msg = f"Config file not found: {config_path}"
            raise FileNotFoundError(msg)
    elif auto_discover:
        config_path = find_config()

    if config_path is None:
        return SyncConfig()

    return _parse_config(config_path)


def _parse_config(config_path: Path) -> SyncConfig:
    """Read and parse a YAML config file."""
    text = config_path.read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}

    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping in {config_path}, got {type(data).__name__}"
        raise ValueError(msg)

    defaults = SyncConfig()
    kubeconfig = data.get("kubeconfig")
    if kubeconfig is not None:
        kubeconfig = str((config_path.parent / kubeconfig).resolve())

    workers = int(data.get("workers", defaults.workers))
    if workers < 1:
        msg = f"workers must be >= 1 in {config_path}, got {workers}"
        raise ValueError(msg)

    return SyncConfig(
        config_path=config_path,
        workers=workers,
        default_resync_interval=str(
            data.get("default_resync_interval", defaults.default_resync_interval)
        ),
        request_timeout=float(data.get("request_timeout", defaults.request_timeout)),
        idle_timeout=float(data.get("idle_timeout", defaults.idle_timeout)),
        insecure_fallback=bool(data.get("insecure_fallback", defaults.insecure_fallback)),
        namespace=data.get("namespace"),
        kubeconfig=kubeconfig,
        context=data.get("context"),
        in_cluster=bool(data.get("in_cluster", defaults.in_cluster)),
        crd_group=data.get("crd_group", defaults.crd_group),
        crd_version=data.get("crd_version", defaults.crd_version),
        log_level=str(data.get("log_level", defaults.log_level)).upper(),
    )
