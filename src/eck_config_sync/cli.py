"""eck-config-sync CLI — starts the synchronization loop.

Commands:
    run     Watch sync records and keep their clusters in sync
"""

from __future__ import annotations

import logging
import signal
import threading
from dataclasses import replace

import click
from kubernetes import client

from eck_config_sync import __version__
from eck_config_sync.config import SyncConfig, load_config
from eck_config_sync.connections.registry import ConnectionRegistry
from eck_config_sync.connections.resolver import CredentialResolver
from eck_config_sync.errors import DurationError
from eck_config_sync.kube import (
    KubeClusterDirectory,
    KubeRecordStore,
    KubeSecretStore,
    RecordWatcher,
    build_api_client,
)
from eck_config_sync.models import parse_duration
from eck_config_sync.reconciler import Reconciler
from eck_config_sync.scheduler import SyncScheduler

logger = logging.getLogger(__name__)


def _merge(cfg: SyncConfig, **overrides: object) -> SyncConfig:
    """Explicit CLI flags win over config file values."""
    return replace(cfg, **{k: v for k, v in overrides.items() if v is not None})


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """eck-config-sync: keep search-cluster configuration in sync with declared records."""


@cli.command()
@click.option("--config", "config_path", default=None, help="Path to eck-config-sync.yaml")
@click.option("--namespace", "-n", default=None, help="Only watch this namespace")
@click.option("--workers", "-w", type=int, default=None, help="Concurrent sync workers")
@click.option("--kubeconfig", default=None, help="Path to a kubeconfig file")
@click.option("--context", default=None, help="Kubeconfig context to use")
@click.option("--in-cluster", is_flag=True, default=None, help="Use in-cluster config")
@click.option(
    "--insecure-fallback/--no-insecure-fallback",
    default=None,
    help="Accept any server certificate when no CA is configured",
)
@click.option("--log-level", default=None, help="Logging level (DEBUG, INFO, ...)")
def run(
    config_path: str | None,
    namespace: str | None,
    workers: int | None,
    kubeconfig: str | None,
    context: str | None,
    in_cluster: bool | None,
    insecure_fallback: bool | None,
    log_level: str | None,
) -> None:
    """Watch sync records and keep their clusters in sync."""
    try:
        cfg = load_config(config_path)
    except (FileNotFoundError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc

    cfg = _merge(
        cfg,
        namespace=namespace,
        workers=workers,
        kubeconfig=kubeconfig,
        context=context,
        in_cluster=in_cluster,
        insecure_fallback=insecure_fallback,
        log_level=log_level.upper() if log_level else None,
    )
    if cfg.workers < 1:
        raise click.BadParameter("must be >= 1", param_hint="--workers")
    try:
        parse_duration(cfg.default_resync_interval)
    except DurationError as exc:
        raise click.ClickException(f"default_resync_interval: {exc}") from exc

    logging.basicConfig(
        level=cfg.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if cfg.insecure_fallback:
        logger.warning(
            "insecure_fallback is enabled: clusters without a CA certificate "
            "are contacted without verifying their server certificate"
        )

    api_client = build_api_client(cfg.kubeconfig, cfg.context, cfg.in_cluster)
    core_api = client.CoreV1Api(api_client)
    custom_api = client.CustomObjectsApi(api_client)

    store = KubeRecordStore(custom_api, cfg.crd_group, cfg.crd_version)
    resolver = CredentialResolver(
        secrets=KubeSecretStore(core_api),
        clusters=KubeClusterDirectory(custom_api),
    )
    registry = ConnectionRegistry(
        resolver,
        request_timeout=cfg.request_timeout,
        insecure_fallback=cfg.insecure_fallback,
    )
    reconciler = Reconciler(
        registry, store, default_resync_interval=cfg.default_resync_interval,
    )
    scheduler = SyncScheduler(
        reconciler, workers=cfg.workers, retry_interval=cfg.default_resync_interval,
    )
    watcher = RecordWatcher(
        store, scheduler, custom_api, cfg.crd_group, cfg.crd_version,
        namespace=cfg.namespace,
    )

    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    signal.signal(signal.SIGINT, lambda *_: stop.set())

    click.echo(
        f"eck-config-sync {__version__}: watching "
        f"{cfg.namespace or 'all namespaces'} with {cfg.workers} workers"
    )
    watcher.start()
    stop.wait()

    logger.info("Shutting down")
    watcher.stop(timeout=5.0)
    scheduler.shutdown(wait=True)


if __name__ == "__main__":
    cli()
