"""YAML configuration loading and convenience reconcile API."""

from __future__ import annotations

from typing import TYPE_CHECKING

from cluster_provisioner.config.loader import ConfigError, load_config
from cluster_provisioner.config.schema import ClusterConfig, Config, ProviderConfig
from cluster_provisioner.core.context import ReconcileContext
from cluster_provisioner.core.scope import ClusterScope
from cluster_provisioner.core.status import ClusterStatus
from cluster_provisioner.reconcile import delete_cluster, reconcile_cluster

if TYPE_CHECKING:
    from pathlib import Path

    from cluster_provisioner.core.client import LoadBalancerClient
    from cluster_provisioner.core.status import StatusSink
    from cluster_provisioner.reconcile import ReconcileResult

__all__ = [
    "ClusterConfig",
    "Config",
    "ConfigError",
    "ProviderConfig",
    "delete",
    "load",
    "load_config",
    "reconcile",
]


def load(path: Path | str) -> Config:
    """Load a YAML configuration file."""
    return load_config(path)


def _scope(config: Config, client: LoadBalancerClient, status: StatusSink | None) -> ClusterScope:
    if client.zones.region != config.provider.region:
        raise ConfigError(
            f"client region {client.zones.region} does not match provider.region "
            f"{config.provider.region}"
        )
    return ClusterScope(config.cluster, client, status if status is not None else ClusterStatus())


def reconcile(
    config: Config, client: LoadBalancerClient, *, status: StatusSink | None = None
) -> ReconcileResult:
    """Converge the cluster's infrastructure once, within ``config.timeout`` seconds."""
    ctx = ReconcileContext.with_timeout(config.timeout)
    return reconcile_cluster(_scope(config, client, status), ctx)


def delete(
    config: Config, client: LoadBalancerClient, *, status: StatusSink | None = None
) -> ReconcileResult:
    """Tear down the cluster's infrastructure, within ``config.timeout`` seconds."""
    ctx = ReconcileContext.with_timeout(config.timeout)
    return delete_cluster(_scope(config, client, status), ctx)
