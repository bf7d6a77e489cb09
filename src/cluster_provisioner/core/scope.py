"""Cluster-scoped view shared by the reconcilers of one cluster.

Ownership of provider resources is tracked by tags. Every resource created for
a cluster carries ``created-by=cluster-provisioner``, ``cluster-namespace=<ns>``
and ``cluster-name=<name>``; lookups filter on all three, so resources created
outside this library are never adopted or deleted. Do not change these values
on a running cluster: existing resources would be orphaned.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cluster_provisioner.config.schema import ClusterConfig
    from cluster_provisioner.core.client import LoadBalancerClient
    from cluster_provisioner.core.status import StatusSink
    from cluster_provisioner.resources import LoadBalancerSpec

CREATED_BY_TAG = "created-by=cluster-provisioner"


def name_with_suffixes(name: str, *suffixes: str) -> str:
    return "-".join([name, *suffixes])


class ClusterScope:
    def __init__(
        self, cluster: ClusterConfig, client: LoadBalancerClient, status: StatusSink
    ) -> None:
        self._cluster = cluster
        self._client = client
        self._status = status

    @property
    def cluster(self) -> ClusterConfig:
        return self._cluster

    @property
    def client(self) -> LoadBalancerClient:
        return self._client

    @property
    def status(self) -> StatusSink:
        return self._status

    def resource_name(self, *suffixes: str) -> str:
        """Name (or name prefix) of resources created for the cluster."""
        return name_with_suffixes(self._cluster.name, *suffixes)

    def resource_tags(self, *additional: str) -> list[str]:
        """Tags that resources created for the cluster carry."""
        return [
            CREATED_BY_TAG,
            f"cluster-namespace={self._cluster.namespace}",
            f"cluster-name={self._cluster.name}",
            *additional,
        ]

    @property
    def has_private_network(self) -> bool:
        return self._cluster.network.private_network.enabled

    def private_network_id(self) -> str | None:
        """ID of the private network to attach load balancers to, if any."""
        if not self.has_private_network:
            return None
        return self._cluster.network.private_network.id

    @property
    def control_plane_lb_private(self) -> bool:
        """True if the load balancers only get an address on the private network."""
        spec = self._cluster.network.control_plane_load_balancer
        return self.has_private_network and spec.private

    @property
    def api_server_port(self) -> int:
        return self._cluster.network.api_server_port

    def control_plane_lb_spec(self) -> LoadBalancerSpec:
        return self._cluster.network.control_plane_load_balancer

    def control_plane_extra_lb_specs(self) -> list[LoadBalancerSpec]:
        return list(self._cluster.network.control_plane_extra_load_balancers)

    def allowed_ranges(self) -> list[str]:
        return list(self._cluster.network.control_plane_load_balancer.allowed_ranges)
