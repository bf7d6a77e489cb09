"""Secondary ("extra") control-plane load balancers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cluster_provisioner.engine.ensurer import ResourceReconciler
from cluster_provisioner.engine.errors import ProvisionerError, TerminalError, is_not_found
from cluster_provisioner.lb.spec import EXTRA_LB_TAG, MANAGED_IP_TAG, lb_spec, same_type
from cluster_provisioner.resources import LoadBalancer, LoadBalancerSpec

if TYPE_CHECKING:
    from cluster_provisioner.core.client import LoadBalancerClient
    from cluster_provisioner.core.context import ReconcileContext
    from cluster_provisioner.core.scope import ClusterScope

logger = logging.getLogger(__name__)


def find_lb_ip_id(scope: ClusterScope, ctx: ReconcileContext, zone: str, address: str) -> str:
    """ID of the flexible IP *address*. A missing IP is a configuration error."""
    try:
        return scope.client.find_lb_ip(ctx, zone, address).id
    except ProvisionerError as exc:
        if is_not_found(exc):
            raise TerminalError(f"failed to find IP {address!r}: {exc}") from exc
        raise


class ExtraLoadBalancerReconciler(ResourceReconciler[LoadBalancerSpec, LoadBalancer]):
    """Converges the secondary load balancers of a cluster.

    Names are ``<cluster>-<i>``, ``i`` being the position of the spec among the
    specs of its zone. Reordering the declared list therefore recreates load
    balancers.
    """

    def __init__(self, scope: ClusterScope) -> None:
        self._scope = scope

    @property
    def _client(self) -> LoadBalancerClient:
        return self._scope.client

    def list_resources(self, ctx: ReconcileContext) -> list[LoadBalancer]:
        return self._client.find_lbs(ctx, self._scope.resource_tags(EXTRA_LB_TAG))

    def delete_resource(self, ctx: ReconcileContext, resource: LoadBalancer) -> None:
        logger.info("Deleting extra LB %s in %s", resource.name, resource.zone)
        self._client.delete_lb(
            ctx, resource.zone, resource.id, release_ip=MANAGED_IP_TAG in resource.tags
        )

    def get_resource_zone(self, resource: LoadBalancer) -> str:
        return resource.zone

    def get_resource_name(self, resource: LoadBalancer) -> str:
        return resource.name

    def get_desired_zone(self, desired: LoadBalancerSpec) -> str:
        zone = self._client.zones.zone_or_default(desired.zone)
        # Rejected here so that nothing is deleted for an unusable spec.
        self._client.zones.validate_zone(self._client, zone)
        return zone

    def get_desired_resource_name(self, index: int) -> str:
        return self._scope.resource_name(str(index))

    def should_keep_resource(
        self, ctx: ReconcileContext, resource: LoadBalancer, desired: LoadBalancerSpec
    ) -> bool:
        if not self._scope.control_plane_lb_private:
            # An LB without IP cannot be repaired in place.
            if not resource.ips:
                return False
            # A provider-allocated IP cannot be swapped for a pinned one, and the
            # other way around: only a new LB gets the right IP ownership.
            if desired.ip is None and MANAGED_IP_TAG not in resource.tags:
                return False
            if desired.ip is not None and not resource.has_ip(desired.ip):
                return False

        pn_id = self._scope.private_network_id()
        if desired.private_ip is not None and pn_id is not None:
            ips = self._client.find_lb_private_ips(ctx, pn_id, [resource.id])
            # No address yet means the LB is not attached: attaching will book the pinned one.
            if ips and not any(ip.address == desired.private_ip for ip in ips):
                return False
        return True

    def create_resource(
        self, ctx: ReconcileContext, zone: str, name: str, desired: LoadBalancerSpec
    ) -> LoadBalancer:
        _, lb_type = lb_spec(self._client.zones, desired)
        tags = self._scope.resource_tags(EXTRA_LB_TAG)

        ip_id: str | None = None
        if desired.ip is not None:
            ip_id = find_lb_ip_id(self._scope, ctx, zone, desired.ip)
        else:
            tags.append(MANAGED_IP_TAG)

        logger.info("Creating extra LB %s in %s", name, zone)
        lb = self._client.create_lb(
            ctx, zone, name, lb_type, ip_id, tags, private=self._scope.control_plane_lb_private
        )
        return lb.model_copy(update={"private_ip": desired.private_ip})

    def update_resource(
        self, ctx: ReconcileContext, resource: LoadBalancer, desired: LoadBalancerSpec
    ) -> LoadBalancer:
        if desired.type is not None and not same_type(desired.type, resource.type):
            logger.info(
                "Migrating extra LB %s in %s to type %s", resource.name, resource.zone, desired.type
            )
            resource = self._client.migrate_lb(ctx, resource.zone, resource.id, desired.type)
        return resource.model_copy(update={"private_ip": desired.private_ip})
