"""Names, tags and defaults shared by the load balancer reconcilers."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cluster_provisioner.core.zones import ZoneResolver
    from cluster_provisioner.resources import LoadBalancerSpec

# Category tags, added to the cluster ownership tags.
MAIN_LB_TAG = "lb=main"
EXTRA_LB_TAG = "lb=extra"
# Marks an LB whose IP was allocated by the provider and is released with it.
MANAGED_IP_TAG = "lb-ip=managed"

# Must match the port the API servers listen on.
BACKEND_CONTROL_PLANE_PORT = 6443

BACKEND_NAME = "kube-apiserver"
FRONTEND_NAME = "kube-apiserver"

DEFAULT_LB_TYPE = "LB-S"


def lb_spec(zones: ZoneResolver, spec: LoadBalancerSpec) -> tuple[str, str]:
    """Resolve the zone and type of a load balancer from its spec."""
    zone = zones.zone_or_default(spec.zone)
    return zone, spec.type or DEFAULT_LB_TYPE


def same_type(a: str, b: str) -> bool:
    return a.lower() == b.lower()
