"""Core infrastructure components: zones, context, client capability, scope and status."""

from cluster_provisioner.core.client import LoadBalancerClient
from cluster_provisioner.core.context import ReconcileContext
from cluster_provisioner.core.scope import ClusterScope
from cluster_provisioner.core.status import ClusterStatus, Condition, StatusSink
from cluster_provisioner.core.zones import ZoneResolver

__all__ = [
    "ClusterScope",
    "ClusterStatus",
    "Condition",
    "LoadBalancerClient",
    "ReconcileContext",
    "StatusSink",
    "ZoneResolver",
]
