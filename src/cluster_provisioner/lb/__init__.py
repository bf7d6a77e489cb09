"""Control-plane load balancer reconcilers."""

from cluster_provisioner.lb.acl import ACLSynchronizer
from cluster_provisioner.lb.extra import ExtraLoadBalancerReconciler
from cluster_provisioner.lb.member import MemberAccessService
from cluster_provisioner.lb.service import LoadBalancerService

__all__ = [
    "ACLSynchronizer",
    "ExtraLoadBalancerReconciler",
    "LoadBalancerService",
    "MemberAccessService",
]
