"""Resource models: desired specs and live provider objects."""

from cluster_provisioner.resources.acl import ACLAction, ACLRule, ACLSpec
from cluster_provisioner.resources.loadbalancer import (
    Backend,
    Frontend,
    Gateway,
    LBPrivateNetwork,
    LBStatus,
    LoadBalancer,
    LoadBalancerIP,
    PrivateIP,
)
from cluster_provisioner.resources.spec import LoadBalancerSpec

__all__ = [
    "ACLAction",
    "ACLRule",
    "ACLSpec",
    "Backend",
    "Frontend",
    "Gateway",
    "LBPrivateNetwork",
    "LBStatus",
    "LoadBalancer",
    "LoadBalancerIP",
    "LoadBalancerSpec",
    "PrivateIP",
]
