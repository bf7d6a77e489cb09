"""Live load balancer objects as read from the provider."""

from __future__ import annotations

import ipaddress
from enum import Enum

from pydantic import BaseModel, Field


class LBStatus(str, Enum):
    UNKNOWN = "unknown"
    READY = "ready"
    PENDING = "pending"
    STOPPED = "stopped"
    ERROR = "error"
    LOCKED = "locked"
    MIGRATING = "migrating"
    TO_CREATE = "to_create"
    CREATING = "creating"
    TO_DELETE = "to_delete"
    DELETING = "deleting"


class LoadBalancerIP(BaseModel):
    """A flexible IP that can be bound to a load balancer."""

    id: str
    address: str
    zone: str
    lb_id: str | None = None
    tags: list[str] = Field(default_factory=list)


class LoadBalancer(BaseModel):
    id: str
    zone: str
    name: str
    type: str
    status: LBStatus = LBStatus.READY
    tags: list[str] = Field(default_factory=list)
    ips: list[LoadBalancerIP] = Field(default_factory=list)
    # Address on the cluster private network. Set by the reconcilers, never read
    # from the provider.
    private_ip: str | None = None

    def has_ip(self, address: str) -> bool:
        return any(ip.address == address for ip in self.ips)

    def ipv4(self) -> str | None:
        """First IPv4 address assigned to the load balancer."""
        for ip in self.ips:
            if ipaddress.ip_address(ip.address).version == 4:
                return ip.address
        return None


class LBPrivateNetwork(BaseModel):
    """Attachment of a load balancer to a private network."""

    lb_id: str
    zone: str
    private_network_id: str


class PrivateIP(BaseModel):
    """IPAM address of a private network.

    ``address`` is a bare IP, without prefix length. ``resource_id`` is the ID of
    the resource holding the address, ``None`` while it is available.
    """

    id: str
    address: str
    private_network_id: str
    resource_id: str | None = None


class Backend(BaseModel):
    id: str
    lb_id: str
    zone: str
    name: str
    forward_port: int
    pool: list[str] = Field(default_factory=list)


class Frontend(BaseModel):
    id: str
    lb_id: str
    zone: str
    name: str
    inbound_port: int
    backend_id: str


class Gateway(BaseModel):
    """Public gateway owned by the cluster (NAT egress for private nodes)."""

    id: str
    zone: str
    name: str
    tags: list[str] = Field(default_factory=list)
    ipv4: str | None = None
