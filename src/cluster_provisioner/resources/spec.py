"""Desired load balancer specs."""

from __future__ import annotations

import ipaddress

from pydantic import BaseModel, ConfigDict, field_validator

from cluster_provisioner.core.zones import parse_zone


class LoadBalancerSpec(BaseModel):
    """Declared configuration of one load balancer.

    All fields are optional: the zone defaults to the region's first zone, the
    type to ``LB-S`` and, without ``ip``, the provider allocates an address.
    ``private_ip`` pins the address booked on the cluster private network; it
    is ignored when the cluster has none.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    zone: str | None = None
    type: str | None = None
    ip: str | None = None
    private_ip: str | None = None

    @field_validator("zone")
    @classmethod
    def _check_zone(cls, v: str | None) -> str | None:
        if v is not None:
            parse_zone(v)
        return v

    @field_validator("ip", "private_ip")
    @classmethod
    def _check_ip(cls, v: str | None) -> str | None:
        if v is not None:
            ipaddress.ip_address(v)
        return v
