"""Configuration models for YAML-based cluster declarations."""

from __future__ import annotations

import ipaddress
from pathlib import Path
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from cluster_provisioner.resources.spec import LoadBalancerSpec


class ProviderConfig(BaseSettings):
    """Cloud provider settings.

    Fields can be set via YAML (constructor kwargs) or environment variables
    with the ``SCW_`` prefix.  Constructor kwargs take precedence.

    Credentials are typically provided via ``SCW_ACCESS_KEY`` and
    ``SCW_SECRET_KEY`` rather than YAML to avoid committing secrets.
    """

    model_config = SettingsConfigDict(env_prefix="SCW_")

    region: str = Field(pattern=r"^[a-z]{2}-[a-z]{3}$")
    project_id: str
    access_key: str | None = None
    secret_key: SecretStr | None = None


def _none_to_list(v: Any) -> Any:
    return v if v is not None else []


class PrivateNetworkConfig(BaseModel):
    """Private network the control-plane load balancers are attached to."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    id: str | None = None

    @model_validator(mode="after")
    def _require_id(self) -> PrivateNetworkConfig:
        if self.enabled and not self.id:
            raise ValueError("private_network.id is required when the private network is enabled")
        return self


class ControlPlaneLoadBalancerSpec(LoadBalancerSpec):
    """Primary load balancer spec, plus the ranges allowed to reach it.

    An empty ``allowed_ranges`` leaves the API server open to everyone. With
    ``private`` set and a private network enabled, the load balancers get no
    public IP and publish their private addresses instead.
    """

    private: bool = False
    allowed_ranges: Annotated[list[str], BeforeValidator(_none_to_list)] = []

    @field_validator("allowed_ranges")
    @classmethod
    def _check_cidrs(cls, v: list[str]) -> list[str]:
        for cidr in v:
            ipaddress.ip_network(cidr, strict=False)
        return list(dict.fromkeys(v))


class NetworkConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    private_network: PrivateNetworkConfig = Field(default_factory=PrivateNetworkConfig)
    control_plane_load_balancer: ControlPlaneLoadBalancerSpec = Field(
        default_factory=ControlPlaneLoadBalancerSpec
    )
    # Order matters: an extra load balancer's name derives from its position
    # among the extra load balancers of the same zone.
    control_plane_extra_load_balancers: Annotated[
        list[LoadBalancerSpec], BeforeValidator(_none_to_list)
    ] = []
    api_server_port: int = Field(default=6443, ge=1, le=65535)


class ClusterConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(pattern=r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$", max_length=63)
    namespace: str = "default"
    network: NetworkConfig = Field(default_factory=NetworkConfig)


class Config(BaseModel):
    """Provisioning configuration, validated directly from the YAML structure."""

    provider: ProviderConfig
    cluster: ClusterConfig
    timeout: float = Field(default=120.0, gt=0)
    config_dir: Path = Path()
