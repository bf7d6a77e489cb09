"""Cloud client capability for load balancers and gateways.

Adapters subclass ``LoadBalancerClient`` and implement the ``_``-prefixed
primitives on top of a vendor SDK. The public methods add what every call site
relies on: zone validation, tag filtering, single-result selection
(``NotFoundError`` / ``TooManyFoundError``), cancellation checks and wrapping
of adapter failures as ``CallError``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, TypeVar

from cluster_provisioner.engine.errors import (
    CallError,
    NotFoundError,
    ReconcileCanceled,
    ReconcileError,
    TooManyFoundError,
)
from cluster_provisioner.resources.acl import ACLSpec

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from cluster_provisioner.core.context import ReconcileContext
    from cluster_provisioner.core.zones import ZoneResolver
    from cluster_provisioner.resources import (
        ACLAction,
        ACLRule,
        Backend,
        Frontend,
        Gateway,
        LBPrivateNetwork,
        LoadBalancer,
        LoadBalancerIP,
        PrivateIP,
    )

logger = logging.getLogger(__name__)

T = TypeVar("T")


def match_tags(tags: Sequence[str], wanted: Sequence[str]) -> bool:
    """True if every wanted tag is present in *tags*."""
    return all(t in tags for t in wanted)


def validate_tags(tags: Sequence[str]) -> None:
    if not tags:
        raise ValueError("tags cannot be empty")


def select_one(items: Sequence[T], description: str) -> T:
    """Return the single item of *items*.

    Raises ``NotFoundError`` when empty and ``TooManyFoundError`` when there is
    more than one match.
    """
    if not items:
        raise NotFoundError(f"no item found: {description}")
    if len(items) > 1:
        raise TooManyFoundError(f"expected to find only one item: found {len(items)} {description}")
    return items[0]


class _GatewayProduct:
    def __init__(self, client: LoadBalancerClient) -> None:
        self._client = client

    def supported_zones(self) -> list[str]:
        return self._client.gateway_zones()


class LoadBalancerClient(ABC):
    """Zone-scoped access to load balancers, backends, frontends, ACLs and gateways."""

    def __init__(self, zones: ZoneResolver, project_id: str) -> None:
        self._zones = zones
        self._project_id = project_id

    @property
    def zones(self) -> ZoneResolver:
        return self._zones

    @property
    def project_id(self) -> str:
        return self._project_id

    # Product zones, as advertised by the provider for every region.

    @abstractmethod
    def supported_zones(self) -> list[str]:
        """Zones where the load balancer product is available."""

    @abstractmethod
    def gateway_zones(self) -> list[str]:
        """Zones where the public gateway product is available."""

    # Adapter primitives. ``timeout`` is the time left before the context deadline.

    @abstractmethod
    def _list_lbs(
        self, zone: str, tags: list[str], *, timeout: float | None
    ) -> list[LoadBalancer]: ...

    @abstractmethod
    def _list_lb_ips(
        self, zone: str, address: str, *, timeout: float | None
    ) -> list[LoadBalancerIP]: ...

    @abstractmethod
    def _create_lb(
        self,
        zone: str,
        name: str,
        lb_type: str,
        ip_id: str | None,
        private: bool,
        tags: list[str],
        *,
        timeout: float | None,
    ) -> LoadBalancer:
        """Create a load balancer.

        Without ``ip_id`` the provider allocates a flexible IP, unless ``private``
        is set: a private load balancer has no public address.
        """

    @abstractmethod
    def _migrate_lb(
        self, zone: str, lb_id: str, lb_type: str, *, timeout: float | None
    ) -> LoadBalancer: ...

    @abstractmethod
    def _delete_lb(
        self, zone: str, lb_id: str, release_ip: bool, *, timeout: float | None
    ) -> None: ...

    @abstractmethod
    def _list_backends(
        self, zone: str, lb_id: str, name: str, *, timeout: float | None
    ) -> list[Backend]: ...

    @abstractmethod
    def _create_backend(
        self,
        zone: str,
        lb_id: str,
        name: str,
        servers: list[str],
        port: int,
        *,
        timeout: float | None,
    ) -> Backend: ...

    @abstractmethod
    def _set_backend_servers(
        self, zone: str, backend_id: str, servers: list[str], *, timeout: float | None
    ) -> Backend: ...

    @abstractmethod
    def _add_backend_server(
        self, zone: str, backend_id: str, ip: str, *, timeout: float | None
    ) -> None: ...

    @abstractmethod
    def _remove_backend_server(
        self, zone: str, backend_id: str, ip: str, *, timeout: float | None
    ) -> None: ...

    @abstractmethod
    def _list_frontends(
        self, zone: str, lb_id: str, name: str, *, timeout: float | None
    ) -> list[Frontend]: ...

    @abstractmethod
    def _create_frontend(
        self,
        zone: str,
        lb_id: str,
        name: str,
        backend_id: str,
        port: int,
        *,
        timeout: float | None,
    ) -> Frontend: ...

    @abstractmethod
    def _list_acls(
        self, zone: str, frontend_id: str, name: str | None, *, timeout: float | None
    ) -> list[ACLRule]: ...

    @abstractmethod
    def _create_acl(
        self, zone: str, frontend_id: str, spec: ACLSpec, *, timeout: float | None
    ) -> ACLRule: ...

    @abstractmethod
    def _update_acl(
        self, zone: str, acl_id: str, spec: ACLSpec, *, timeout: float | None
    ) -> ACLRule: ...

    @abstractmethod
    def _delete_acl(self, zone: str, acl_id: str, *, timeout: float | None) -> None: ...

    @abstractmethod
    def _set_acls(
        self, zone: str, frontend_id: str, specs: list[ACLSpec], *, timeout: float | None
    ) -> list[ACLRule]: ...

    @abstractmethod
    def _list_lb_private_networks(
        self, zone: str, lb_id: str, *, timeout: float | None
    ) -> list[LBPrivateNetwork]: ...

    @abstractmethod
    def _attach_private_network(
        self,
        zone: str,
        lb_id: str,
        private_network_id: str,
        ip_id: str | None,
        *,
        timeout: float | None,
    ) -> None:
        """Attach a load balancer to a private network.

        ``ip_id`` is an available IPAM address to use; without it IPAM books one.
        """

    @abstractmethod
    def _list_private_ips(
        self, private_network_id: str, *, timeout: float | None
    ) -> list[PrivateIP]:
        """IPv4 IPAM addresses of the private network, in the project."""

    @abstractmethod
    def _list_gateways(
        self, zone: str, tags: list[str], *, timeout: float | None
    ) -> list[Gateway]: ...

    # Public surface.

    def _call(self, ctx: ReconcileContext, method: str, fn: Callable[..., T], *args: Any) -> T:
        ctx.check()
        logger.debug("Calling %s", method)
        try:
            return fn(*args, timeout=ctx.remaining())
        except ReconcileError:
            raise
        except Exception as exc:
            # The adapter gave up because the deadline or cancellation hit mid-call.
            if isinstance(exc, TimeoutError) or ctx.canceled or ctx.remaining() == 0:
                raise ReconcileCanceled(f"{method} interrupted: {exc}") from exc
            raise CallError(method, exc) from exc

    def _validate_zone(self, zone: str) -> None:
        self._zones.validate_zone(self, zone)

    def find_lb(self, ctx: ReconcileContext, zone: str, tags: list[str]) -> LoadBalancer:
        self._validate_zone(zone)
        validate_tags(tags)
        lbs = self._call(ctx, "ListLBs", self._list_lbs, zone, tags)
        lbs = [lb for lb in lbs if match_tags(lb.tags, tags)]
        return select_one(lbs, f"LBs with tags {tags}")

    def find_lbs(self, ctx: ReconcileContext, tags: list[str]) -> list[LoadBalancer]:
        """Load balancers carrying *tags* in every product zone of the region."""
        validate_tags(tags)
        found: list[LoadBalancer] = []
        for zone in self._zones.product_zones(self):
            lbs = self._call(ctx, "ListLBs", self._list_lbs, zone, tags)
            found.extend(lb for lb in lbs if match_tags(lb.tags, tags))
        return found

    def find_lb_ip(self, ctx: ReconcileContext, zone: str, address: str) -> LoadBalancerIP:
        self._validate_zone(zone)
        ips = self._call(ctx, "ListIPs", self._list_lb_ips, zone, address)
        ips = [ip for ip in ips if ip.address == address]
        return select_one(ips, f"IPs with address {address}")

    def create_lb(
        self,
        ctx: ReconcileContext,
        zone: str,
        name: str,
        lb_type: str,
        ip_id: str | None,
        tags: list[str],
        *,
        private: bool = False,
    ) -> LoadBalancer:
        self._validate_zone(zone)
        return self._call(
            ctx, "CreateLB", self._create_lb, zone, name, lb_type.lower(), ip_id, private, tags
        )

    def migrate_lb(
        self, ctx: ReconcileContext, zone: str, lb_id: str, lb_type: str
    ) -> LoadBalancer:
        self._validate_zone(zone)
        return self._call(ctx, "MigrateLB", self._migrate_lb, zone, lb_id, lb_type.lower())

    def delete_lb(self, ctx: ReconcileContext, zone: str, lb_id: str, *, release_ip: bool) -> None:
        self._validate_zone(zone)
        self._call(ctx, "DeleteLB", self._delete_lb, zone, lb_id, release_ip)

    def find_backend(self, ctx: ReconcileContext, zone: str, lb_id: str, name: str) -> Backend:
        self._validate_zone(zone)
        backends = self._call(ctx, "ListBackends", self._list_backends, zone, lb_id, name)
        backends = [b for b in backends if b.name == name]
        return select_one(backends, f"backends with name {name}")

    def create_backend(
        self,
        ctx: ReconcileContext,
        zone: str,
        lb_id: str,
        name: str,
        servers: list[str],
        port: int,
    ) -> Backend:
        self._validate_zone(zone)
        return self._call(
            ctx, "CreateBackend", self._create_backend, zone, lb_id, name, servers, port
        )

    def set_backend_servers(
        self, ctx: ReconcileContext, zone: str, backend_id: str, servers: list[str]
    ) -> Backend:
        self._validate_zone(zone)
        return self._call(
            ctx, "SetBackendServers", self._set_backend_servers, zone, backend_id, servers
        )

    def add_backend_server(
        self, ctx: ReconcileContext, zone: str, backend_id: str, ip: str
    ) -> None:
        self._validate_zone(zone)
        self._call(ctx, "AddBackendServers", self._add_backend_server, zone, backend_id, ip)

    def remove_backend_server(
        self, ctx: ReconcileContext, zone: str, backend_id: str, ip: str
    ) -> None:
        self._validate_zone(zone)
        self._call(ctx, "RemoveBackendServers", self._remove_backend_server, zone, backend_id, ip)

    def find_frontend(self, ctx: ReconcileContext, zone: str, lb_id: str, name: str) -> Frontend:
        self._validate_zone(zone)
        frontends = self._call(ctx, "ListFrontends", self._list_frontends, zone, lb_id, name)
        frontends = [f for f in frontends if f.name == name]
        return select_one(frontends, f"frontends with name {name}")

    def create_frontend(
        self,
        ctx: ReconcileContext,
        zone: str,
        lb_id: str,
        name: str,
        backend_id: str,
        port: int,
    ) -> Frontend:
        self._validate_zone(zone)
        return self._call(
            ctx, "CreateFrontend", self._create_frontend, zone, lb_id, name, backend_id, port
        )

    def list_acls(self, ctx: ReconcileContext, zone: str, frontend_id: str) -> list[ACLRule]:
        self._validate_zone(zone)
        return self._call(ctx, "ListACLs", self._list_acls, zone, frontend_id, None)

    def find_acl_by_name(
        self, ctx: ReconcileContext, zone: str, frontend_id: str, name: str
    ) -> ACLRule:
        self._validate_zone(zone)
        acls = self._call(ctx, "ListACLs", self._list_acls, zone, frontend_id, name)
        acls = [a for a in acls if a.name == name]
        return select_one(acls, f"ACLs with name {name}")

    def create_acl(
        self,
        ctx: ReconcileContext,
        zone: str,
        frontend_id: str,
        name: str,
        index: int,
        action: ACLAction,
        subnets: list[str],
    ) -> ACLRule:
        self._validate_zone(zone)
        spec = ACLSpec(name=name, index=index, action=action, ip_subnet=subnets)
        return self._call(ctx, "CreateACL", self._create_acl, zone, frontend_id, spec)

    def update_acl(
        self,
        ctx: ReconcileContext,
        zone: str,
        acl_id: str,
        name: str,
        index: int,
        action: ACLAction,
        subnets: list[str],
    ) -> ACLRule:
        self._validate_zone(zone)
        spec = ACLSpec(name=name, index=index, action=action, ip_subnet=subnets)
        return self._call(ctx, "UpdateACL", self._update_acl, zone, acl_id, spec)

    def delete_acl(self, ctx: ReconcileContext, zone: str, acl_id: str) -> None:
        self._validate_zone(zone)
        self._call(ctx, "DeleteACL", self._delete_acl, zone, acl_id)

    def set_acls(
        self, ctx: ReconcileContext, zone: str, frontend_id: str, specs: list[ACLSpec]
    ) -> list[ACLRule]:
        """Replace the whole ACL list of a frontend."""
        self._validate_zone(zone)
        return self._call(ctx, "SetACLs", self._set_acls, zone, frontend_id, specs)

    def find_gateways(self, ctx: ReconcileContext, tags: list[str]) -> list[Gateway]:
        """Public gateways carrying *tags* in every gateway zone of the region."""
        validate_tags(tags)
        found: list[Gateway] = []
        for zone in self._zones.product_zones(_GatewayProduct(self)):
            gws = self._call(ctx, "ListGateways", self._list_gateways, zone, tags)
            found.extend(gw for gw in gws if match_tags(gw.tags, tags))
        return found

    def find_lb_private_network(
        self, ctx: ReconcileContext, zone: str, lb_id: str, private_network_id: str
    ) -> LBPrivateNetwork:
        self._validate_zone(zone)
        attached = self._call(
            ctx, "ListLBPrivateNetworks", self._list_lb_private_networks, zone, lb_id
        )
        attached = [pn for pn in attached if pn.private_network_id == private_network_id]
        return select_one(attached, f"attached private networks with id {private_network_id}")

    def attach_lb_private_network(
        self,
        ctx: ReconcileContext,
        zone: str,
        lb_id: str,
        private_network_id: str,
        ip_id: str | None,
    ) -> None:
        self._validate_zone(zone)
        self._call(
            ctx,
            "AttachPrivateNetwork",
            self._attach_private_network,
            zone,
            lb_id,
            private_network_id,
            ip_id,
        )

    def find_available_private_ips(
        self, ctx: ReconcileContext, private_network_id: str
    ) -> list[PrivateIP]:
        """IPAM addresses of the private network that no resource holds."""
        ips = self._call(ctx, "ListIPs", self._list_private_ips, private_network_id)
        return [
            ip
            for ip in ips
            if ip.private_network_id == private_network_id and ip.resource_id is None
        ]

    def find_lb_private_ips(
        self, ctx: ReconcileContext, private_network_id: str, lb_ids: Sequence[str]
    ) -> list[PrivateIP]:
        """IPAM addresses of the private network held by the given load balancers."""
        ips = self._call(ctx, "ListIPs", self._list_private_ips, private_network_id)
        return [
            ip
            for ip in ips
            if ip.private_network_id == private_network_id and ip.resource_id in lb_ids
        ]
