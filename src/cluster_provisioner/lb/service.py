"""Control-plane load balancer topology.

One primary load balancer, found by its ``lb=main`` tag, plus the secondary
load balancers declared by the cluster. The primary's backend pool (the
control-plane node IPs, maintained by ``MemberAccessService``) is
authoritative and copied to every secondary.
When the cluster has a private network, every load balancer is attached to it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cluster_provisioner.engine.ensurer import ResourceEnsurer
from cluster_provisioner.engine.errors import (
    ProvisionerError,
    ReconcileError,
    TerminalError,
    TransientError,
    ignore_not_found,
)
from cluster_provisioner.lb.acl import ACLSynchronizer
from cluster_provisioner.lb.extra import ExtraLoadBalancerReconciler, find_lb_ip_id
from cluster_provisioner.lb.spec import (
    BACKEND_CONTROL_PLANE_PORT,
    BACKEND_NAME,
    FRONTEND_NAME,
    MAIN_LB_TAG,
    lb_spec,
    same_type,
)
from cluster_provisioner.resources import LBStatus

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cluster_provisioner.core.context import ReconcileContext
    from cluster_provisioner.core.scope import ClusterScope
    from cluster_provisioner.resources import (
        Backend,
        Frontend,
        LBPrivateNetwork,
        LoadBalancer,
        LoadBalancerSpec,
        PrivateIP,
    )

logger = logging.getLogger(__name__)

LB_NOT_READY_REQUEUE = 5.0
PRIVATE_IP_NOT_READY_REQUEUE = 3.0


def check_lbs_readiness(lbs: Sequence[LoadBalancer]) -> None:
    for lb in lbs:
        if lb.status != LBStatus.READY:
            raise TransientError(
                f"lb {lb.id} is not yet ready: currently {lb.status.value}",
                requeue_after=LB_NOT_READY_REQUEUE,
            )


def lb_ipv4(lb: LoadBalancer, *, private: bool = False) -> str:
    if private:
        if lb.private_ip is None:
            raise ProvisionerError(f"did not find private ipv4 for lb {lb.id}")
        return lb.private_ip
    ip = lb.ipv4()
    if ip is None:
        raise ProvisionerError(f"did not find ipv4 for lb {lb.id}")
    return ip


class LoadBalancerService:
    def __init__(self, scope: ClusterScope) -> None:
        self._scope = scope
        self._acls = ACLSynchronizer(scope)

    def name(self) -> str:
        return "lb"

    def reconcile(self, ctx: ReconcileContext) -> None:
        main_lb = self.ensure_lb(ctx)
        extra_lbs = self.ensure_extra_lbs(ctx)

        check_lbs_readiness([*extra_lbs, main_lb])
        *extra_lbs, main_lb = self.ensure_private_network(ctx, [*extra_lbs, main_lb])

        backends = self.ensure_backends(ctx, main_lb, extra_lbs)
        frontend_by_lb = self.ensure_frontends(ctx, backends)
        self._acls.ensure(ctx, main_lb, frontend_by_lb)

        # Private addresses are only known once the private network is ensured.
        private = self._scope.control_plane_lb_private
        self._scope.status.set_load_balancer_ip(lb_ipv4(main_lb, private=private))
        extra_lbs = sorted(extra_lbs, key=lambda lb: (lb.zone, lb.name))
        self._scope.status.set_extra_load_balancer_ips(
            [lb_ipv4(lb, private=private) for lb in extra_lbs]
        )

    def delete(self, ctx: ReconcileContext) -> None:
        self.ensure_deleted_lb(ctx)
        self.ensure_extra_lbs(ctx, delete=True)

    def ensure_lb(self, ctx: ReconcileContext) -> LoadBalancer:
        """Find, create or migrate the primary load balancer."""
        client = self._scope.client
        spec = self._scope.control_plane_lb_spec()
        zone, lb_type = lb_spec(client.zones, spec)
        tags = self._scope.resource_tags(MAIN_LB_TAG)

        lb: LoadBalancer | None = None
        with ignore_not_found():
            lb = client.find_lb(ctx, zone, tags)

        if lb is None:
            ip_id = find_lb_ip_id(self._scope, ctx, zone, spec.ip) if spec.ip is not None else None
            logger.info("Creating main LB in %s", zone)
            lb = client.create_lb(
                ctx,
                zone,
                self._scope.resource_name(),
                lb_type,
                ip_id,
                tags,
                private=self._scope.control_plane_lb_private,
            )
        elif not same_type(lb.type, lb_type):
            logger.info("Migrating main LB %s from %s to %s", lb.id, lb.type, lb_type)
            lb = client.migrate_lb(ctx, zone, lb.id, lb_type)

        return lb.model_copy(update={"private_ip": spec.private_ip})

    def ensure_deleted_lb(self, ctx: ReconcileContext) -> None:
        client = self._scope.client
        spec = self._scope.control_plane_lb_spec()
        try:
            zone, _ = lb_spec(client.zones, spec)
        except ReconcileError:
            # Nothing can have been created in an invalid zone.
            return

        lb: LoadBalancer | None = None
        with ignore_not_found():
            lb = client.find_lb(ctx, zone, self._scope.resource_tags(MAIN_LB_TAG))
        if lb is None:
            return

        logger.info("Deleting main LB %s", lb.id)
        client.delete_lb(ctx, zone, lb.id, release_ip=spec.ip is None)

    def ensure_extra_lbs(
        self, ctx: ReconcileContext, *, delete: bool = False
    ) -> list[LoadBalancer]:
        # An empty desired list removes every extra LB.
        desired: list[LoadBalancerSpec] = []
        if not delete:
            desired = self._scope.control_plane_extra_lb_specs()

        ensurer = ResourceEnsurer(ExtraLoadBalancerReconciler(self._scope))
        return ensurer.ensure(ctx, desired)

    def ensure_private_network(
        self, ctx: ReconcileContext, lbs: Sequence[LoadBalancer]
    ) -> list[LoadBalancer]:
        """Attach every LB to the cluster private network and resolve its private IP.

        A pinned ``private_ip`` must be available in IPAM when the LB is attached.
        The others get the address IPAM booked for them. Returns the LBs with
        ``private_ip`` set, in the same order.
        """
        pn_id = self._scope.private_network_id()
        if pn_id is None:
            return list(lbs)

        client = self._scope.client
        available: list[PrivateIP] | None = None

        for lb in lbs:
            attachment: LBPrivateNetwork | None = None
            with ignore_not_found():
                attachment = client.find_lb_private_network(ctx, lb.zone, lb.id, pn_id)
            if attachment is not None:
                continue

            ip_id: str | None = None
            if lb.private_ip is not None:
                if available is None:
                    available = client.find_available_private_ips(ctx, pn_id)
                match = next((ip for ip in available if ip.address == lb.private_ip), None)
                if match is None:
                    raise TerminalError(
                        f"did not find available IP with address {lb.private_ip} in IPAM"
                    )
                ip_id = match.id

            logger.info("Attaching LB %s to private network %s", lb.id, pn_id)
            client.attach_lb_private_network(ctx, lb.zone, lb.id, pn_id, ip_id)

        missing = [lb.id for lb in lbs if lb.private_ip is None]
        if not missing:
            return list(lbs)

        ips = client.find_lb_private_ips(ctx, pn_id, missing)
        booked = {ip.resource_id: ip.address for ip in ips}
        resolved: list[LoadBalancer] = []
        for lb in lbs:
            if lb.private_ip is None:
                if lb.id not in booked:
                    raise TransientError(
                        f"private IP for lb {lb.name} is not yet available in IPAM",
                        requeue_after=PRIVATE_IP_NOT_READY_REQUEUE,
                    )
                lb = lb.model_copy(update={"private_ip": booked[lb.id]})
            resolved.append(lb)
        return resolved

    def _get_or_create_backend(
        self,
        ctx: ReconcileContext,
        lb: LoadBalancer,
        servers: list[str],
        *,
        update_servers: bool,
    ) -> Backend:
        client = self._scope.client
        servers = sorted(servers)

        backend: Backend | None = None
        with ignore_not_found():
            backend = client.find_backend(ctx, lb.zone, lb.id, BACKEND_NAME)

        if backend is None:
            logger.info("Creating backend on LB %s", lb.id)
            return client.create_backend(
                ctx, lb.zone, lb.id, BACKEND_NAME, servers, BACKEND_CONTROL_PLANE_PORT
            )

        if update_servers and servers != sorted(backend.pool):
            logger.info("Setting backend servers of LB %s: %s", lb.id, servers)
            return client.set_backend_servers(ctx, lb.zone, backend.id, servers)

        return backend

    def ensure_backends(
        self, ctx: ReconcileContext, main_lb: LoadBalancer, extra_lbs: Sequence[LoadBalancer]
    ) -> list[Backend]:
        """Ensure every LB has a backend. The primary's pool comes first."""
        main_backend = self._get_or_create_backend(ctx, main_lb, [], update_servers=False)
        backends = [main_backend]
        for lb in extra_lbs:
            backends.append(
                self._get_or_create_backend(ctx, lb, main_backend.pool, update_servers=True)
            )
        return backends

    def ensure_frontends(
        self, ctx: ReconcileContext, backends: Sequence[Backend]
    ) -> dict[str, Frontend]:
        """Ensure one frontend per LB, keyed by LB ID. Existing frontends are never modified."""
        client = self._scope.client
        port = self._scope.api_server_port
        frontend_by_lb: dict[str, Frontend] = {}

        for backend in backends:
            frontend: Frontend | None = None
            with ignore_not_found():
                frontend = client.find_frontend(ctx, backend.zone, backend.lb_id, FRONTEND_NAME)

            if frontend is None:
                logger.info("Creating frontend on LB %s (port %d)", backend.lb_id, port)
                frontend = client.create_frontend(
                    ctx, backend.zone, backend.lb_id, FRONTEND_NAME, backend.id, port
                )
            elif frontend.inbound_port != port:
                # TODO: recreate the frontend (and its ACLs) once port changes are supported.
                logger.warning(
                    "Frontend %s listens on port %d but the API server port is %d",
                    frontend.id,
                    frontend.inbound_port,
                    port,
                )

            frontend_by_lb[backend.lb_id] = frontend

        return frontend_by_lb
