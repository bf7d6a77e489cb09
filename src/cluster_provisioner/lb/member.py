"""Per-member registration on the control-plane load balancers.

Each control-plane member adds its node IP to the backend pool of every
control-plane load balancer and gets its own allow rule, named after the
member, matching its current public egress IPs.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cluster_provisioner.engine.errors import ProvisionerError, ignore_not_found, is_not_found
from cluster_provisioner.lb.acl import DesiredACL, ensure_acl
from cluster_provisioner.lb.spec import BACKEND_NAME, EXTRA_LB_TAG, FRONTEND_NAME, MAIN_LB_TAG
from cluster_provisioner.resources import ACLAction, LBStatus

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cluster_provisioner.core.context import ReconcileContext
    from cluster_provisioner.core.scope import ClusterScope
    from cluster_provisioner.resources import LoadBalancer

logger = logging.getLogger(__name__)

MEMBER_ACL_INDEX = 1


class MemberAccessService:
    def __init__(self, scope: ClusterScope, member_name: str) -> None:
        self._scope = scope
        self._member_name = member_name

    @property
    def acl_name(self) -> str:
        return self._scope.resource_name(self._member_name)

    def find_control_plane_lbs(self, ctx: ReconcileContext) -> list[LoadBalancer]:
        """Extra LBs followed by the primary LB."""
        client = self._scope.client
        zone = client.zones.zone_or_default(self._scope.control_plane_lb_spec().zone)
        main_lb = client.find_lb(ctx, zone, self._scope.resource_tags(MAIN_LB_TAG))
        extra_lbs = client.find_lbs(ctx, self._scope.resource_tags(EXTRA_LB_TAG))
        return [*extra_lbs, main_lb]

    def reconcile(self, ctx: ReconcileContext, node_ip: str, public_ips: Sequence[str]) -> None:
        lbs = self.find_control_plane_lbs(ctx)
        self.ensure_backend_membership(ctx, lbs, node_ip, deletion=False)
        self.ensure_member_acl(ctx, lbs, list(public_ips), deletion=False)

    def delete(self, ctx: ReconcileContext, node_ip: str) -> None:
        lbs: list[LoadBalancer] = []
        with ignore_not_found():
            lbs = self.find_control_plane_lbs(ctx)

        self.ensure_member_acl(ctx, lbs, [], deletion=True)
        self.ensure_backend_membership(ctx, lbs, node_ip, deletion=True)

    def ensure_backend_membership(
        self,
        ctx: ReconcileContext,
        lbs: Sequence[LoadBalancer],
        node_ip: str,
        *,
        deletion: bool,
    ) -> None:
        client = self._scope.client
        for lb in lbs:
            if lb.status == LBStatus.DELETING:
                continue

            backend = client.find_backend(ctx, lb.zone, lb.id, BACKEND_NAME)
            if deletion and node_ip in backend.pool:
                logger.info("Removing %s from backend of LB %s", node_ip, lb.id)
                client.remove_backend_server(ctx, lb.zone, backend.id, node_ip)
            elif not deletion and node_ip not in backend.pool:
                logger.info("Adding %s to backend of LB %s", node_ip, lb.id)
                client.add_backend_server(ctx, lb.zone, backend.id, node_ip)

    def ensure_member_acl(
        self,
        ctx: ReconcileContext,
        lbs: Sequence[LoadBalancer],
        public_ips: list[str],
        *,
        deletion: bool,
    ) -> None:
        client = self._scope.client
        desired = DesiredACL(self.acl_name, ACLAction.ALLOW, MEMBER_ACL_INDEX, public_ips)

        for lb in lbs:
            if lb.status == LBStatus.DELETING:
                continue

            try:
                frontend = client.find_frontend(ctx, lb.zone, lb.id, FRONTEND_NAME)
            except ProvisionerError as exc:
                # Nothing to remove from an LB that never got a frontend.
                if deletion and is_not_found(exc):
                    continue
                raise

            ensure_acl(client, ctx, frontend, desired)
