"""Admission rules of the control-plane load balancers.

Three cluster-wide rules live on the primary load balancer's frontend:

=================  ======  =========================================  ==========
name               action  match                                      index
=================  ======  =========================================  ==========
allowed-ranges     allow   declared allowed ranges                    0
public-gateway     allow   IPv4 of the cluster's public gateways      0
deny-all           deny    ``0.0.0.0/0`` and ``::/0``                 2**31 - 1
=================  ======  =========================================  ==========

``deny-all`` only exists when allowed ranges are declared: without them the API
server stays reachable from anywhere. Once the primary's rules have settled,
its complete rule list is copied to every secondary load balancer whose list
differs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cluster_provisioner.engine.errors import ignore_not_found
from cluster_provisioner.lb.compare import acls_equal, ips_equal
from cluster_provisioner.resources import ACLAction
from cluster_provisioner.resources.acl import MAX_ACL_INDEX

if TYPE_CHECKING:
    from collections.abc import Mapping

    from cluster_provisioner.core.client import LoadBalancerClient
    from cluster_provisioner.core.context import ReconcileContext
    from cluster_provisioner.core.scope import ClusterScope
    from cluster_provisioner.resources import ACLRule, Frontend, LoadBalancer

logger = logging.getLogger(__name__)

ACL_INDEX = 0
DENY_ALL_ACL_INDEX = MAX_ACL_INDEX

ALLOWED_RANGES_ACL_NAME = "allowed-ranges"
PUBLIC_GATEWAY_ACL_NAME = "public-gateway"
DENY_ALL_ACL_NAME = "deny-all"

DENY_ALL_SUBNETS = ("0.0.0.0/0", "::/0")


@dataclass(frozen=True)
class DesiredACL:
    name: str
    action: ACLAction
    index: int
    ips: list[str]


def ensure_acl(
    client: LoadBalancerClient,
    ctx: ReconcileContext,
    frontend: Frontend,
    desired: DesiredACL,
) -> None:
    """Converge one named rule on *frontend*.

    Without IPs the rule is removed (or never created). Subnets are compared
    regardless of order.
    """
    acl: ACLRule | None = None
    with ignore_not_found():
        acl = client.find_acl_by_name(ctx, frontend.zone, frontend.id, desired.name)

    if not desired.ips:
        if acl is not None:
            logger.info("Deleting ACL %s on frontend %s", desired.name, frontend.id)
            client.delete_acl(ctx, frontend.zone, acl.id)
        return

    if acl is None:
        logger.info("Creating ACL %s on frontend %s", desired.name, frontend.id)
        client.create_acl(
            ctx,
            frontend.zone,
            frontend.id,
            desired.name,
            desired.index,
            desired.action,
            desired.ips,
        )
        return

    if not ips_equal(desired.ips, acl.ip_subnet):
        logger.info("Updating ACL %s on frontend %s", desired.name, frontend.id)
        client.update_acl(
            ctx, frontend.zone, acl.id, desired.name, desired.index, desired.action, desired.ips
        )


class ACLSynchronizer:
    def __init__(self, scope: ClusterScope) -> None:
        self._scope = scope

    def desired_acls(self, ctx: ReconcileContext) -> list[DesiredACL]:
        allowed_ranges = self._scope.allowed_ranges()
        deny_all = list(DENY_ALL_SUBNETS) if allowed_ranges else []
        return [
            DesiredACL(ALLOWED_RANGES_ACL_NAME, ACLAction.ALLOW, ACL_INDEX, allowed_ranges),
            DesiredACL(
                PUBLIC_GATEWAY_ACL_NAME, ACLAction.ALLOW, ACL_INDEX, self._public_gateway_ips(ctx)
            ),
            DesiredACL(DENY_ALL_ACL_NAME, ACLAction.DENY, DENY_ALL_ACL_INDEX, deny_all),
        ]

    def _public_gateway_ips(self, ctx: ReconcileContext) -> list[str]:
        if not self._scope.has_private_network:
            return []
        gateways = self._scope.client.find_gateways(ctx, self._scope.resource_tags())
        return [gw.ipv4 for gw in gateways if gw.ipv4]

    def ensure(
        self,
        ctx: ReconcileContext,
        main_lb: LoadBalancer,
        frontend_by_lb: Mapping[str, Frontend],
    ) -> None:
        main_frontend = frontend_by_lb[main_lb.id]

        for desired in self.desired_acls(ctx):
            ensure_acl(self._scope.client, ctx, main_frontend, desired)

        if len(frontend_by_lb) > 1:
            self._replicate(ctx, main_lb, frontend_by_lb)

    def _replicate(
        self,
        ctx: ReconcileContext,
        main_lb: LoadBalancer,
        frontend_by_lb: Mapping[str, Frontend],
    ) -> None:
        """Copy the primary's rule list to every secondary frontend that differs."""
        client = self._scope.client
        main_frontend = frontend_by_lb[main_lb.id]
        main_acls = client.list_acls(ctx, main_frontend.zone, main_frontend.id)

        for lb_id, frontend in frontend_by_lb.items():
            if lb_id == main_lb.id:
                continue

            extra_acls = client.list_acls(ctx, frontend.zone, frontend.id)
            if acls_equal(main_acls, extra_acls):
                continue

            logger.info("Replicating %d ACLs to frontend %s", len(main_acls), frontend.id)
            client.set_acls(ctx, frontend.zone, frontend.id, [acl.to_spec() for acl in main_acls])
