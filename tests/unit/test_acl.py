"""Tests for the control-plane admission rules."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from cluster_provisioner.lb.acl import (
    DENY_ALL_ACL_INDEX,
    ACLSynchronizer,
    DesiredACL,
    ensure_acl,
)
from cluster_provisioner.lb.service import LoadBalancerService
from cluster_provisioner.resources import ACLAction, ACLSpec

if TYPE_CHECKING:
    from collections.abc import Callable

    from cluster_provisioner.core import ClusterScope, ReconcileContext
    from cluster_provisioner.resources import Frontend
    from tests.unit.fakes import FakeCloud

OWNER = ["created-by=cluster-provisioner", "cluster-namespace=infra", "cluster-name=demo"]


@pytest.fixture
def frontend(cloud: FakeCloud) -> Frontend:
    lb = cloud.add_lb("fr-par-1", "demo", [*OWNER, "lb=main"], addresses=["51.15.0.1"])
    backend = cloud.add_backend(lb, "kube-apiserver", [])
    return cloud.add_frontend(lb, backend, "kube-apiserver", 6443)


def _rules(cloud: FakeCloud, frontend_id: str) -> dict[str, tuple[str, int, list[str]]]:
    return {
        a.name: (a.action.value, a.index, sorted(a.ip_subnet)) for a in cloud.acls_of(frontend_id)
    }


class TestEnsureACL:
    def test_creates_missing_rule(
        self, cloud: FakeCloud, ctx: ReconcileContext, frontend: Frontend
    ) -> None:
        ensure_acl(cloud, ctx, frontend, DesiredACL("a", ACLAction.ALLOW, 0, ["10.0.0.0/8"]))

        assert cloud.mutations() == [("create_acl", frontend.id, "a")]

    def test_empty_ips_never_creates(
        self, cloud: FakeCloud, ctx: ReconcileContext, frontend: Frontend
    ) -> None:
        ensure_acl(cloud, ctx, frontend, DesiredACL("a", ACLAction.ALLOW, 0, []))

        assert cloud.mutations() == []

    def test_empty_ips_deletes_existing(
        self, cloud: FakeCloud, ctx: ReconcileContext, frontend: Frontend
    ) -> None:
        acl = cloud.add_acl(
            frontend, ACLSpec(name="a", index=0, action=ACLAction.ALLOW, ip_subnet=["10.0.0.0/8"])
        )

        ensure_acl(cloud, ctx, frontend, DesiredACL("a", ACLAction.ALLOW, 0, []))

        assert cloud.mutations() == [("delete_acl", acl.id)]

    def test_reordered_subnets_are_not_updated(
        self, cloud: FakeCloud, ctx: ReconcileContext, frontend: Frontend
    ) -> None:
        cloud.add_acl(
            frontend,
            ACLSpec(
                name="a", index=0, action=ACLAction.ALLOW, ip_subnet=["10.0.0.0/8", "1.2.3.4/32"]
            ),
        )

        desired = DesiredACL("a", ACLAction.ALLOW, 0, ["1.2.3.4/32", "10.0.0.0/8"])
        ensure_acl(cloud, ctx, frontend, desired)

        assert cloud.mutations() == []

    def test_changed_subnets_are_updated(
        self, cloud: FakeCloud, ctx: ReconcileContext, frontend: Frontend
    ) -> None:
        acl = cloud.add_acl(
            frontend, ACLSpec(name="a", index=0, action=ACLAction.ALLOW, ip_subnet=["10.0.0.0/8"])
        )

        ensure_acl(cloud, ctx, frontend, DesiredACL("a", ACLAction.ALLOW, 0, ["10.0.0.0/16"]))

        assert cloud.mutations() == [("update_acl", acl.id, "a")]
        assert cloud.acls[acl.id].ip_subnet == ["10.0.0.0/16"]


class TestDesiredACLs:
    def test_open_cluster_has_no_rules(
        self, ctx: ReconcileContext, make_scope: Callable[..., ClusterScope]
    ) -> None:
        desired = ACLSynchronizer(make_scope()).desired_acls(ctx)

        assert all(not d.ips for d in desired)

    def test_allowed_ranges_add_deny_all(
        self, ctx: ReconcileContext, make_scope: Callable[..., ClusterScope]
    ) -> None:
        scope = make_scope({"control_plane_load_balancer": {"allowed_ranges": ["10.0.0.0/8"]}})

        desired = {d.name: d for d in ACLSynchronizer(scope).desired_acls(ctx)}

        assert desired["allowed-ranges"].ips == ["10.0.0.0/8"]
        assert desired["allowed-ranges"].index == 0
        assert desired["deny-all"].action is ACLAction.DENY
        assert desired["deny-all"].index == DENY_ALL_ACL_INDEX == 2**31 - 1
        assert desired["deny-all"].ips == ["0.0.0.0/0", "::/0"]
        assert desired["public-gateway"].ips == []

    def test_gateway_ips_need_private_network(
        self,
        cloud: FakeCloud,
        ctx: ReconcileContext,
        make_scope: Callable[..., ClusterScope],
    ) -> None:
        cloud.add_gateway("fr-par-1", OWNER, "51.158.0.1")
        cloud.add_gateway("fr-par-2", OWNER, None)
        cloud.add_gateway("fr-par-2", ["cluster-name=other"], "51.158.0.2")

        without = {d.name: d for d in ACLSynchronizer(make_scope()).desired_acls(ctx)}
        scope = make_scope({"private_network": {"enabled": True, "id": "pn-1"}})
        with_pn = {d.name: d for d in ACLSynchronizer(scope).desired_acls(ctx)}

        assert without["public-gateway"].ips == []
        assert with_pn["public-gateway"].ips == ["51.158.0.1"]
        # Gateway rule alone does not close the API server.
        assert with_pn["deny-all"].ips == []


class TestSynchronizer:
    def test_rules_replicated_to_extra_lbs(
        self,
        cloud: FakeCloud,
        ctx: ReconcileContext,
        make_scope: Callable[..., ClusterScope],
    ) -> None:
        scope = make_scope(
            {
                "control_plane_load_balancer": {"allowed_ranges": ["10.0.0.0/8"]},
                "control_plane_extra_load_balancers": [{}, {"zone": "fr-par-2"}],
            }
        )

        LoadBalancerService(scope).reconcile(ctx)

        main = cloud.lb_named("fr-par-1", "demo")
        frontends = {f.lb_id: f.id for f in cloud.frontends.values()}
        expected = {
            "allowed-ranges": ("allow", 0, ["10.0.0.0/8"]),
            "deny-all": ("deny", 2**31 - 1, ["0.0.0.0/0", "::/0"]),
        }
        for lb_id, frontend_id in frontends.items():
            assert _rules(cloud, frontend_id) == expected, lb_id
        assert len(cloud.mutations("set_acls")) == 2
        assert {c[1] for c in cloud.mutations("create_acl")} == {frontends[main.id]}

    def test_replication_ignores_order_only_differences(
        self,
        cloud: FakeCloud,
        ctx: ReconcileContext,
        make_scope: Callable[..., ClusterScope],
    ) -> None:
        scope = make_scope(
            {
                "control_plane_load_balancer": {"allowed_ranges": ["10.0.0.0/8", "1.2.3.4/32"]},
                "control_plane_extra_load_balancers": [{}],
            }
        )
        service = LoadBalancerService(scope)
        service.reconcile(ctx)
        extra = cloud.lb_named("fr-par-1", "demo-0")
        extra_frontend = next(f for f in cloud.frontends.values() if f.lb_id == extra.id)
        for acl in cloud.acls_of(extra_frontend.id):
            acl.ip_subnet.reverse()
        cloud.reset_calls()

        service.reconcile(ctx)

        assert cloud.mutations() == []

    def test_drifted_extra_rules_are_replaced(
        self,
        cloud: FakeCloud,
        ctx: ReconcileContext,
        make_scope: Callable[..., ClusterScope],
    ) -> None:
        scope = make_scope(
            {
                "control_plane_load_balancer": {"allowed_ranges": ["10.0.0.0/8"]},
                "control_plane_extra_load_balancers": [{}],
            }
        )
        service = LoadBalancerService(scope)
        service.reconcile(ctx)
        extra = cloud.lb_named("fr-par-1", "demo-0")
        extra_frontend = next(f for f in cloud.frontends.values() if f.lb_id == extra.id)
        cloud.add_acl(
            extra_frontend,
            ACLSpec(name="stray", index=5, action=ACLAction.ALLOW, ip_subnet=["8.8.8.8/32"]),
        )
        cloud.reset_calls()

        service.reconcile(ctx)

        assert cloud.mutations() == [("set_acls", extra_frontend.id)]
        assert "stray" not in _rules(cloud, extra_frontend.id)

    def test_main_rules_updated_when_ranges_change(
        self,
        cloud: FakeCloud,
        ctx: ReconcileContext,
        make_scope: Callable[..., ClusterScope],
    ) -> None:
        LoadBalancerService(
            make_scope({"control_plane_load_balancer": {"allowed_ranges": ["10.0.0.0/8"]}})
        ).reconcile(ctx)
        cloud.reset_calls()

        LoadBalancerService(make_scope()).reconcile(ctx)

        # Allow-list removed: both rules go away and the API server is open again.
        assert [c[0] for c in cloud.mutations()] == ["delete_acl", "delete_acl"]
        assert cloud.acls == {}
