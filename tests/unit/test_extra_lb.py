"""Tests for the secondary load balancer reconciler."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from cluster_provisioner.engine.ensurer import ResourceEnsurer
from cluster_provisioner.engine.errors import TerminalError
from cluster_provisioner.lb.extra import ExtraLoadBalancerReconciler
from cluster_provisioner.resources import LoadBalancerSpec

if TYPE_CHECKING:
    from collections.abc import Callable

    from cluster_provisioner.core import ClusterScope, ReconcileContext
    from tests.unit.fakes import FakeCloud

OWNER = ["created-by=cluster-provisioner", "cluster-namespace=infra", "cluster-name=demo"]
EXTRA = [*OWNER, "lb=extra"]
MANAGED = [*EXTRA, "lb-ip=managed"]


@pytest.fixture
def rec(make_scope: Callable[..., ClusterScope]) -> ExtraLoadBalancerReconciler:
    return ExtraLoadBalancerReconciler(make_scope())


class TestNaming:
    def test_desired_zone_defaults_to_region_first_zone(
        self, rec: ExtraLoadBalancerReconciler
    ) -> None:
        assert rec.get_desired_zone(LoadBalancerSpec()) == "fr-par-1"
        assert rec.get_desired_zone(LoadBalancerSpec(zone="fr-par-3")) == "fr-par-3"

    def test_desired_zone_outside_region_is_rejected(
        self, rec: ExtraLoadBalancerReconciler
    ) -> None:
        with pytest.raises(TerminalError, match="zone nl-ams-1 must be one of"):
            rec.get_desired_zone(LoadBalancerSpec(zone="nl-ams-1"))

    def test_desired_name_is_positional(self, rec: ExtraLoadBalancerReconciler) -> None:
        assert rec.get_desired_resource_name(0) == "demo-0"
        assert rec.get_desired_resource_name(2) == "demo-2"


class TestShouldKeep:
    def test_keeps_managed_ip_lb(
        self, cloud: FakeCloud, ctx: ReconcileContext, rec: ExtraLoadBalancerReconciler
    ) -> None:
        lb = cloud.add_lb("fr-par-1", "demo-0", MANAGED, addresses=["51.15.0.1"])
        assert rec.should_keep_resource(ctx, lb, LoadBalancerSpec())

    def test_drops_lb_without_ip(
        self, cloud: FakeCloud, ctx: ReconcileContext, rec: ExtraLoadBalancerReconciler
    ) -> None:
        lb = cloud.add_lb("fr-par-1", "demo-0", MANAGED)
        assert not rec.should_keep_resource(ctx, lb, LoadBalancerSpec())

    def test_drops_unmanaged_ip_when_none_pinned(
        self, cloud: FakeCloud, ctx: ReconcileContext, rec: ExtraLoadBalancerReconciler
    ) -> None:
        lb = cloud.add_lb("fr-par-1", "demo-0", EXTRA, addresses=["51.15.0.1"])
        assert not rec.should_keep_resource(ctx, lb, LoadBalancerSpec())

    def test_keeps_lb_holding_pinned_ip(
        self, cloud: FakeCloud, ctx: ReconcileContext, rec: ExtraLoadBalancerReconciler
    ) -> None:
        lb = cloud.add_lb("fr-par-1", "demo-0", EXTRA, addresses=["51.15.0.1"])
        assert rec.should_keep_resource(ctx, lb, LoadBalancerSpec(ip="51.15.0.1"))

    def test_drops_lb_without_pinned_ip(
        self, cloud: FakeCloud, ctx: ReconcileContext, rec: ExtraLoadBalancerReconciler
    ) -> None:
        lb = cloud.add_lb("fr-par-1", "demo-0", MANAGED, addresses=["51.15.0.1"])
        assert not rec.should_keep_resource(ctx, lb, LoadBalancerSpec(ip="51.15.0.2"))


class TestMutations:
    def test_create_with_pinned_ip(
        self, cloud: FakeCloud, ctx: ReconcileContext, rec: ExtraLoadBalancerReconciler
    ) -> None:
        ip = cloud.add_ip("fr-par-2", "51.15.0.2")

        lb = rec.create_resource(ctx, "fr-par-2", "demo-0", LoadBalancerSpec(ip="51.15.0.2"))

        assert lb.tags == EXTRA
        assert cloud.mutations() == [("create_lb", "fr-par-2", "demo-0", "lb-s", ip.id)]

    def test_create_with_missing_pinned_ip(
        self, cloud: FakeCloud, ctx: ReconcileContext, rec: ExtraLoadBalancerReconciler
    ) -> None:
        with pytest.raises(TerminalError, match="failed to find IP"):
            rec.create_resource(ctx, "fr-par-2", "demo-0", LoadBalancerSpec(ip="51.15.0.2"))
        assert cloud.mutations() == []

    def test_create_with_provider_ip(
        self, cloud: FakeCloud, ctx: ReconcileContext, rec: ExtraLoadBalancerReconciler
    ) -> None:
        lb = rec.create_resource(ctx, "fr-par-1", "demo-0", LoadBalancerSpec(type="LB-GP-M"))

        assert lb.tags == MANAGED
        assert cloud.mutations() == [("create_lb", "fr-par-1", "demo-0", "lb-gp-m", None)]

    def test_update_migrates_only_on_type_change(
        self, cloud: FakeCloud, ctx: ReconcileContext, rec: ExtraLoadBalancerReconciler
    ) -> None:
        lb = cloud.add_lb("fr-par-1", "demo-0", MANAGED, addresses=["51.15.0.1"])

        rec.update_resource(ctx, lb, LoadBalancerSpec())
        rec.update_resource(ctx, lb, LoadBalancerSpec(type="LB-S"))
        assert cloud.mutations() == []

        rec.update_resource(ctx, lb, LoadBalancerSpec(type="LB-GP-M"))
        assert cloud.mutations() == [("migrate_lb", lb.id, "lb-gp-m")]

    @pytest.mark.parametrize(("tags", "release"), [(MANAGED, True), (EXTRA, False)])
    def test_delete_releases_managed_ip_only(
        self,
        cloud: FakeCloud,
        ctx: ReconcileContext,
        rec: ExtraLoadBalancerReconciler,
        tags: list[str],
        release: bool,
    ) -> None:
        lb = cloud.add_lb("fr-par-1", "demo-0", tags, addresses=["51.15.0.1"])

        rec.delete_resource(ctx, lb)

        assert cloud.mutations() == [("delete_lb", lb.id, release)]


class TestConvergence:
    def test_lb_without_ip_is_replaced_with_pinned_ip(
        self, cloud: FakeCloud, ctx: ReconcileContext, rec: ExtraLoadBalancerReconciler
    ) -> None:
        old = cloud.add_lb("fr-par-1", "demo-0", MANAGED)
        ip = cloud.add_ip("fr-par-1", "1.2.3.4")

        result = ResourceEnsurer(rec).ensure(ctx, [LoadBalancerSpec(ip="1.2.3.4")])

        assert cloud.mutations() == [
            ("delete_lb", old.id, True),
            ("create_lb", "fr-par-1", "demo-0", "lb-s", ip.id),
        ]
        assert result[0].has_ip("1.2.3.4")

    def test_switching_to_pinned_ip_recreates(
        self, cloud: FakeCloud, ctx: ReconcileContext, rec: ExtraLoadBalancerReconciler
    ) -> None:
        old = cloud.add_lb("fr-par-1", "demo-0", MANAGED, addresses=["51.15.0.1"])
        ip = cloud.add_ip("fr-par-1", "51.15.0.9")

        result = ResourceEnsurer(rec).ensure(ctx, [LoadBalancerSpec(ip="51.15.0.9")])

        assert cloud.mutations() == [
            ("delete_lb", old.id, True),
            ("create_lb", "fr-par-1", "demo-0", "lb-s", ip.id),
        ]
        assert [lb.name for lb in result] == ["demo-0"]

    def test_reordering_within_zone_recreates(
        self, cloud: FakeCloud, ctx: ReconcileContext, rec: ExtraLoadBalancerReconciler
    ) -> None:
        a = cloud.add_ip("fr-par-1", "51.15.0.1")
        b = cloud.add_ip("fr-par-1", "51.15.0.2")
        ensurer = ResourceEnsurer(rec)
        ensurer.ensure(ctx, [LoadBalancerSpec(ip=a.address), LoadBalancerSpec(ip=b.address)])
        cloud.reset_calls()

        ensurer.ensure(ctx, [LoadBalancerSpec(ip=b.address), LoadBalancerSpec(ip=a.address)])

        assert len(cloud.mutations("delete_lb")) == 2
        assert len(cloud.mutations("create_lb")) == 2

    def test_unsupported_zone_fails_before_any_deletion(
        self, cloud: FakeCloud, ctx: ReconcileContext, rec: ExtraLoadBalancerReconciler
    ) -> None:
        cloud.add_lb("fr-par-1", "demo-0", MANAGED, addresses=["51.15.0.1"])

        with pytest.raises(TerminalError):
            ResourceEnsurer(rec).ensure(ctx, [LoadBalancerSpec(zone="nl-ams-1")])

        assert cloud.mutations() == []
        assert len(cloud.lbs) == 1


class TestPrivateNetwork:
    @pytest.fixture
    def scope(self, make_scope: Callable[..., ClusterScope]) -> ClusterScope:
        return make_scope(
            {
                "private_network": {"enabled": True, "id": "pn-1"},
                "control_plane_load_balancer": {"private": True},
            }
        )

    def test_private_lb_without_public_ip_is_kept(
        self, cloud: FakeCloud, ctx: ReconcileContext, scope: ClusterScope
    ) -> None:
        lb = cloud.add_lb("fr-par-1", "demo-0", EXTRA)

        assert ExtraLoadBalancerReconciler(scope).should_keep_resource(ctx, lb, LoadBalancerSpec())

    def test_drops_lb_holding_another_private_ip(
        self, cloud: FakeCloud, ctx: ReconcileContext, scope: ClusterScope
    ) -> None:
        lb = cloud.add_lb("fr-par-1", "demo-0", EXTRA)
        cloud.attach(lb, "pn-1", "10.0.0.9")
        rec = ExtraLoadBalancerReconciler(scope)

        assert not rec.should_keep_resource(ctx, lb, LoadBalancerSpec(private_ip="10.0.0.5"))
        assert rec.should_keep_resource(ctx, lb, LoadBalancerSpec(private_ip="10.0.0.9"))

    def test_keeps_lb_not_attached_yet(
        self, cloud: FakeCloud, ctx: ReconcileContext, scope: ClusterScope
    ) -> None:
        lb = cloud.add_lb("fr-par-1", "demo-0", EXTRA)
        rec = ExtraLoadBalancerReconciler(scope)

        assert rec.should_keep_resource(ctx, lb, LoadBalancerSpec(private_ip="10.0.0.5"))

    def test_private_ip_ignored_without_private_network(
        self, cloud: FakeCloud, ctx: ReconcileContext, rec: ExtraLoadBalancerReconciler
    ) -> None:
        lb = cloud.add_lb("fr-par-1", "demo-0", MANAGED, addresses=["51.15.0.1"])
        cloud.attach(lb, "pn-1", "10.0.0.9")

        assert rec.should_keep_resource(ctx, lb, LoadBalancerSpec(private_ip="10.0.0.5"))

    def test_create_private_lb_carries_desired_private_ip(
        self, cloud: FakeCloud, ctx: ReconcileContext, scope: ClusterScope
    ) -> None:
        rec = ExtraLoadBalancerReconciler(scope)

        lb = rec.create_resource(ctx, "fr-par-1", "demo-0", LoadBalancerSpec(private_ip="10.0.0.5"))

        assert lb.ips == []
        assert lb.private_ip == "10.0.0.5"
        assert rec.update_resource(ctx, lb, LoadBalancerSpec()).private_ip is None
