"""Desired-state convergence of a resource collection.

A ``ResourceEnsurer`` drives a list of live resources toward a list of desired
specs. Identity is the pair (zone, generated name), where the generated name
comes from the position of the spec among the specs of the same zone. Nothing
is kept between calls: live resources are listed again on every ``ensure``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cluster_provisioner.core.context import ReconcileContext

logger = logging.getLogger(__name__)

D = TypeVar("D")
R = TypeVar("R")


class ResourceReconciler(ABC, Generic[D, R]):
    """Capability object telling the ensurer how to read and mutate one resource kind."""

    @abstractmethod
    def list_resources(self, ctx: ReconcileContext) -> list[R]:
        """List the resources that currently exist."""

    @abstractmethod
    def create_resource(self, ctx: ReconcileContext, zone: str, name: str, desired: D) -> R:
        """Create a new resource with the given zone, name and spec."""

    @abstractmethod
    def update_resource(self, ctx: ReconcileContext, resource: R, desired: D) -> R:
        """Update an existing resource. Must be a no-op when nothing differs."""

    @abstractmethod
    def delete_resource(self, ctx: ReconcileContext, resource: R) -> None: ...

    @abstractmethod
    def get_resource_zone(self, resource: R) -> str: ...

    @abstractmethod
    def get_resource_name(self, resource: R) -> str: ...

    @abstractmethod
    def get_desired_zone(self, desired: D) -> str: ...

    @abstractmethod
    def get_desired_resource_name(self, index: int) -> str:
        """Name of the resource for the spec at *index* within its zone."""

    @abstractmethod
    def should_keep_resource(self, ctx: ReconcileContext, resource: R, desired: D) -> bool:
        """True if *resource* already matches *desired* and can be kept."""


class ResourceEnsurer(Generic[D, R]):
    """Ensures desired resources exist and removes the ones no longer desired."""

    def __init__(self, reconciler: ResourceReconciler[D, R]) -> None:
        self._reconciler = reconciler

    def ensure(self, ctx: ReconcileContext, desired: Sequence[D]) -> list[R]:
        """Converge live resources to *desired*.

        Returns kept and created resources; callers must only rely on the
        (zone, name) set, not on the order. An empty *desired* deletes every
        listed resource. A failure aborts the call without rolling back what was
        already deleted or updated.
        """
        by_zone = self._index_by_zone(desired)
        kept = self._ensure_existing(ctx, by_zone)
        created = self._create_missing(ctx, kept, by_zone)
        return kept + created

    def _index_by_zone(self, desired: Sequence[D]) -> dict[str, list[D]]:
        by_zone: dict[str, list[D]] = {}
        for d in desired:
            by_zone.setdefault(self._reconciler.get_desired_zone(d), []).append(d)
        return by_zone

    def _ensure_existing(self, ctx: ReconcileContext, by_zone: dict[str, list[D]]) -> list[R]:
        """Keep (and update) matching resources, delete everything else."""
        rec = self._reconciler
        kept: list[R] = []
        retained: set[tuple[str, str]] = set()

        for resource in rec.list_resources(ctx):
            zone = rec.get_resource_zone(resource)
            name = rec.get_resource_name(resource)
            keep = False

            # At most one live resource per (zone, name); later duplicates are deleted.
            candidates: list[D] = [] if (zone, name) in retained else by_zone.get(zone, [])
            for i, desired in enumerate(candidates):
                if rec.get_desired_resource_name(i) != name:
                    continue
                keep = rec.should_keep_resource(ctx, resource, desired)
                if keep:
                    resource = rec.update_resource(ctx, resource, desired)
                # Only the first candidate with a matching name is considered.
                break

            if not keep:
                logger.debug("Resource %s in %s is not desired anymore", name, zone)
                rec.delete_resource(ctx, resource)
                continue

            logger.debug("Keeping resource %s in %s", name, zone)
            retained.add((zone, name))
            kept.append(resource)

        return kept

    def _create_missing(
        self, ctx: ReconcileContext, kept: list[R], by_zone: dict[str, list[D]]
    ) -> list[R]:
        rec = self._reconciler
        existing = {(rec.get_resource_zone(r), rec.get_resource_name(r)) for r in kept}
        created: list[R] = []

        for zone, specs in by_zone.items():
            for i, desired in enumerate(specs):
                name = rec.get_desired_resource_name(i)
                if (zone, name) in existing:
                    continue
                created.append(rec.create_resource(ctx, zone, name, desired))

        return created
