"""Entry points called by the external control loop, once per cluster per tick."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from cluster_provisioner.core.status import READY_CONDITION, Condition, ConditionStatus
from cluster_provisioner.engine.errors import find_reconcile_error
from cluster_provisioner.lb.service import LoadBalancerService

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from cluster_provisioner.core.context import ReconcileContext
    from cluster_provisioner.core.scope import ClusterScope

logger = logging.getLogger(__name__)


class ServiceReconciler(Protocol):
    def name(self) -> str: ...

    def reconcile(self, ctx: ReconcileContext) -> None: ...

    def delete(self, ctx: ReconcileContext) -> None: ...


@dataclass(frozen=True)
class ReconcileResult:
    """What the control loop should do next.

    ``requeue_after`` is set after a transient failure; ``terminal`` means the
    cluster needs operator action and must not be retried blindly.
    """

    requeue_after: float | None = None
    terminal: bool = False

    @property
    def succeeded(self) -> bool:
        return self.requeue_after is None and not self.terminal


def default_services(scope: ClusterScope) -> list[ServiceReconciler]:
    return [LoadBalancerService(scope)]


def _run(
    scope: ClusterScope,
    ctx: ReconcileContext,
    services: Sequence[ServiceReconciler],
    step: Callable[[ServiceReconciler, ReconcileContext], None],
    action: str,
) -> ReconcileResult:
    for service in services:
        try:
            step(service, ctx)
        except Exception as exc:
            reconcile_error = find_reconcile_error(exc)
            if reconcile_error is None:
                raise

            if reconcile_error.is_terminal:
                logger.error("Failed to %s service %s: %s", action, service.name(), exc)
                scope.status.set_condition(
                    Condition(
                        type=READY_CONDITION,
                        status=ConditionStatus.FALSE,
                        reason="TerminalError",
                        message=str(exc),
                    )
                )
                return ReconcileResult(terminal=True)

            logger.info(
                "Transient failure to %s service %s, retrying: %s", action, service.name(), exc
            )
            scope.status.set_condition(
                Condition(
                    type=READY_CONDITION,
                    status=ConditionStatus.FALSE,
                    reason="TransientError",
                    message=str(exc),
                )
            )
            return ReconcileResult(requeue_after=reconcile_error.requeue_after)

    scope.status.set_condition(Condition(type=READY_CONDITION, status=ConditionStatus.TRUE))
    return ReconcileResult()


def reconcile_cluster(
    scope: ClusterScope,
    ctx: ReconcileContext,
    services: Sequence[ServiceReconciler] | None = None,
) -> ReconcileResult:
    """Run every service reconciler of the cluster in order.

    Terminal and transient errors are recorded as a ``Ready=False`` condition
    and turned into a result. Any other error propagates.
    """
    services = default_services(scope) if services is None else services
    logger.info("Reconciling cluster %s", scope.resource_name())
    return _run(scope, ctx, services, lambda s, c: s.reconcile(c), "reconcile")


def delete_cluster(
    scope: ClusterScope,
    ctx: ReconcileContext,
    services: Sequence[ServiceReconciler] | None = None,
) -> ReconcileResult:
    """Delete the provider resources of the cluster, services in reverse order."""
    services = default_services(scope) if services is None else services
    logger.info("Deleting cluster %s", scope.resource_name())
    return _run(scope, ctx, list(reversed(services)), lambda s, c: s.delete(c), "delete")
