"""Convergence engine and error taxonomy."""

from cluster_provisioner.engine.errors import (
    CallError,
    ForbiddenError,
    NotFoundError,
    PreconditionFailedError,
    ProvisionerError,
    ReconcileCanceled,
    ReconcileError,
    TerminalError,
    TooManyFoundError,
    TransientError,
    find_reconcile_error,
    is_forbidden,
    is_not_found,
    is_precondition_failed,
    is_too_many_found,
)
from cluster_provisioner.engine.ensurer import ResourceEnsurer, ResourceReconciler

__all__ = [
    "CallError",
    "ForbiddenError",
    "NotFoundError",
    "PreconditionFailedError",
    "ProvisionerError",
    "ReconcileCanceled",
    "ReconcileError",
    "ResourceEnsurer",
    "ResourceReconciler",
    "TerminalError",
    "TooManyFoundError",
    "TransientError",
    "find_reconcile_error",
    "is_forbidden",
    "is_not_found",
    "is_precondition_failed",
    "is_too_many_found",
]
