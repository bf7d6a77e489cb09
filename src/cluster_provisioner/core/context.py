"""Per-invocation reconcile context (deadline and cancellation)."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field

from cluster_provisioner.engine.errors import ReconcileCanceled


@dataclass(frozen=True)
class ReconcileContext:
    """Context passed to every provider call of one reconciliation.

    ``deadline`` is a ``time.monotonic()`` timestamp. Nothing is kept between
    invocations: build a fresh context per tick.
    """

    deadline: float | None = None
    _canceled: threading.Event = field(default_factory=threading.Event, repr=False, compare=False)

    @classmethod
    def with_timeout(cls, seconds: float) -> ReconcileContext:
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self._canceled.set()

    @property
    def canceled(self) -> bool:
        return self._canceled.is_set()

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or ``None`` without deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        """Raise ``ReconcileCanceled`` if the context is canceled or expired."""
        if self.canceled:
            raise ReconcileCanceled("reconcile canceled")
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise ReconcileCanceled("reconcile deadline exceeded")
