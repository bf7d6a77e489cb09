"""Cluster status written back after each reconciliation."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Protocol

from pydantic import BaseModel, Field

READY_CONDITION = "Ready"


class ConditionStatus(str, Enum):
    TRUE = "True"
    FALSE = "False"


class Condition(BaseModel):
    type: str
    status: ConditionStatus
    reason: str = ""
    message: str = ""
    last_transition_time: datetime = Field(default_factory=lambda: datetime.now(UTC))


class StatusSink(Protocol):
    """Where the reconcilers publish observable results."""

    def set_load_balancer_ip(self, ip: str) -> None: ...

    def set_extra_load_balancer_ips(self, ips: list[str]) -> None: ...

    def set_condition(self, condition: Condition) -> None: ...


class ClusterStatus(BaseModel):
    """In-memory ``StatusSink`` that callers persist wherever they keep status."""

    load_balancer_ip: str | None = None
    extra_load_balancer_ips: list[str] = Field(default_factory=list)
    conditions: list[Condition] = Field(default_factory=list)

    def set_load_balancer_ip(self, ip: str) -> None:
        self.load_balancer_ip = ip

    def set_extra_load_balancer_ips(self, ips: list[str]) -> None:
        self.extra_load_balancer_ips = list(ips)

    def set_condition(self, condition: Condition) -> None:
        """Add or replace the condition of the same type.

        The transition time is kept when the status does not change.
        """
        for i, existing in enumerate(self.conditions):
            if existing.type != condition.type:
                continue
            if existing.status == condition.status:
                condition = condition.model_copy(
                    update={"last_transition_time": existing.last_transition_time}
                )
            self.conditions[i] = condition
            return
        self.conditions.append(condition)

    def get_condition(self, condition_type: str) -> Condition | None:
        return next((c for c in self.conditions if c.type == condition_type), None)

    def load_balancer_ips(self) -> list[str]:
        """All control-plane load balancer IPs, sorted."""
        ips = [*self.extra_load_balancer_ips]
        if self.load_balancer_ip:
            ips.append(self.load_balancer_ip)
        return sorted(ips)
