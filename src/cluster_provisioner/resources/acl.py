"""Load balancer frontend ACL rules."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

MAX_ACL_INDEX = 2**31 - 1


class ACLAction(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


class ACLSpec(BaseModel):
    """An ACL rule without provider identity, as sent in bulk updates."""

    name: str
    index: int = Field(ge=0, le=MAX_ACL_INDEX)
    action: ACLAction
    ip_subnet: list[str] = Field(default_factory=list)
    description: str = ""


class ACLRule(ACLSpec):
    id: str
    frontend_id: str

    def to_spec(self) -> ACLSpec:
        return ACLSpec(
            name=self.name,
            index=self.index,
            action=self.action,
            ip_subnet=list(self.ip_subnet),
            description=self.description,
        )
