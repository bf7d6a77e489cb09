"""Order-insensitive comparisons of ACL rules."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cluster_provisioner.resources import ACLSpec


def ips_equal(a: Sequence[str] | None, b: Sequence[str] | None) -> bool:
    """True if both lists hold the same IP subnets, regardless of order."""
    return sorted(a or []) == sorted(b or [])


def acls_equal(a: Sequence[ACLSpec], b: Sequence[ACLSpec]) -> bool:
    """True if both lists hold the same rules, regardless of order.

    Rules are matched by name and compared on index, action and subnets.
    Descriptions are ignored.
    """
    if len(a) != len(b):
        return False

    for x, y in zip(
        sorted(a, key=lambda acl: acl.name), sorted(b, key=lambda acl: acl.name), strict=True
    ):
        if x.name != y.name or x.index != y.index or x.action != y.action:
            return False
        if not ips_equal(x.ip_subnet, y.ip_subnet):
            return False

    return True
