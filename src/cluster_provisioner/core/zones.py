"""Zone resolution and validation."""

from __future__ import annotations

import re
from typing import Protocol

from cluster_provisioner.engine.errors import TerminalError

_ZONE_RE = re.compile(r"^[a-z]{2}-[a-z]{3}-[1-9]$")

# Zone names still accepted by the provider API for backward compatibility.
_LEGACY_ZONES: dict[str, str] = {
    "par1": "fr-par-1",
    "ams1": "nl-ams-1",
}


class ProductAPI(Protocol):
    """A provider product (load balancer, instance, ...) and the zones it serves."""

    def supported_zones(self) -> list[str]: ...


def parse_zone(value: str) -> str:
    """Parse a zone name. Raises ``ValueError`` when it is not a valid zone."""
    zone = _LEGACY_ZONES.get(value, value)
    if not _ZONE_RE.match(zone):
        raise ValueError(f"bad zone format, available zones are fr-par-1, nl-ams-1, ...: {value!r}")
    return zone


def zone_region(zone: str) -> str:
    """Region a zone belongs to (``fr-par-2`` -> ``fr-par``)."""
    return zone.rsplit("-", 1)[0]


class ZoneResolver:
    """Resolves zones within one configured region."""

    def __init__(self, region: str) -> None:
        self._region = region

    @property
    def region(self) -> str:
        return self._region

    def default_zone(self) -> str:
        """First zone of the region."""
        return f"{self._region}-1"

    def zone_or_default(self, zone: str | None) -> str:
        """Parse *zone*, or return the default zone when it is not set."""
        if zone is None:
            return self.default_zone()
        try:
            return parse_zone(zone)
        except ValueError as exc:
            raise TerminalError(f"zone {zone} is not valid: {exc}") from exc

    def product_zones(self, product: ProductAPI) -> list[str]:
        """Zones of the configured region where *product* is available."""
        zones = [z for z in product.supported_zones() if zone_region(z) == self._region]
        if not zones:
            zones.append(self.default_zone())
        return zones

    def validate_zone(self, product: ProductAPI, zone: str) -> None:
        zones = self.product_zones(product)
        if zone not in zones:
            raise TerminalError(
                f"zone {zone} must be one of the following zones ({', '.join(zones)})"
            )
