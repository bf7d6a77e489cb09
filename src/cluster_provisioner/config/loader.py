"""YAML configuration file loader."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from dotenv import dotenv_values
from pydantic import ValidationError
from ruamel.yaml import YAML

from cluster_provisioner.config.schema import Config

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised for configuration loading / validation errors."""


# Field name → environment variable.
_PROVIDER_ENV_MAP: dict[str, str] = {
    "region": "SCW_REGION",
    "project_id": "SCW_PROJECT_ID",
    "access_key": "SCW_ACCESS_KEY",
    "secret_key": "SCW_SECRET_KEY",
}


def _resolve_provider(raw_provider: dict[str, Any], config_dir: Path) -> dict[str, Any]:
    """Resolve provider fields from YAML, env vars, and ``.env`` file.

    Priority (highest wins): YAML value > env var > ``.env`` file.
    """
    env_file = config_dir / ".env"
    dotenv_vals = dotenv_values(env_file, encoding="utf-8-sig") if env_file.is_file() else {}

    resolved: dict[str, Any] = {}
    for field, env_key in _PROVIDER_ENV_MAP.items():
        val = raw_provider.get(field)
        if val is None:
            val = os.environ.get(env_key)
        if val is None:
            val = dotenv_vals.get(env_key)
        if val is not None:
            resolved[field] = val

    return resolved


def _validate_pinned_ips(config: Config) -> list[str]:
    """Check that no IP is pinned on more than one load balancer."""
    network = config.cluster.network
    specs = [("control_plane_load_balancer", network.control_plane_load_balancer)]
    specs.extend(
        (f"control_plane_extra_load_balancers[{i}]", spec)
        for i, spec in enumerate(network.control_plane_extra_load_balancers)
    )

    errors: list[str] = []
    for field in ("ip", "private_ip"):
        seen: dict[str, str] = {}
        for where, spec in specs:
            ip = getattr(spec, field)
            if ip is None:
                continue
            if ip in seen:
                errors.append(f"IP {ip} is pinned on both {seen[ip]} and {where}")
            else:
                seen[ip] = where
    return errors


def load_config(path: Path | str) -> Config:
    """Load a YAML configuration file and return a ``Config`` object.

    Raises:
        ConfigError: On YAML parse errors, missing sections, or validation failures.
    """
    path = Path(path)

    try:
        raw = YAML(typ="safe").load(path)
    except Exception as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level")

    try:
        raw["provider"] = _resolve_provider(raw.get("provider") or {}, path.parent)
        config = Config.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc

    config.config_dir = path.parent

    errors = _validate_pinned_ips(config)
    if errors:
        raise ConfigError("\n".join(errors))

    logger.info(
        "Loaded config from %s (cluster %s, %d extra load balancers)",
        path,
        config.cluster.name,
        len(config.cluster.network.control_plane_extra_load_balancers),
    )
    return config
