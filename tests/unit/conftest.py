"""Shared fixtures for unit tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from cluster_provisioner.config import load
from cluster_provisioner.config.schema import ClusterConfig
from cluster_provisioner.core import ClusterScope, ClusterStatus, ReconcileContext
from tests.unit.fakes import FakeCloud

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from cluster_provisioner.config.schema import Config

_SCW_ENV_VARS = ("SCW_REGION", "SCW_PROJECT_ID", "SCW_ACCESS_KEY", "SCW_SECRET_KEY")


@pytest.fixture(autouse=True)
def _clean_scw_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove SCW_* env vars so unit tests don't leak host config."""
    for var in _SCW_ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., Config]:
    """Factory fixture: write YAML + optional .env, return loaded Config."""

    def _make(yaml_str: str, *, dotenv: str | None = None) -> Config:
        (tmp_path / "config.yaml").write_text(yaml_str)
        if dotenv is not None:
            (tmp_path / ".env").write_text(dotenv)
        return load(tmp_path / "config.yaml")

    return _make


@pytest.fixture
def cloud() -> FakeCloud:
    return FakeCloud()


@pytest.fixture
def ctx() -> ReconcileContext:
    return ReconcileContext()


@pytest.fixture
def make_scope(cloud: FakeCloud) -> Callable[..., ClusterScope]:
    """Factory fixture: build a scope for cluster ``demo`` from a ``network`` mapping."""

    def _make(network: dict | None = None, *, client: FakeCloud | None = None) -> ClusterScope:
        cluster = ClusterConfig.model_validate(
            {"name": "demo", "namespace": "infra", "network": network or {}}
        )
        return ClusterScope(cluster, client or cloud, ClusterStatus())

    return _make
