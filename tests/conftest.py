"""Shared fixtures for gitops-verify tests.

Unit tests run on virtual time against an in-memory cluster; nothing here
talks to a real API server.

Note:
    No __init__.py in test dirs - pytest runs in importlib mode.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest
import structlog

from gitops_verify.accessor import ResourceAccessor
from gitops_verify.config import VerifySettings, get_settings
from gitops_verify.kinds import ResourceKind
from gitops_verify.polling import PollClock
from gitops_verify.testing import InMemoryCluster, VirtualClock


@pytest.fixture
def clock() -> VirtualClock:
    """Virtual clock starting at t=0."""
    return VirtualClock()


@pytest.fixture
def poll_clock(clock: VirtualClock) -> PollClock:
    return clock.poll_clock


@pytest.fixture
def cluster(clock: VirtualClock) -> InMemoryCluster:
    """Empty in-memory cluster sharing the virtual clock."""
    return InMemoryCluster(clock)


@pytest.fixture
def accessor(cluster: InMemoryCluster) -> ResourceAccessor:
    return ResourceAccessor(cluster)


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch) -> VerifySettings:
    """Default settings, isolated from the caller's environment."""
    monkeypatch.delenv("SKIP_OPERATOR_DEPLOYMENT", raising=False)
    return VerifySettings(_env_file=None)


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()


def obj(name: str, namespace: str = "", **fields: Any) -> dict[str, Any]:
    """Minimal object body for the in-memory cluster."""
    metadata = {"name": name}
    if namespace:
        metadata["namespace"] = namespace
    return {"metadata": metadata, **fields}


@pytest.fixture
def make_obj() -> Any:
    """Factory for minimal object bodies: ``make_obj(name, namespace, **fields)``."""
    return obj


@pytest.fixture
def add_namespace(cluster: InMemoryCluster) -> Any:
    """Add a namespace object to the in-memory cluster."""

    def _add(name: str) -> None:
        cluster.add(ResourceKind.NAMESPACE, obj(name))

    return _add
