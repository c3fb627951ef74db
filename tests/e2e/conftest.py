"""E2E test configuration and fixtures.

E2E tests run the scenario catalogue against a live cluster with the GitOps
operator installed. They are deselected by default (``-m 'not e2e'`` in
pyproject); run them with ``pytest -m e2e tests/e2e``.

Cluster access follows the normal settings: GITOPS_VERIFY_KUBECONFIG_PATH,
in-cluster config, then ~/.kube/config. An unreachable cluster fails the
tests rather than skipping them.
"""

from __future__ import annotations

import pytest

from gitops_verify.cli import build_context
from gitops_verify.config import VerifySettings
from gitops_verify.errors import ClusterUnavailableError
from gitops_verify.scenarios.gitops import default_catalogue
from gitops_verify.scenarios.runner import ScenarioContext, ScenarioRunner
from gitops_verify.telemetry.logging import configure_logging


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for E2E tests."""
    config.addinivalue_line(
        "markers",
        "e2e: mark test as end-to-end (requires a live cluster with the operator)",
    )


@pytest.fixture(scope="session")
def live_settings() -> VerifySettings:
    settings = VerifySettings()
    configure_logging(settings.log_level, json_output=settings.json_logs)
    return settings


@pytest.fixture(scope="session")
def live_context(live_settings: VerifySettings) -> ScenarioContext:
    """ScenarioContext wired to the live cluster."""
    try:
        return build_context(live_settings)
    except ClusterUnavailableError as e:
        pytest.fail(f"E2E tests require a reachable cluster: {e}")


@pytest.fixture(scope="session")
def live_runner(live_settings: VerifySettings, live_context: ScenarioContext) -> ScenarioRunner:
    return ScenarioRunner(default_catalogue(live_settings), live_context)
