"""Verification scenarios and the runner that sequences them."""

from __future__ import annotations

from gitops_verify.scenarios.gitops import default_catalogue
from gitops_verify.scenarios.runner import (
    RunReport,
    Scenario,
    ScenarioContext,
    ScenarioResult,
    ScenarioRunner,
    ScenarioState,
)

__all__ = [
    "RunReport",
    "Scenario",
    "ScenarioContext",
    "ScenarioResult",
    "ScenarioRunner",
    "ScenarioState",
    "default_catalogue",
]
