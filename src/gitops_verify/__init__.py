"""gitops-verify: convergence verification for a GitOps operator.

Checks, with timeout-bounded polling, that the operator's reconciler has
created (or removed) the resources and status it is responsible for.

Components:
    accessor: Typed Resource Accessor (Found / NotFound / TransientError)
    polling: Convergence and Absence Pollers
    status: Status Predicate Checker for Argo CD applications
    clean_slate: Clean-Slate Coordinator
    scenarios: Scenario Runner and the scenario catalogue

Usage:
    from gitops_verify import ResourceAccessor, ExpectationSet, await_all

    result = await_all(accessor, expectations, interval=1.0, deadline=180.0)
"""

from __future__ import annotations

from gitops_verify.accessor import ResourceAccessor
from gitops_verify.clean_slate import CleanSlateCoordinator
from gitops_verify.cluster import ClusterClient, KubernetesClusterClient
from gitops_verify.errors import (
    AssertionMismatch,
    CleanupFailure,
    ClusterAPIError,
    DeadlineExceededError,
    GitOpsVerifyError,
    ResourceAlreadyExistsError,
    ResourceNotFoundError,
)
from gitops_verify.kinds import ResourceKind
from gitops_verify.models import (
    ConvergenceResult,
    Expectation,
    ExpectationSet,
    PollOutcome,
    ResourceRef,
    StatusTarget,
    status_is,
)
from gitops_verify.polling import PollingConfig, await_all, await_gone
from gitops_verify.status import await_status

__version__ = "0.1.0"

__all__ = [
    "AssertionMismatch",
    "CleanSlateCoordinator",
    "CleanupFailure",
    "ClusterAPIError",
    "ClusterClient",
    "ConvergenceResult",
    "DeadlineExceededError",
    "Expectation",
    "ExpectationSet",
    "GitOpsVerifyError",
    "KubernetesClusterClient",
    "PollOutcome",
    "PollingConfig",
    "ResourceAccessor",
    "ResourceAlreadyExistsError",
    "ResourceKind",
    "ResourceNotFoundError",
    "ResourceRef",
    "StatusTarget",
    "await_all",
    "await_gone",
    "await_status",
    "status_is",
]
