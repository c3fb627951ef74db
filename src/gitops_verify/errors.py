"""Exception hierarchy for gitops-verify.

Exception Hierarchy:
    GitOpsVerifyError (base)
    ├── ResourceNotFoundError
    ├── ResourceAlreadyExistsError
    ├── ClusterAPIError
    ├── ClusterUnavailableError (wraps ConnectionError)
    ├── DeadlineExceededError (wraps TimeoutError)
    ├── CleanupFailure
    ├── AssertionMismatch
    └── ManifestApplyError

NotFound and AlreadyExists are expected outcomes at the Cluster API boundary.
Pollers absorb every fetch-level error; only DeadlineExceededError and
CleanupFailure leave them as terminal errors.

Example:
    >>> from gitops_verify.errors import ResourceNotFoundError
    >>> raise ResourceNotFoundError("Deployment", "argocd-server", namespace="gitops")
    ResourceNotFoundError: Deployment 'argocd-server' not found in namespace 'gitops'
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from gitops_verify.models import PollOutcome, ResourceRef


class GitOpsVerifyError(Exception):
    """Base exception for all gitops-verify errors.

    Attributes:
        message: Human-readable error message.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


def _location(namespace: str) -> str:
    return f" in namespace '{namespace}'" if namespace else ""


class ResourceNotFoundError(GitOpsVerifyError):
    """Raised by a ClusterClient when the requested object does not exist.

    Attributes:
        kind: Resource kind that was requested.
        name: Object name.
        namespace: Object namespace ("" for cluster-scoped kinds).
    """

    def __init__(self, kind: str, name: str, *, namespace: str = "") -> None:
        self.kind = kind
        self.name = name
        self.namespace = namespace
        super().__init__(f"{kind} '{name}' not found{_location(namespace)}")


class ResourceAlreadyExistsError(GitOpsVerifyError):
    """Raised by a ClusterClient when creating an object that already exists."""

    def __init__(self, kind: str, name: str, *, namespace: str = "") -> None:
        self.kind = kind
        self.name = name
        self.namespace = namespace
        super().__init__(f"{kind} '{name}' already exists{_location(namespace)}")


class ClusterAPIError(GitOpsVerifyError):
    """Raised for any Cluster API failure other than NotFound/AlreadyExists.

    Covers network errors, throttling, conflicts and serialization problems.

    Attributes:
        status: HTTP status code when the API answered, else None.
        reason: Reason reported by the API or the transport.
    """

    def __init__(self, reason: str, *, status: int | None = None) -> None:
        self.status = status
        self.reason = reason
        message = "Cluster API request failed"
        if status is not None:
            message = f"{message} (HTTP {status})"
        super().__init__(f"{message}: {reason}")


class ClusterUnavailableError(GitOpsVerifyError, ConnectionError):
    """Raised when no usable cluster configuration could be loaded.

    Attributes:
        reason: Why the client could not be configured.
    """

    def __init__(self, *, reason: str = "") -> None:
        self.reason = reason
        message = "Kubernetes API server unavailable"
        if reason:
            message = f"{message}: {reason}"
        GitOpsVerifyError.__init__(self, message)


class DeadlineExceededError(GitOpsVerifyError, TimeoutError):
    """Raised when a poll session ends without reaching its target state.

    Attributes:
        description: What was being waited for.
        timeout: How long we waited, in seconds.
        last_outcomes: Last observed outcome per resource, for diagnosis.
    """

    def __init__(
        self,
        description: str,
        timeout: float,
        last_outcomes: Mapping[ResourceRef, PollOutcome] | None = None,
    ) -> None:
        self.description = description
        self.timeout = timeout
        self.last_outcomes = dict(last_outcomes or {})
        message = f"Timeout waiting for {description} after {timeout:.1f}s"
        pending = [
            f"{ref}: {outcome}"
            for ref, outcome in self.last_outcomes.items()
            if not outcome.is_found
        ]
        if pending:
            message += " (last outcomes: " + "; ".join(pending) + ")"
        GitOpsVerifyError.__init__(self, message)


class CleanupFailure(GitOpsVerifyError):
    """Raised when the clean-slate baseline could not be established.

    Fatal to the whole run: later scenarios cannot tell stale state from
    state created by the reconciler.

    Attributes:
        namespace: Namespace that was still present.
        timeout: Deadline that elapsed, in seconds.
    """

    def __init__(self, namespace: str, timeout: float) -> None:
        self.namespace = namespace
        self.timeout = timeout
        super().__init__(f"Namespace '{namespace}' still present after {timeout:.1f}s")


class AssertionMismatch(GitOpsVerifyError):
    """Raised when an observed value differs from the expected one.

    Not retried: it reflects a reconciler logic error rather than
    eventual consistency.

    Attributes:
        field: Name of the compared field.
        expected: Expected value.
        observed: Observed value.
    """

    def __init__(self, field: str, *, expected: Any, observed: Any) -> None:
        self.field = field
        self.expected = expected
        self.observed = observed
        super().__init__(f"{field}: expected {expected!r}, observed {observed!r}")


class ManifestApplyError(GitOpsVerifyError):
    """Raised when applying a manifest file fails.

    Attributes:
        path: Manifest path.
        returncode: Exit code of the apply command, if it ran.
        stderr: Captured error output.
    """

    def __init__(
        self,
        path: str,
        *,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        self.path = path
        self.returncode = returncode
        self.stderr = stderr
        message = f"Failed to apply manifest '{path}'"
        if returncode is not None:
            message = f"{message} (exit code {returncode})"
        if stderr:
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)


__all__ = [
    "AssertionMismatch",
    "CleanupFailure",
    "ClusterAPIError",
    "ClusterUnavailableError",
    "DeadlineExceededError",
    "GitOpsVerifyError",
    "ManifestApplyError",
    "ResourceAlreadyExistsError",
    "ResourceNotFoundError",
]
