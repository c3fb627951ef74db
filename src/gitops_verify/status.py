"""Status Predicate Checker for application-like resources.

An application exposes two independent status axes, health and sync. The
checker reads both from a single snapshot each round and succeeds only when
both predicates hold in that same round. A missing application, a missing
status field or a failed lookup makes both predicates false for the round;
none of them is an error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog
from pydantic import BaseModel, ConfigDict

from gitops_verify.kinds import ResourceKind
from gitops_verify.polling import (
    DEADLINE_EXCEEDED,
    SYSTEM_CLOCK,
    PollClock,
    wait_for_condition,
)
from gitops_verify.telemetry.tracing import get_tracer, mark_unsatisfied, verify_span

if TYPE_CHECKING:
    from gitops_verify.cluster import ClusterClient
    from gitops_verify.models import StatusTarget

logger = structlog.get_logger(__name__)


class ApplicationStatus(BaseModel):
    """Health and sync classification observed in one read."""

    model_config = ConfigDict(frozen=True)

    health: str | None = None
    sync: str | None = None

    @classmethod
    def from_resource(cls, resource: dict[str, Any]) -> ApplicationStatus:
        """Extract ``status.health.status`` and ``status.sync.status``."""
        status = resource.get("status") or {}
        return cls(
            health=(status.get("health") or {}).get("status"),
            sync=(status.get("sync") or {}).get("status"),
        )


class ApplicationStatusProvider(Protocol):
    """External source of application health/sync classifications."""

    def read(self, name: str, namespace: str) -> ApplicationStatus:
        """Return the current status or raise on lookup failure."""
        ...


class ClusterApplicationStatus:
    """Reads status from Argo CD Application objects in the cluster."""

    def __init__(self, cluster: ClusterClient) -> None:
        self.cluster = cluster

    def read(self, name: str, namespace: str) -> ApplicationStatus:
        resource = self.cluster.get(ResourceKind.APPLICATION, name, namespace)
        return ApplicationStatus.from_resource(resource)


def evaluate(target: StatusTarget, status: ApplicationStatus | None) -> tuple[bool, bool]:
    """Evaluate both predicates against one snapshot.

    Returns:
        (health_ok, sync_ok); both False when no status could be read.
    """
    if status is None:
        return False, False
    return bool(target.desired_health(status.health)), bool(target.desired_sync(status.sync))


def await_status(
    provider: ApplicationStatusProvider,
    target: StatusTarget,
    interval: float,
    deadline: float,
    *,
    clock: PollClock = SYSTEM_CLOCK,
) -> bool:
    """Wait until health and sync predicates hold in the same round.

    Args:
        provider: Source of application status.
        target: Application and desired predicates.
        interval: Seconds between rounds.
        deadline: Seconds before giving up.
        clock: Time source.

    Returns:
        True once both predicates co-occur, False if the deadline elapsed.
    """

    def _both_hold() -> bool:
        status: ApplicationStatus | None
        try:
            status = provider.read(target.resource_name, target.namespace)
        except Exception as e:  # noqa: BLE001
            logger.info("status.unreadable", application=str(target), error=str(e))
            status = None
        health_ok, sync_ok = evaluate(target, status)
        logger.info(
            "status.round",
            application=str(target),
            health=status.health if status else None,
            sync=status.sync if status else None,
            health_ok=health_ok,
            sync_ok=sync_ok,
        )
        return health_ok and sync_ok

    with verify_span(
        get_tracer(),
        "await_status",
        namespace=target.namespace,
        resource=str(target),
    ) as span:
        satisfied = wait_for_condition(
            _both_hold,
            timeout=deadline,
            interval=interval,
            description=f"{target} to be healthy and synced",
            clock=clock,
        )
        span.set_attribute("verify.satisfied", satisfied)
        if not satisfied:
            mark_unsatisfied(span, DEADLINE_EXCEEDED)
    return satisfied


__all__ = [
    "ApplicationStatus",
    "ApplicationStatusProvider",
    "ClusterApplicationStatus",
    "await_status",
    "evaluate",
]
