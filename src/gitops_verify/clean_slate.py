"""Clean-Slate Coordinator.

Removes state left behind by a previous run and blocks until the removal is
observable, so every scenario starts from a known-empty namespace.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from gitops_verify.errors import CleanupFailure, ResourceNotFoundError
from gitops_verify.kinds import ResourceKind
from gitops_verify.models import ResourceRef
from gitops_verify.polling import SYSTEM_CLOCK, PollClock, await_gone
from gitops_verify.telemetry.tracing import get_tracer, verify_span

if TYPE_CHECKING:
    from gitops_verify.accessor import ResourceAccessor

logger = structlog.get_logger(__name__)


class CleanSlateCoordinator:
    """Deletes a namespace and waits until it is gone.

    Attributes:
        accessor: Accessor whose cluster receives the delete request.
        interval: Seconds between absence checks.
    """

    def __init__(
        self,
        accessor: ResourceAccessor,
        *,
        interval: float = 1.0,
        clock: PollClock = SYSTEM_CLOCK,
    ) -> None:
        self.accessor = accessor
        self.interval = interval
        self._clock = clock

    def reset(self, namespace: str, deadline: float) -> None:
        """Establish an empty baseline for ``namespace``.

        Deleting an already-absent namespace is a success. A failed delete
        request is logged and the absence check still decides the outcome.

        Args:
            namespace: Namespace to remove.
            deadline: Seconds to wait for the namespace to disappear.

        Raises:
            CleanupFailure: If the namespace is still present at the deadline.
        """
        ref = ResourceRef(kind=ResourceKind.NAMESPACE, name=namespace)

        with verify_span(get_tracer(), "reset", namespace=namespace):
            try:
                self.accessor.cluster.delete(ResourceKind.NAMESPACE, namespace)
                logger.info("clean_slate.namespace_deleted", namespace=namespace)
            except ResourceNotFoundError:
                logger.info("clean_slate.namespace_absent", namespace=namespace)
            except Exception as e:  # noqa: BLE001
                logger.warning("clean_slate.delete_failed", namespace=namespace, error=str(e))

            gone = await_gone(
                self.accessor,
                ref,
                interval=self.interval,
                deadline=deadline,
                clock=self._clock,
            )
            if not gone:
                logger.error("clean_slate.failed", namespace=namespace, timeout=deadline)
                raise CleanupFailure(namespace, deadline)

        logger.info("clean_slate.ready", namespace=namespace)


__all__ = ["CleanSlateCoordinator"]
