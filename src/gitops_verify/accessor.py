"""Typed Resource Accessor.

Translates one read against the Cluster API into a PollOutcome:

    object returned        -> Found (carrying the object)
    ResourceNotFoundError  -> NotFound
    any other exception    -> TransientError(detail)

The accessor is read-only and never retries; retry policy belongs to the
pollers in ``gitops_verify.polling``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from gitops_verify.errors import ResourceNotFoundError
from gitops_verify.models import PollOutcome, ResourceRef

if TYPE_CHECKING:
    from gitops_verify.cluster import ClusterClient

logger = structlog.get_logger(__name__)


class ResourceAccessor:
    """Fetches single named resources from a ClusterClient."""

    def __init__(self, cluster: ClusterClient) -> None:
        self.cluster = cluster

    def fetch(self, ref: ResourceRef) -> PollOutcome:
        """Fetch ``ref`` once and classify the result.

        Args:
            ref: The resource to read.

        Returns:
            Found, NotFound or TransientError. Never raises for store errors.
        """
        try:
            resource = self.cluster.get(ref.kind, ref.name, ref.namespace)
        except ResourceNotFoundError:
            return PollOutcome.not_found()
        except Exception as e:  # noqa: BLE001
            logger.debug("accessor.transient_error", resource=str(ref), error=str(e))
            return PollOutcome.transient(f"{type(e).__name__}: {e}")
        return PollOutcome.found(resource)


__all__ = ["ResourceAccessor"]
