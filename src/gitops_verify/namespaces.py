"""Namespace naming for scenario isolation.

Scenarios that create their own namespace can run with a per-run unique
name instead of a fixed one, so a leftover namespace from an interrupted
run never collides with the current one.

Example:
    >>> unique_namespace("gitops-standalone-test")  # doctest: +SKIP
    'gitops-standalone-test-a1b2c3d4'
"""

from __future__ import annotations

import re
import uuid

# K8s namespace constraints
MAX_NAMESPACE_LENGTH = 63
NAMESPACE_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")


class InvalidNamespaceError(ValueError):
    """Raised when a namespace name is invalid for Kubernetes."""

    def __init__(self, namespace: str, reason: str) -> None:
        self.namespace = namespace
        self.reason = reason
        super().__init__(f"Invalid namespace '{namespace}': {reason}")


def validate_namespace(namespace: str) -> bool:
    """Check a namespace name against the Kubernetes DNS label rules."""
    if not namespace or len(namespace) > MAX_NAMESPACE_LENGTH:
        return False
    return bool(NAMESPACE_PATTERN.match(namespace))


def unique_namespace(prefix: str) -> str:
    """Append an 8-character random suffix to a normalised prefix.

    Args:
        prefix: Base name. Lowercased; underscores become hyphens and other
            invalid characters are dropped. Truncated to fit 63 characters.

    Raises:
        InvalidNamespaceError: If the result is not a valid namespace.
    """
    normalized = re.sub(r"[^a-z0-9-]", "", prefix.lower().replace("_", "-")).strip("-")
    suffix = uuid.uuid4().hex[:8]

    max_prefix_length = MAX_NAMESPACE_LENGTH - len(suffix) - 1
    normalized = normalized[:max_prefix_length].rstrip("-") or "verify"

    namespace = f"{normalized}-{suffix}"
    if not validate_namespace(namespace):
        raise InvalidNamespaceError(namespace, "does not match K8s naming rules")
    return namespace


def scenario_namespace(base: str, *, unique: bool) -> str:
    """Return ``base`` unchanged, or a unique variant when requested.

    Raises:
        InvalidNamespaceError: If ``base`` itself is not a valid namespace.
    """
    if not validate_namespace(base):
        raise InvalidNamespaceError(base, "does not match K8s naming rules")
    return unique_namespace(base) if unique else base


__all__ = [
    "InvalidNamespaceError",
    "MAX_NAMESPACE_LENGTH",
    "scenario_namespace",
    "unique_namespace",
    "validate_namespace",
]
