"""Value types shared by the accessor, the pollers and the scenarios.

All of these are owned by the scenario that builds them and never outlive
it. None of them caches cluster state: every poll round re-reads the store.

Types:
    ResourceRef: (kind, name, namespace) fetch target, immutable
    Expectation / ExpectationSet: names expected to exist, per kind
    PollOutcome: tri-state result of one fetch attempt
    ConvergenceResult: summary of one convergence poll session
    StatusTarget: desired health/sync predicates for an application
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from gitops_verify.kinds import ResourceKind, is_namespaced


class ResourceRef(BaseModel):
    """Uniquely identifies one object in the cluster.

    The namespace of a cluster-scoped kind is normalised to "".

    Example:
        >>> ref = ResourceRef(kind=ResourceKind.CONFIG_MAP, name="argocd-cm", namespace="gitops")
        >>> str(ref)
        'ConfigMap/gitops/argocd-cm'
    """

    model_config = ConfigDict(frozen=True)

    kind: ResourceKind
    name: str = Field(..., min_length=1, max_length=253)
    namespace: str = Field(default="", max_length=63)

    @model_validator(mode="before")
    @classmethod
    def _drop_namespace_for_cluster_scope(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not data.get("namespace"):
            return data
        try:
            kind = ResourceKind(data.get("kind"))
        except ValueError:
            return data
        if not is_namespaced(kind):
            return {**data, "namespace": ""}
        return data

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind.value}/{self.namespace}/{self.name}"
        return f"{self.kind.value}/{self.name}"


class Expectation(BaseModel):
    """Names of one kind that must all exist."""

    model_config = ConfigDict(frozen=True)

    kind: ResourceKind
    expected_names: tuple[str, ...] = Field(..., min_length=1)

    @field_validator("expected_names")
    @classmethod
    def _unique_names(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        seen: set[str] = set()
        for name in v:
            if not name:
                msg = "expected names must be non-empty"
                raise ValueError(msg)
            if name in seen:
                msg = f"duplicate expected name: {name}"
                raise ValueError(msg)
            seen.add(name)
        return v


class ExpectationSet(BaseModel):
    """Ordered expectations scoped to one namespace.

    Satisfied only when every name of every kind resolves to Found.

    Example:
        >>> expectations = ExpectationSet.from_mapping(
        ...     "gitops",
        ...     {ResourceKind.CONFIG_MAP: ["argocd-cm", "argocd-rbac-cm"]},
        ... )
        >>> [str(ref) for ref in expectations.refs()]
        ['ConfigMap/gitops/argocd-cm', 'ConfigMap/gitops/argocd-rbac-cm']
    """

    model_config = ConfigDict(frozen=True)

    namespace: str = Field(default="", max_length=63)
    expectations: tuple[Expectation, ...] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _unique_names_per_kind(self) -> ExpectationSet:
        seen: set[tuple[ResourceKind, str]] = set()
        for expectation in self.expectations:
            for name in expectation.expected_names:
                key = (expectation.kind, name)
                if key in seen:
                    msg = f"duplicate expected name for {expectation.kind.value}: {name}"
                    raise ValueError(msg)
                seen.add(key)
        return self

    @classmethod
    def from_mapping(
        cls,
        namespace: str,
        mapping: Mapping[ResourceKind, Iterable[str]],
    ) -> ExpectationSet:
        """Build an expectation set from ``{kind: names}`` preserving order."""
        return cls(
            namespace=namespace,
            expectations=tuple(
                Expectation(kind=kind, expected_names=tuple(names))
                for kind, names in mapping.items()
            ),
        )

    def refs(self) -> list[ResourceRef]:
        """Every fetch target, in declaration order."""
        return [
            ResourceRef(kind=expectation.kind, name=name, namespace=self.namespace)
            for expectation in self.expectations
            for name in expectation.expected_names
        ]


class OutcomeState(str, Enum):
    """Tri-state of a single fetch attempt."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    TRANSIENT_ERROR = "transient_error"


class PollOutcome(BaseModel):
    """Result of one fetch attempt.

    NotFound is a valid steady-state signal and is never conflated with a
    transient error. A Found outcome carries the fetched object so callers
    can inspect status fields without a second read.
    """

    model_config = ConfigDict(frozen=True)

    state: OutcomeState
    detail: str | None = None
    resource: dict[str, Any] | None = Field(default=None, repr=False, exclude=True)

    @classmethod
    def found(cls, resource: dict[str, Any] | None = None) -> PollOutcome:
        return cls(state=OutcomeState.FOUND, resource=resource)

    @classmethod
    def not_found(cls) -> PollOutcome:
        return cls(state=OutcomeState.NOT_FOUND)

    @classmethod
    def transient(cls, detail: str) -> PollOutcome:
        return cls(state=OutcomeState.TRANSIENT_ERROR, detail=detail)

    @property
    def is_found(self) -> bool:
        return self.state is OutcomeState.FOUND

    @property
    def is_not_found(self) -> bool:
        return self.state is OutcomeState.NOT_FOUND

    @property
    def is_transient(self) -> bool:
        return self.state is OutcomeState.TRANSIENT_ERROR

    def __str__(self) -> str:
        if self.detail:
            return f"{self.state.value} ({self.detail})"
        return self.state.value


@dataclass(frozen=True)
class ConvergenceResult:
    """Outcome of one convergence poll session.

    Attributes:
        satisfied: True when one full round was all Found.
        elapsed: Seconds from the first round to termination.
        rounds: Number of poll rounds performed.
        last_outcomes: Last outcome observed for every resource.
    """

    satisfied: bool
    elapsed: float
    rounds: int
    last_outcomes: dict[ResourceRef, PollOutcome] = field(default_factory=dict)

    def pending(self) -> list[ResourceRef]:
        """Resources whose last outcome was not Found."""
        return [ref for ref, outcome in self.last_outcomes.items() if not outcome.is_found]


HealthPredicate = Callable[[str | None], bool]


def status_is(*accepted: str) -> HealthPredicate:
    """Predicate accepting any of the given status values.

    A missing status (None) never matches.
    """
    accepted_values = frozenset(accepted)

    def _predicate(value: str | None) -> bool:
        return value is not None and value in accepted_values

    _predicate.__name__ = f"status_is({', '.join(sorted(accepted_values))})"
    return _predicate


@dataclass(frozen=True)
class StatusTarget:
    """Desired health and sync state of an application resource.

    Attributes:
        resource_name: Application name.
        namespace: Application namespace.
        desired_health: Predicate over the health classification.
        desired_sync: Predicate over the sync classification.
    """

    resource_name: str
    namespace: str
    desired_health: HealthPredicate = field(default_factory=lambda: status_is("Healthy"))
    desired_sync: HealthPredicate = field(default_factory=lambda: status_is("Synced"))

    def __str__(self) -> str:
        return f"Application/{self.namespace}/{self.resource_name}"


__all__ = [
    "ConvergenceResult",
    "Expectation",
    "ExpectationSet",
    "HealthPredicate",
    "OutcomeState",
    "PollOutcome",
    "ResourceRef",
    "StatusTarget",
    "status_is",
]
