"""Test doubles for running the engine without a cluster or wall-clock time.

Types:
    VirtualClock: monotonic time that only advances when a poller sleeps
    InMemoryCluster: ClusterClient with scheduled appearances, delayed
        deletions and injected failures
    ScriptedStatusProvider: replays a sequence of application statuses
    RecordingApplier: ManifestApplier that records applied paths

Example:
    clock = VirtualClock()
    cluster = InMemoryCluster(clock)
    cluster.schedule(ResourceKind.CONFIG_MAP, {"metadata": {"name": "argocd-cm",
                     "namespace": "gitops"}}, at=12.0)
    result = await_all(ResourceAccessor(cluster), expectations, interval=1.0,
                       deadline=30.0, clock=clock.poll_clock)
"""

from __future__ import annotations

import copy
import math
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from gitops_verify.accessor import ResourceAccessor
from gitops_verify.clean_slate import CleanSlateCoordinator
from gitops_verify.cluster import object_meta
from gitops_verify.config import VerifySettings
from gitops_verify.errors import ResourceAlreadyExistsError, ResourceNotFoundError
from gitops_verify.kinds import ResourceKind, is_namespaced
from gitops_verify.polling import PollClock
from gitops_verify.scenarios.runner import ScenarioContext
from gitops_verify.status import ApplicationStatus, ClusterApplicationStatus

ObjectKey = tuple[ResourceKind, str, str]
CreateHook = Callable[["InMemoryCluster", ResourceKind, dict[str, Any]], None]


class VirtualClock:
    """Clock whose ``sleep`` advances time instantly."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds

    @property
    def poll_clock(self) -> PollClock:
        return PollClock(monotonic=self.monotonic, sleep=self.sleep)


def _key(kind: ResourceKind, name: str, namespace: str) -> ObjectKey:
    return (kind, namespace if is_namespaced(kind) else "", name)


class InMemoryCluster:
    """In-memory ClusterClient driven by a VirtualClock.

    Objects can appear at a scheduled time (the reconciler "creating" them),
    disappear after a deletion delay (finalizers) or never disappear at all.
    Deleting a namespace removes every object inside it once the namespace
    itself is gone.

    Attributes:
        calls: (verb, kind, name, namespace) of every request, in order.
    """

    def __init__(self, clock: VirtualClock | None = None) -> None:
        self.clock = clock or VirtualClock()
        self.objects: dict[ObjectKey, dict[str, Any]] = {}
        self.calls: list[tuple[str, ResourceKind, str, str]] = []
        self._pending: dict[ObjectKey, tuple[float, dict[str, Any]]] = {}
        self._vanishing: dict[ObjectKey, float] = {}
        self._deletion_delays: dict[ObjectKey, float] = {}
        self._failures: dict[ObjectKey, list[Exception]] = {}
        self._create_hooks: dict[ResourceKind, list[CreateHook]] = {}

    # =========================================================================
    # Scripting
    # =========================================================================

    def add(self, kind: ResourceKind, body: dict[str, Any]) -> None:
        """Store an object immediately."""
        name, namespace = object_meta(body)
        self.objects[_key(kind, name, namespace)] = copy.deepcopy(body)

    def schedule(self, kind: ResourceKind, body: dict[str, Any], *, at: float) -> None:
        """Make an object appear at virtual time ``at``."""
        name, namespace = object_meta(body)
        self._pending[_key(kind, name, namespace)] = (at, copy.deepcopy(body))

    def set_deletion_delay(
        self,
        kind: ResourceKind,
        name: str,
        namespace: str = "",
        *,
        delay: float = math.inf,
    ) -> None:
        """Keep an object visible for ``delay`` seconds after its deletion."""
        self._deletion_delays[_key(kind, name, namespace)] = delay

    def fail_next(
        self,
        kind: ResourceKind,
        name: str,
        namespace: str = "",
        *,
        error: Exception,
        times: int = 1,
    ) -> None:
        """Raise ``error`` from the next ``times`` reads of an object."""
        self._failures.setdefault(_key(kind, name, namespace), []).extend([error] * times)

    def on_create(self, kind: ResourceKind, hook: CreateHook) -> None:
        """Run ``hook(cluster, kind, body)`` after each create of ``kind``."""
        self._create_hooks.setdefault(kind, []).append(hook)

    def remove(self, kind: ResourceKind, name: str, namespace: str = "") -> None:
        """Drop an object, and any scheduled appearance of it, without a delete call."""
        key = _key(kind, name, namespace)
        self.objects.pop(key, None)
        self._pending.pop(key, None)

    def exists(self, kind: ResourceKind, name: str, namespace: str = "") -> bool:
        self._settle()
        return _key(kind, name, namespace) in self.objects

    # =========================================================================
    # ClusterClient verbs
    # =========================================================================

    def get(self, kind: ResourceKind, name: str, namespace: str = "") -> dict[str, Any]:
        key = _key(kind, name, namespace)
        self.calls.append(("get", kind, name, key[1]))
        failures = self._failures.get(key)
        if failures:
            raise failures.pop(0)
        self._settle()
        if key not in self.objects:
            raise ResourceNotFoundError(kind.value, name, namespace=key[1])
        return copy.deepcopy(self.objects[key])

    def create(self, kind: ResourceKind, body: dict[str, Any]) -> dict[str, Any]:
        name, namespace = object_meta(body)
        key = _key(kind, name, namespace)
        self.calls.append(("create", kind, name, key[1]))
        self._settle()
        if key in self.objects:
            raise ResourceAlreadyExistsError(kind.value, name, namespace=key[1])
        self._pending.pop(key, None)
        self.objects[key] = copy.deepcopy(body)
        for hook in self._create_hooks.get(kind, []):
            hook(self, kind, copy.deepcopy(body))
        return copy.deepcopy(body)

    def update(self, kind: ResourceKind, body: dict[str, Any]) -> dict[str, Any]:
        name, namespace = object_meta(body)
        key = _key(kind, name, namespace)
        self.calls.append(("update", kind, name, key[1]))
        self._settle()
        if key not in self.objects:
            raise ResourceNotFoundError(kind.value, name, namespace=key[1])
        self.objects[key] = copy.deepcopy(body)
        return copy.deepcopy(body)

    def delete(self, kind: ResourceKind, name: str, namespace: str = "") -> None:
        key = _key(kind, name, namespace)
        self.calls.append(("delete", kind, name, key[1]))
        self._settle()
        if key not in self.objects:
            raise ResourceNotFoundError(kind.value, name, namespace=key[1])
        if key in self._vanishing:
            return
        delay = self._deletion_delays.get(key, 0.0)
        if delay <= 0:
            self._remove(key)
        else:
            self._vanishing[key] = self.clock.now + delay

    # =========================================================================
    # Internals
    # =========================================================================

    def _settle(self) -> None:
        now = self.clock.now
        for key, (at, body) in list(self._pending.items()):
            if at <= now:
                del self._pending[key]
                self.objects[key] = body
        for key, at in list(self._vanishing.items()):
            if at <= now:
                self._remove(key)

    def _remove(self, key: ObjectKey) -> None:
        self.objects.pop(key, None)
        self._vanishing.pop(key, None)
        kind, _, name = key
        if kind is ResourceKind.NAMESPACE:
            for inner in [k for k in self.objects if k[1] == name]:
                del self.objects[inner]
            for inner in [k for k in self._pending if k[1] == name]:
                del self._pending[inner]


class ScriptedStatusProvider:
    """ApplicationStatusProvider that replays a fixed sequence.

    Each read returns the next entry; the last entry repeats forever. An
    exception entry is raised instead of returned.
    """

    def __init__(self, sequence: Sequence[ApplicationStatus | Exception]) -> None:
        if not sequence:
            msg = "sequence must not be empty"
            raise ValueError(msg)
        self.sequence = list(sequence)
        self.reads = 0

    def read(self, name: str, namespace: str) -> ApplicationStatus:  # noqa: ARG002
        entry = self.sequence[min(self.reads, len(self.sequence) - 1)]
        self.reads += 1
        if isinstance(entry, Exception):
            raise entry
        return entry


class RecordingApplier:
    """ManifestApplier that records paths and runs an optional side effect."""

    def __init__(self, on_apply: Callable[[Path], None] | None = None) -> None:
        self.applied: list[Path] = []
        self._on_apply = on_apply

    def apply(self, path: Path) -> None:
        self.applied.append(path)
        if self._on_apply is not None:
            self._on_apply(path)


def make_context(
    cluster: InMemoryCluster,
    *,
    settings: VerifySettings | None = None,
    status_provider: Any = None,
    applier: Any = None,
) -> ScenarioContext:
    """Build a ScenarioContext wired to an in-memory cluster and its clock."""
    settings = settings or VerifySettings(_env_file=None)
    accessor = ResourceAccessor(cluster)
    clock = cluster.clock.poll_clock
    return ScenarioContext(
        settings=settings,
        cluster=cluster,
        accessor=accessor,
        status_provider=status_provider or ClusterApplicationStatus(cluster),
        applier=applier or RecordingApplier(),
        clean_slate=CleanSlateCoordinator(
            accessor, interval=settings.cleanup_interval, clock=clock
        ),
        clock=clock,
    )


__all__ = [
    "InMemoryCluster",
    "RecordingApplier",
    "ScriptedStatusProvider",
    "VirtualClock",
    "make_context",
]
