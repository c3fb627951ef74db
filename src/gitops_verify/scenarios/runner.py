"""Scenario Runner.

Sequences independent verification scenarios and aggregates their results.

Per-scenario state machine::

    INIT -> RESET (optional) -> TRIGGER -> POLLING -> SATISFIED | TIMED_OUT

``FAILED`` covers assertion mismatches and trigger errors, ``BLOCKED`` marks
scenarios that never started because a declared dependency did not pass or
the run was aborted. A failing scenario never stops later independent ones;
only a CleanupFailure aborts the run, since every remaining scenario assumes
an empty baseline. Whole scenarios are never retried.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar

import structlog

from gitops_verify.errors import (
    CleanupFailure,
    DeadlineExceededError,
    GitOpsVerifyError,
)
from gitops_verify.namespaces import scenario_namespace
from gitops_verify.polling import (
    SYSTEM_CLOCK,
    PollClock,
    PollingConfig,
    await_all,
    await_deployment_ready,
    await_gone,
    hold_steady,
)
from gitops_verify.status import await_status
from gitops_verify.telemetry.tracing import get_tracer, mark_unsatisfied, verify_span

if TYPE_CHECKING:
    from collections.abc import Callable

    from gitops_verify.accessor import ResourceAccessor
    from gitops_verify.clean_slate import CleanSlateCoordinator
    from gitops_verify.cluster import ClusterClient
    from gitops_verify.config import VerifySettings
    from gitops_verify.manifests import ManifestApplier
    from gitops_verify.models import (
        ConvergenceResult,
        ExpectationSet,
        ResourceRef,
        StatusTarget,
    )
    from gitops_verify.status import ApplicationStatusProvider

logger = structlog.get_logger(__name__)


class ScenarioState(str, Enum):
    """Lifecycle state of one scenario."""

    INIT = "init"
    RESET = "reset"
    TRIGGER = "trigger"
    POLLING = "polling"
    SATISFIED = "satisfied"
    TIMED_OUT = "timed_out"
    FAILED = "failed"
    BLOCKED = "blocked"


TERMINAL_STATES = frozenset(
    {ScenarioState.SATISFIED, ScenarioState.TIMED_OUT, ScenarioState.FAILED, ScenarioState.BLOCKED}
)


@dataclass
class ScenarioResult:
    """Outcome of one scenario.

    Attributes:
        name: Scenario name.
        state: Terminal state.
        detail: Human-readable failure detail ("" on success).
        elapsed: Seconds spent in the scenario.
        fatal: True when the failure invalidates the rest of the run.
        transitions: Every state the scenario went through, in order.
    """

    name: str
    state: ScenarioState = ScenarioState.INIT
    detail: str = ""
    elapsed: float = 0.0
    fatal: bool = False
    transitions: list[ScenarioState] = field(default_factory=lambda: [ScenarioState.INIT])

    @property
    def passed(self) -> bool:
        return self.state is ScenarioState.SATISFIED

    def enter(self, state: ScenarioState) -> None:
        self.state = state
        self.transitions.append(state)
        logger.info("scenario.state", scenario=self.name, state=state.value)


@dataclass
class RunReport:
    """Aggregated results of a run, in execution order."""

    results: list[ScenarioResult] = field(default_factory=list)
    aborted: bool = False

    @property
    def passed(self) -> bool:
        return not self.aborted and all(result.passed for result in self.results)

    def failures(self) -> list[ScenarioResult]:
        return [result for result in self.results if not result.passed]

    def result(self, name: str) -> ScenarioResult:
        for result in self.results:
            if result.name == name:
                return result
        raise KeyError(name)


class ScenarioContext:
    """Collaborators and helpers shared by the scenarios of one run.

    The ``require_*`` helpers wrap the pollers and raise instead of
    returning False, so scenario code reads as a list of assertions.
    """

    def __init__(
        self,
        settings: VerifySettings,
        cluster: ClusterClient,
        accessor: ResourceAccessor,
        status_provider: ApplicationStatusProvider,
        applier: ManifestApplier,
        clean_slate: CleanSlateCoordinator,
        *,
        clock: PollClock = SYSTEM_CLOCK,
    ) -> None:
        self.settings = settings
        self.cluster = cluster
        self.accessor = accessor
        self.status_provider = status_provider
        self.applier = applier
        self.clean_slate = clean_slate
        self.clock = clock
        self._namespaces: dict[str, str] = {}

    def namespace(self, base: str) -> str:
        """Namespace used for ``base`` during this run.

        Stable for the whole run; unique per run when
        ``settings.unique_namespaces`` is set.
        """
        if base not in self._namespaces:
            self._namespaces[base] = scenario_namespace(
                base, unique=self.settings.unique_namespaces
            )
        return self._namespaces[base]

    def manifest(self, filename: str) -> Path:
        return self.settings.manifest_dir / filename

    def require_all(
        self,
        expectations: ExpectationSet,
        polling: PollingConfig | None = None,
    ) -> ConvergenceResult:
        polling = polling or self.settings.default_polling
        result = await_all(self.accessor, expectations, **polling.as_kwargs(), clock=self.clock)
        if not result.satisfied:
            raise DeadlineExceededError(
                f"resources in namespace '{expectations.namespace}'",
                polling.timeout,
                result.last_outcomes,
            )
        return result

    def require_gone(self, ref: ResourceRef, polling: PollingConfig | None = None) -> None:
        polling = polling or self.settings.default_polling
        if not await_gone(self.accessor, ref, **polling.as_kwargs(), clock=self.clock):
            raise DeadlineExceededError(
                f"{ref} to be deleted",
                polling.timeout,
                {ref: self.accessor.fetch(ref)},
            )

    def require_deployment_ready(
        self,
        ref: ResourceRef,
        replicas: int = 1,
        polling: PollingConfig | None = None,
    ) -> None:
        polling = polling or self.settings.default_polling
        ready = await_deployment_ready(
            self.accessor, ref, replicas, **polling.as_kwargs(), clock=self.clock
        )
        if not ready:
            raise DeadlineExceededError(
                f"{ref} with {replicas} available replicas",
                polling.timeout,
                {ref: self.accessor.fetch(ref)},
            )

    def require_status(self, target: StatusTarget, polling: PollingConfig | None = None) -> None:
        polling = polling or self.settings.status
        if not await_status(self.status_provider, target, **polling.as_kwargs(), clock=self.clock):
            raise DeadlineExceededError(f"{target} to be healthy and synced", polling.timeout)

    def require_steady(
        self,
        ref: ResourceRef,
        predicate: Callable[[dict[str, Any]], bool],
        **kwargs: Any,
    ) -> None:
        hold_steady(
            self.accessor,
            ref,
            predicate,
            window=self.settings.observation_window,
            interval=self.settings.resource_interval,
            clock=self.clock,
            **kwargs,
        )


class Scenario(ABC):
    """One independent verification unit.

    Subclasses set ``name`` and optionally ``depends_on`` (names of
    scenarios whose postcondition is this scenario's precondition).
    """

    name: ClassVar[str]
    depends_on: ClassVar[tuple[str, ...]] = ()

    def reset_namespaces(self, ctx: ScenarioContext) -> list[str]:  # noqa: ARG002
        """Namespaces to wipe before the trigger. Default: none."""
        return []

    def trigger(self, ctx: ScenarioContext) -> None:  # noqa: B027
        """Mutate the cluster so the reconciler acts. Default: nothing."""

    @abstractmethod
    def verify(self, ctx: ScenarioContext) -> None:
        """Assert the reconciler's side effects; raise on failure."""


class ScenarioRunner:
    """Runs scenarios sequentially in their declared order."""

    def __init__(
        self,
        scenarios: Sequence[Scenario],
        ctx: ScenarioContext,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.scenarios = list(scenarios)
        self.ctx = ctx
        self._clock = clock
        self._validate_order()

    def _validate_order(self) -> None:
        seen: set[str] = set()
        for scenario in self.scenarios:
            if scenario.name in seen:
                msg = f"duplicate scenario name: {scenario.name}"
                raise ValueError(msg)
            for dependency in scenario.depends_on:
                if dependency not in seen:
                    msg = (
                        f"scenario '{scenario.name}' depends on '{dependency}', "
                        f"which must be declared before it"
                    )
                    raise ValueError(msg)
            seen.add(scenario.name)

    @property
    def names(self) -> list[str]:
        return [scenario.name for scenario in self.scenarios]

    def run(self, selected: Iterable[str] | None = None) -> RunReport:
        """Run the selected scenarios (all by default) in declared order.

        A dependency that was not selected is not run and does not block.

        Raises:
            KeyError: If a selected name is unknown.
        """
        wanted = set(selected) if selected is not None else set(self.names)
        unknown = wanted.difference(self.names)
        if unknown:
            raise KeyError(f"unknown scenarios: {', '.join(sorted(unknown))}")

        report = RunReport()
        outcome: dict[str, ScenarioResult] = {}

        for scenario in self.scenarios:
            if scenario.name not in wanted:
                continue

            if report.aborted:
                result = ScenarioResult(name=scenario.name)
                result.enter(ScenarioState.BLOCKED)
                result.detail = "run aborted after cleanup failure"
            else:
                blocking = [
                    dep
                    for dep in scenario.depends_on
                    if dep in outcome and not outcome[dep].passed
                ]
                if blocking:
                    result = ScenarioResult(name=scenario.name)
                    result.enter(ScenarioState.BLOCKED)
                    result.detail = f"dependency did not pass: {', '.join(blocking)}"
                else:
                    result = self.run_one(scenario)
                    report.aborted = result.fatal

            outcome[scenario.name] = result
            report.results.append(result)

        logger.info(
            "runner.finished",
            passed=sum(1 for r in report.results if r.passed),
            failed=len(report.failures()),
            aborted=report.aborted,
        )
        return report

    def run_one(self, scenario: Scenario) -> ScenarioResult:
        """Drive one scenario through its state machine."""
        result = ScenarioResult(name=scenario.name)
        start = self._clock()
        log = logger.bind(scenario=scenario.name)
        reason = ""

        with verify_span(get_tracer(), "scenario", scenario=scenario.name) as span:
            try:
                namespaces = scenario.reset_namespaces(self.ctx)
                if namespaces:
                    result.enter(ScenarioState.RESET)
                    for namespace in namespaces:
                        self.ctx.clean_slate.reset(
                            namespace, deadline=self.ctx.settings.cleanup.timeout
                        )

                result.enter(ScenarioState.TRIGGER)
                scenario.trigger(self.ctx)

                result.enter(ScenarioState.POLLING)
                scenario.verify(self.ctx)
                result.enter(ScenarioState.SATISFIED)
            except CleanupFailure as e:
                reason = type(e).__name__
                log.error("scenario.cleanup_failed", error=str(e))
                result.enter(ScenarioState.FAILED)
                result.detail = f"CleanupFailure: {e}"
                result.fatal = True
            except DeadlineExceededError as e:
                reason = type(e).__name__
                log.warning("scenario.timed_out", error=str(e))
                result.enter(ScenarioState.TIMED_OUT)
                result.detail = str(e)
            except GitOpsVerifyError as e:
                reason = type(e).__name__
                log.warning("scenario.failed", error=str(e), error_type=type(e).__name__)
                result.enter(ScenarioState.FAILED)
                result.detail = f"{type(e).__name__}: {e}"
            except Exception as e:
                reason = type(e).__name__
                log.exception("scenario.crashed")
                result.enter(ScenarioState.FAILED)
                result.detail = f"{type(e).__name__}: {e}"
            span.set_attribute("verify.state", result.state.value)
            if result.state is not ScenarioState.SATISFIED:
                mark_unsatisfied(span, reason)

        result.elapsed = self._clock() - start
        return result


__all__ = [
    "TERMINAL_STATES",
    "RunReport",
    "Scenario",
    "ScenarioContext",
    "ScenarioResult",
    "ScenarioRunner",
    "ScenarioState",
]
