"""Timeout-bounded pollers over the Typed Resource Accessor.

Every primitive here is a synchronous sleep-then-check loop: no watch or
push notification from the cluster is assumed. Fetch-level errors are
absorbed and turned into continued waiting; the deadline is the only
cancellation signal.

Functions:
    wait_for_condition: Poll an arbitrary condition until true or timeout
    await_all: Convergence Poller, every expected resource is Found
    await_gone: Absence Poller, a resource is confirmedly NotFound
    await_deployment_ready: a deployment reports enough available replicas
    hold_steady: a predicate keeps holding for a whole observation window

Example:
    from gitops_verify.polling import await_all

    result = await_all(accessor, expectations, interval=1.0, deadline=180.0)
    if not result.satisfied:
        print(result.pending())
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from gitops_verify.errors import AssertionMismatch
from gitops_verify.models import ConvergenceResult, PollOutcome, ResourceRef
from gitops_verify.telemetry.tracing import get_tracer, mark_unsatisfied, verify_span

if TYPE_CHECKING:
    from gitops_verify.accessor import ResourceAccessor
    from gitops_verify.models import ExpectationSet

logger = structlog.get_logger(__name__)

DEADLINE_EXCEEDED = "DeadlineExceeded"


class PollingConfig(BaseModel):
    """Cadence and deadline of one poll session.

    Attributes:
        timeout: Maximum wait time in seconds.
        interval: Poll interval in seconds.

    Example:
        config = PollingConfig(timeout=180.0, interval=1.0)
        await_all(accessor, expectations, **config.as_kwargs())
    """

    model_config = ConfigDict(frozen=True)

    timeout: float = Field(
        default=120.0,
        ge=0.0,
        description="Maximum wait time in seconds",
    )
    interval: float = Field(
        default=5.0,
        gt=0.0,
        description="Poll interval in seconds",
    )

    def as_kwargs(self) -> dict[str, float]:
        return {"interval": self.interval, "deadline": self.timeout}


@dataclass(frozen=True)
class PollClock:
    """Time source for pollers; swapped for a virtual clock in tests."""

    monotonic: Callable[[], float] = time.monotonic
    sleep: Callable[[float], None] = time.sleep


SYSTEM_CLOCK = PollClock()


def _check_cadence(interval: float, deadline: float) -> None:
    if interval <= 0:
        msg = f"interval must be positive, got {interval}"
        raise ValueError(msg)
    if deadline < 0:
        msg = f"deadline must be non-negative, got {deadline}"
        raise ValueError(msg)


def wait_for_condition(
    condition: Callable[[], bool],
    timeout: float = 30.0,
    interval: float = 0.5,
    description: str = "condition",
    *,
    clock: PollClock = SYSTEM_CLOCK,
) -> bool:
    """Poll until condition is True or timeout.

    The condition is evaluated first, then the deadline is checked, so a
    round that succeeds on the deadline tick counts as success. Sleeps never
    overshoot the deadline, which means the last round runs at the deadline.

    Args:
        condition: Callable returning True when the condition is met.
            Exceptions it raises count as "not yet".
        timeout: Maximum wait time in seconds.
        interval: Poll interval in seconds.
        description: Description for log messages.
        clock: Time source.

    Returns:
        True if the condition was met within timeout, False otherwise.
    """
    _check_cadence(interval, timeout)
    start_time = clock.monotonic()

    while True:
        try:
            if condition():
                return True
        except Exception as e:  # noqa: BLE001
            logger.debug("polling.condition_error", description=description, error=str(e))

        elapsed = clock.monotonic() - start_time
        if elapsed >= timeout:
            logger.info("polling.timeout", description=description, timeout=timeout)
            return False

        # Sleep for interval, but don't exceed remaining time
        sleep_time = min(interval, timeout - elapsed)
        if sleep_time > 0:
            clock.sleep(sleep_time)


def await_all(
    accessor: ResourceAccessor,
    expectations: ExpectationSet,
    interval: float,
    deadline: float,
    *,
    clock: PollClock = SYSTEM_CLOCK,
) -> ConvergenceResult:
    """Convergence Poller: wait until every expected resource is Found.

    Each round fetches every resource, even after a miss, so the log shows
    the full picture of partial convergence. NotFound and TransientError
    both mean "not yet".

    Args:
        accessor: Accessor used for every fetch.
        expectations: Resources that must all exist.
        interval: Seconds between rounds.
        deadline: Seconds before giving up.
        clock: Time source.

    Returns:
        ConvergenceResult with the last outcome of every resource.
    """
    refs = expectations.refs()
    last_outcomes: dict[ResourceRef, PollOutcome] = {}
    rounds = 0

    def _round() -> bool:
        nonlocal rounds
        rounds += 1
        for ref in refs:
            outcome = accessor.fetch(ref)
            last_outcomes[ref] = outcome
            logger.debug("convergence.outcome", resource=str(ref), outcome=str(outcome))
        found = sum(1 for ref in refs if last_outcomes[ref].is_found)
        logger.info(
            "convergence.round",
            namespace=expectations.namespace,
            round=rounds,
            found=found,
            expected=len(refs),
        )
        return found == len(refs)

    with verify_span(
        get_tracer(),
        "await_all",
        namespace=expectations.namespace,
        extra_attributes={"verify.expected": len(refs)},
    ) as span:
        start = clock.monotonic()
        satisfied = wait_for_condition(
            _round,
            timeout=deadline,
            interval=interval,
            description=f"{len(refs)} resources in '{expectations.namespace}'",
            clock=clock,
        )
        elapsed = clock.monotonic() - start
        span.set_attribute("verify.rounds", rounds)
        span.set_attribute("verify.satisfied", satisfied)
        if not satisfied:
            mark_unsatisfied(span, DEADLINE_EXCEEDED)

    result = ConvergenceResult(
        satisfied=satisfied,
        elapsed=elapsed,
        rounds=rounds,
        last_outcomes=dict(last_outcomes),
    )
    if not satisfied:
        for ref in result.pending():
            logger.warning(
                "convergence.unsatisfied",
                resource=str(ref),
                outcome=str(last_outcomes[ref]),
            )
    return result


def await_gone(
    accessor: ResourceAccessor,
    ref: ResourceRef,
    interval: float,
    deadline: float,
    *,
    clock: PollClock = SYSTEM_CLOCK,
) -> bool:
    """Absence Poller: wait until ``ref`` is NotFound.

    Found and TransientError both count as "still present".

    Returns:
        True on the first NotFound, False if the deadline elapsed first.
    """

    def _gone() -> bool:
        outcome = accessor.fetch(ref)
        if outcome.is_not_found:
            logger.info("absence.gone", resource=str(ref))
            return True
        logger.info("absence.still_present", resource=str(ref), outcome=str(outcome))
        return False

    with verify_span(get_tracer(), "await_gone", resource=str(ref)) as span:
        gone = wait_for_condition(
            _gone,
            timeout=deadline,
            interval=interval,
            description=f"{ref} to be deleted",
            clock=clock,
        )
        span.set_attribute("verify.satisfied", gone)
        if not gone:
            mark_unsatisfied(span, DEADLINE_EXCEEDED)
    return gone


def available_replicas(deployment: dict[str, Any] | None) -> int:
    """Available replica count reported in a deployment's status."""
    status = (deployment or {}).get("status") or {}
    return int(status.get("availableReplicas") or 0)


def await_deployment_ready(
    accessor: ResourceAccessor,
    ref: ResourceRef,
    replicas: int,
    interval: float,
    deadline: float,
    *,
    clock: PollClock = SYSTEM_CLOCK,
) -> bool:
    """Wait until a deployment reports at least ``replicas`` available.

    Returns:
        True once ready, False if the deadline elapsed first.
    """

    def _ready() -> bool:
        outcome = accessor.fetch(ref)
        available = available_replicas(outcome.resource) if outcome.is_found else 0
        logger.info(
            "deployment.availability",
            resource=str(ref),
            available=available,
            desired=replicas,
            outcome=str(outcome),
        )
        return outcome.is_found and available >= replicas

    with verify_span(get_tracer(), "await_deployment_ready", resource=str(ref)) as span:
        ready = wait_for_condition(
            _ready,
            timeout=deadline,
            interval=interval,
            description=f"{ref} with {replicas} available replicas",
            clock=clock,
        )
        span.set_attribute("verify.satisfied", ready)
        if not ready:
            mark_unsatisfied(span, DEADLINE_EXCEEDED)
    return ready


def hold_steady(
    accessor: ResourceAccessor,
    ref: ResourceRef,
    predicate: Callable[[dict[str, Any]], bool],
    window: float,
    interval: float,
    *,
    field: str = "value",
    expected: Any = True,
    observe: Callable[[dict[str, Any]], Any] | None = None,
    clock: PollClock = SYSTEM_CLOCK,
) -> None:
    """Check that ``predicate`` keeps holding for the whole window.

    This proves a negative ("the reconciler did not revert it") only as well
    as the window is long: a reconcile that happens after the window is not
    observed. Treat a pass as a heuristic, not a guarantee.

    Args:
        accessor: Accessor used for every fetch.
        ref: Resource to observe.
        predicate: Must be true for the fetched object on every observation.
        window: Seconds to keep observing.
        interval: Seconds between observations.
        field: Field name reported on mismatch.
        expected: Expected value reported on mismatch.
        observe: Extracts the observed value for the mismatch report.
        clock: Time source.

    Raises:
        AssertionMismatch: On the first observation where the predicate is
            false or raises, or the resource is gone.
    """
    mismatch: list[AssertionMismatch] = []

    def _diverged() -> bool:
        outcome = accessor.fetch(ref)
        if outcome.is_transient:
            return False
        resource = outcome.resource if outcome.is_found else None
        if resource is not None:
            try:
                if predicate(resource):
                    return False
                observed = observe(resource) if observe else None
            except Exception as e:  # noqa: BLE001
                observed = f"{type(e).__name__}: {e}"
        else:
            observed = None
        mismatch.append(AssertionMismatch(field, expected=expected, observed=observed))
        return True

    with verify_span(get_tracer(), "hold_steady", resource=str(ref)):
        wait_for_condition(
            _diverged,
            timeout=window,
            interval=interval,
            description=f"{ref} {field} to change",
            clock=clock,
        )
        if mismatch:
            logger.warning("steady.diverged", resource=str(ref), error=str(mismatch[0]))
            raise mismatch[0]
    logger.info("steady.held", resource=str(ref), window=window)


__all__ = [
    "DEADLINE_EXCEEDED",
    "SYSTEM_CLOCK",
    "PollClock",
    "PollingConfig",
    "available_replicas",
    "await_all",
    "await_deployment_ready",
    "await_gone",
    "hold_steady",
    "wait_for_condition",
]
