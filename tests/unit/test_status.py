"""Unit tests for the Status Predicate Checker."""

from __future__ import annotations

from typing import Any

import pytest

from gitops_verify.errors import ClusterAPIError
from gitops_verify.kinds import ResourceKind
from gitops_verify.models import StatusTarget, status_is
from gitops_verify.status import (
    ApplicationStatus,
    ClusterApplicationStatus,
    await_status,
    evaluate,
)
from gitops_verify.testing import InMemoryCluster, ScriptedStatusProvider, VirtualClock

TARGET = StatusTarget(resource_name="image", namespace="openshift-gitops")
HEALTHY_SYNCED = ApplicationStatus(health="Healthy", sync="Synced")


class TestApplicationStatus:
    """Tests for reading status out of an Application object."""

    @pytest.mark.requirement("GV-FR-004")
    def test_from_resource(self) -> None:
        status = ApplicationStatus.from_resource(
            {"status": {"health": {"status": "Healthy"}, "sync": {"status": "OutOfSync"}}}
        )
        assert status == ApplicationStatus(health="Healthy", sync="OutOfSync")

    @pytest.mark.requirement("GV-FR-004")
    def test_missing_status_fields(self) -> None:
        assert ApplicationStatus.from_resource({}) == ApplicationStatus()

    @pytest.mark.requirement("GV-FR-004")
    def test_cluster_provider_reads_application(
        self, cluster: InMemoryCluster, make_obj: Any
    ) -> None:
        cluster.add(
            ResourceKind.APPLICATION,
            make_obj(
                "image",
                "openshift-gitops",
                status={"health": {"status": "Healthy"}, "sync": {"status": "Synced"}},
            ),
        )
        provider = ClusterApplicationStatus(cluster)
        assert provider.read("image", "openshift-gitops") == HEALTHY_SYNCED


class TestEvaluate:
    """Tests for evaluate()."""

    @pytest.mark.requirement("GV-FR-004")
    def test_both_axes(self) -> None:
        assert evaluate(TARGET, HEALTHY_SYNCED) == (True, True)
        assert evaluate(TARGET, ApplicationStatus(health="Healthy", sync="OutOfSync")) == (
            True,
            False,
        )

    @pytest.mark.requirement("GV-FR-004")
    def test_unreadable_is_false_false(self) -> None:
        assert evaluate(TARGET, None) == (False, False)

    @pytest.mark.requirement("GV-FR-004")
    def test_custom_predicates(self) -> None:
        target = StatusTarget(
            resource_name="app",
            namespace="ns",
            desired_health=status_is("Healthy", "Progressing"),
            desired_sync=status_is("Synced"),
        )
        assert evaluate(target, ApplicationStatus(health="Progressing", sync="Synced")) == (
            True,
            True,
        )


class TestAwaitStatus:
    """Tests for await_status()."""

    @pytest.mark.requirement("GV-FR-004")
    def test_eventually_healthy_and_synced(self, clock: VirtualClock) -> None:
        provider = ScriptedStatusProvider(
            [
                ApplicationStatus(),
                ApplicationStatus(health="Progressing", sync="OutOfSync"),
                ApplicationStatus(health="Healthy", sync="OutOfSync"),
                HEALTHY_SYNCED,
            ]
        )

        assert await_status(provider, TARGET, 1.0, 60.0, clock=clock.poll_clock)
        assert clock.now == pytest.approx(3.0)
        assert provider.reads == 4

    @pytest.mark.requirement("GV-FR-004")
    def test_out_of_phase_flapping_times_out(self, clock: VirtualClock) -> None:
        """Health and sync are each true on alternate rounds, never together."""
        provider = ScriptedStatusProvider(
            [
                ApplicationStatus(health="Healthy", sync="OutOfSync"),
                ApplicationStatus(health="Degraded", sync="Synced"),
            ]
            * 50
        )

        assert not await_status(provider, TARGET, 1.0, 60.0, clock=clock.poll_clock)
        assert clock.now == pytest.approx(60.0)

    @pytest.mark.requirement("GV-FR-004")
    def test_lookup_failures_are_not_errors(self, clock: VirtualClock) -> None:
        provider = ScriptedStatusProvider(
            [ClusterAPIError("throttled"), ClusterAPIError("throttled"), HEALTHY_SYNCED]
        )

        assert await_status(provider, TARGET, 1.0, 60.0, clock=clock.poll_clock)
        assert clock.now == pytest.approx(2.0)

    @pytest.mark.requirement("GV-FR-004")
    def test_missing_application_times_out(
        self, cluster: InMemoryCluster, clock: VirtualClock
    ) -> None:
        provider = ClusterApplicationStatus(cluster)
        assert not await_status(provider, TARGET, 1.0, 5.0, clock=clock.poll_clock)
        assert clock.now == pytest.approx(5.0)

    @pytest.mark.requirement("GV-FR-004")
    def test_status_appearing_in_cluster(
        self, cluster: InMemoryCluster, clock: VirtualClock, make_obj: Any
    ) -> None:
        cluster.add(ResourceKind.APPLICATION, make_obj("image", "openshift-gitops"))
        cluster.schedule(
            ResourceKind.APPLICATION,
            make_obj(
                "image",
                "openshift-gitops",
                status={"health": {"status": "Healthy"}, "sync": {"status": "Synced"}},
            ),
            at=12.0,
        )

        provider = ClusterApplicationStatus(cluster)
        assert await_status(provider, TARGET, 1.0, 60.0, clock=clock.poll_clock)
        assert clock.now == pytest.approx(12.0)
