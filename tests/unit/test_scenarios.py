"""Unit tests for the scenario catalogue against a simulated operator.

``operator_cluster`` pre-populates what a healthy operator install looks like
and registers hooks that play the reconciler's part: creating the resources
of a new Argo CD instance a little later, and syncing applications when
their manifests are applied.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from gitops_verify.config import VerifySettings
from gitops_verify.kinds import ResourceKind
from gitops_verify.scenarios.gitops import (
    ALERT_RULE_NAME,
    ARGOCD_SERVER_ROUTE,
    ArgoCDInstallationScenario,
    ArgoCDTeardownScenario,
    ConsoleLinkScenario,
    MachineConfigUpdatesScenario,
    NamespaceScopedInstallScenario,
    NonDefaultNamespaceScenario,
    default_catalogue,
    route_host,
    standalone_expectations,
)
from gitops_verify.scenarios.runner import ScenarioContext, ScenarioRunner, ScenarioState
from gitops_verify.testing import InMemoryCluster, RecordingApplier, make_context

GITOPS = "openshift-gitops"
ROUTE_HOST = "openshift-gitops-server-openshift-gitops.apps.example.com"
RECONCILE_DELAY = 20.0


def _obj(name: str, namespace: str = "", **fields: Any) -> dict[str, Any]:
    metadata = {"name": name}
    if namespace:
        metadata["namespace"] = namespace
    return {"metadata": metadata, **fields}


def _synced_app(name: str, namespace: str) -> dict[str, Any]:
    return _obj(
        name,
        namespace,
        status={"health": {"status": "Healthy"}, "sync": {"status": "Synced"}},
    )


def _reconcile_argocd(cluster: InMemoryCluster, kind: ResourceKind, body: dict[str, Any]) -> None:
    name = body["metadata"]["name"]
    namespace = body["metadata"]["namespace"]
    at = cluster.clock.now + RECONCILE_DELAY
    for ref in standalone_expectations(name, namespace).refs():
        cluster.schedule(ref.kind, _obj(ref.name, ref.namespace), at=at)


@pytest.fixture
def operator_cluster(cluster: InMemoryCluster, settings: VerifySettings) -> InMemoryCluster:
    """Cluster state after a successful operator install."""
    cluster.add(
        ResourceKind.DEPLOYMENT,
        _obj(settings.operator_name, settings.operator_namespace, status={"availableReplicas": 1}),
    )
    cluster.add(ResourceKind.NAMESPACE, _obj(GITOPS))
    cluster.add(ResourceKind.DEPLOYMENT, _obj("cluster", GITOPS, status={"availableReplicas": 1}))
    cluster.add(ResourceKind.SERVICE, _obj("cluster", GITOPS))
    cluster.add(ResourceKind.ROUTE, _obj("cluster", GITOPS))
    cluster.add(ResourceKind.ROUTE, _obj(ARGOCD_SERVER_ROUTE, GITOPS, spec={"host": ROUTE_HOST}))
    cluster.add(ResourceKind.CONSOLE_LINK, _obj("argocd", spec={"href": f"https://{ROUTE_HOST}"}))
    cluster.add(ResourceKind.ARGOCD, _obj(GITOPS, GITOPS, spec={}))
    cluster.add(ResourceKind.ROLE, _obj(f"{GITOPS}-read", GITOPS))
    cluster.add(ResourceKind.ROLE_BINDING, _obj(f"{GITOPS}-prometheus-k8s-read-binding", GITOPS))
    for name in (GITOPS, f"{GITOPS}-server", f"{GITOPS}-repo-server"):
        cluster.add(ResourceKind.SERVICE_MONITOR, _obj(name, GITOPS))
    cluster.add(ResourceKind.PROMETHEUS_RULE, _obj(ALERT_RULE_NAME, GITOPS))
    cluster.on_create(ResourceKind.ARGOCD, _reconcile_argocd)
    return cluster


@pytest.fixture
def applier(operator_cluster: InMemoryCluster, settings: VerifySettings) -> RecordingApplier:
    """Applier that syncs the application named by the applied manifest."""

    def _sync(path: Path) -> None:
        at = operator_cluster.clock.now + 5.0
        if path.name == "image_appcr.yaml":
            operator_cluster.schedule(ResourceKind.APPLICATION, _synced_app("image", GITOPS), at=at)
            operator_cluster.schedule(ResourceKind.IMAGE, _obj("cluster"), at=at)
        elif path.name == "identity-provider_appcr.yaml":
            operator_cluster.schedule(
                ResourceKind.APPLICATION,
                _synced_app("identity-provider", settings.non_default_namespace),
                at=at,
            )

    return RecordingApplier(_sync)


@pytest.fixture
def ctx(
    operator_cluster: InMemoryCluster, settings: VerifySettings, applier: RecordingApplier
) -> ScenarioContext:
    return make_context(operator_cluster, settings=settings, applier=applier)


class TestHelpers:
    """Tests for catalogue helpers."""

    @pytest.mark.requirement("GV-FR-011")
    @pytest.mark.parametrize(
        ("href", "host"),
        [
            ("https://argocd.apps.example.com", "argocd.apps.example.com"),
            ("http://argocd.apps.example.com/applications", "argocd.apps.example.com"),
            ("argocd.apps.example.com", "argocd.apps.example.com"),
        ],
    )
    def test_route_host(self, href: str, host: str) -> None:
        assert route_host(href) == host

    @pytest.mark.requirement("GV-FR-011")
    def test_standalone_expectations(self) -> None:
        names = {
            (ref.kind, ref.name)
            for ref in standalone_expectations("standalone-argocd-instance", "ns").refs()
        }
        for suffix in ("dex-server", "redis", "repo-server", "server"):
            assert (ResourceKind.DEPLOYMENT, f"standalone-argocd-instance-{suffix}") in names
        for config_map in (
            "argocd-cm",
            "argocd-gpg-keys-cm",
            "argocd-rbac-cm",
            "argocd-ssh-known-hosts-cm",
            "argocd-tls-certs-cm",
        ):
            assert (ResourceKind.CONFIG_MAP, config_map) in names

    @pytest.mark.requirement("GV-FR-011")
    def test_catalogue_order(self, settings: VerifySettings) -> None:
        assert [s.name for s in default_catalogue(settings)] == [
            "operator-deployment",
            "gitops-backend",
            "console-link",
            "argocd-installation",
            "argocd-metrics",
            "machine-config-updates",
            "non-default-namespace-management",
            "namespace-scoped-install",
            "argocd-teardown",
        ]

    @pytest.mark.requirement("GV-FR-011")
    def test_skip_operator_deployment(self) -> None:
        settings = VerifySettings(_env_file=None, skip_operator_deployment=True)
        assert "operator-deployment" not in [s.name for s in default_catalogue(settings)]


class TestCatalogue:
    """Full catalogue runs on virtual time."""

    @pytest.mark.requirement("GV-FR-011")
    def test_healthy_operator_passes_everything(
        self, ctx: ScenarioContext, applier: RecordingApplier
    ) -> None:
        runner = ScenarioRunner(default_catalogue(ctx.settings), ctx, clock=ctx.clock.monotonic)

        report = runner.run()

        assert report.passed, [(r.name, r.detail) for r in report.failures()]
        assert [p.name for p in applier.applied] == [
            "image_appcr.yaml",
            "identity-provider_appcr.yaml",
        ]

    @pytest.mark.requirement("GV-FR-011")
    def test_teardown_blocked_when_installation_fails(
        self, ctx: ScenarioContext, operator_cluster: InMemoryCluster
    ) -> None:
        operator_cluster.remove(ResourceKind.ARGOCD, GITOPS, GITOPS)
        runner = ScenarioRunner(
            [ArgoCDInstallationScenario(), ArgoCDTeardownScenario()],
            ctx,
            clock=ctx.clock.monotonic,
        )

        report = runner.run()

        assert report.result("argocd-installation").state is ScenarioState.TIMED_OUT
        assert report.result("argocd-teardown").state is ScenarioState.BLOCKED

    @pytest.mark.requirement("GV-FR-011")
    def test_unique_namespaces_keep_manifest_namespace(
        self,
        operator_cluster: InMemoryCluster,
        settings: VerifySettings,
        applier: RecordingApplier,
    ) -> None:
        unique = settings.model_copy(update={"unique_namespaces": True})
        ctx = make_context(operator_cluster, settings=unique, applier=applier)
        runner = ScenarioRunner(default_catalogue(unique), ctx, clock=ctx.clock.monotonic)

        report = runner.run()

        assert report.passed, [(r.name, r.detail) for r in report.failures()]
        standalone = ctx.namespace(unique.standalone_namespace)
        assert standalone != unique.standalone_namespace
        assert operator_cluster.exists(
            ResourceKind.DEPLOYMENT, "standalone-argocd-instance-server", standalone
        )
        assert operator_cluster.exists(
            ResourceKind.ARGOCD, unique.non_default_instance_name, unique.non_default_namespace
        )


class TestScenarios:
    """Single-scenario behaviour."""

    @staticmethod
    def _run(ctx: ScenarioContext, scenario: Any) -> Any:
        runner = ScenarioRunner([scenario], ctx, clock=ctx.clock.monotonic)
        return runner.run().result(scenario.name)

    @pytest.mark.requirement("GV-FR-011")
    def test_console_link_host_mismatch(
        self, ctx: ScenarioContext, operator_cluster: InMemoryCluster
    ) -> None:
        operator_cluster.add(
            ResourceKind.CONSOLE_LINK, _obj("argocd", spec={"href": "https://stale.example.com"})
        )

        result = self._run(ctx, ConsoleLinkScenario())

        assert result.state is ScenarioState.FAILED
        assert "AssertionMismatch" in result.detail
        assert ROUTE_HOST in result.detail
        assert "stale.example.com" in result.detail

    @pytest.mark.requirement("GV-FR-011")
    def test_console_link_reads_each_object_once(
        self, ctx: ScenarioContext, operator_cluster: InMemoryCluster
    ) -> None:
        result = self._run(ctx, ConsoleLinkScenario())

        assert result.passed
        reads = [call for call in operator_cluster.calls if call[0] == "get"]
        assert reads == [
            ("get", ResourceKind.ROUTE, ARGOCD_SERVER_ROUTE, GITOPS),
            ("get", ResourceKind.CONSOLE_LINK, "argocd", ""),
        ]

    @pytest.mark.requirement("GV-FR-011")
    def test_disable_admin_edit_survives(
        self, ctx: ScenarioContext, operator_cluster: InMemoryCluster
    ) -> None:
        result = self._run(ctx, ArgoCDInstallationScenario())

        assert result.passed
        instance = operator_cluster.get(ResourceKind.ARGOCD, GITOPS, GITOPS)
        assert instance["spec"]["disableAdmin"] is True
        assert result.elapsed == pytest.approx(ctx.settings.observation_window)

    @pytest.mark.requirement("GV-FR-011")
    def test_disable_admin_reverted_by_reconciler(
        self, ctx: ScenarioContext, operator_cluster: InMemoryCluster
    ) -> None:
        original_update = operator_cluster.update

        def update_then_revert(kind: ResourceKind, body: dict[str, Any]) -> dict[str, Any]:
            result = original_update(kind, body)
            reverted = {**body, "spec": {**body["spec"], "disableAdmin": False}}
            operator_cluster.schedule(kind, reverted, at=operator_cluster.clock.now + 2.0)
            return result

        operator_cluster.update = update_then_revert  # type: ignore[method-assign]

        result = self._run(ctx, ArgoCDInstallationScenario())

        assert result.state is ScenarioState.FAILED
        assert result.detail == (
            "AssertionMismatch: argocd.spec.disableAdmin: expected True, observed False"
        )

    @pytest.mark.requirement("GV-FR-011")
    def test_standalone_install_converges(
        self, ctx: ScenarioContext, operator_cluster: InMemoryCluster
    ) -> None:
        result = self._run(ctx, NamespaceScopedInstallScenario())

        assert result.passed
        assert result.transitions[:3] == [
            ScenarioState.INIT,
            ScenarioState.RESET,
            ScenarioState.TRIGGER,
        ]
        assert result.elapsed == pytest.approx(RECONCILE_DELAY)
        assert operator_cluster.exists(
            ResourceKind.DEPLOYMENT,
            "standalone-argocd-instance-repo-server",
            ctx.settings.standalone_namespace,
        )

    @pytest.mark.requirement("GV-FR-011")
    def test_standalone_install_times_out_at_resource_deadline(
        self, ctx: ScenarioContext, operator_cluster: InMemoryCluster
    ) -> None:
        def partial_reconcile(
            cluster: InMemoryCluster, kind: ResourceKind, body: dict[str, Any]
        ) -> None:
            cluster.remove(
                ResourceKind.CONFIG_MAP, "argocd-tls-certs-cm", ctx.settings.standalone_namespace
            )

        operator_cluster.on_create(ResourceKind.ARGOCD, partial_reconcile)

        result = self._run(ctx, NamespaceScopedInstallScenario())

        assert result.state is ScenarioState.TIMED_OUT
        assert result.elapsed == pytest.approx(180.0)
        assert "ConfigMap/gitops-standalone-test/argocd-tls-certs-cm: not_found" in result.detail

    @pytest.mark.requirement("GV-FR-011")
    def test_standalone_reset_removes_previous_run(
        self, ctx: ScenarioContext, operator_cluster: InMemoryCluster
    ) -> None:
        namespace = ctx.settings.standalone_namespace
        operator_cluster.add(ResourceKind.NAMESPACE, _obj(namespace))
        operator_cluster.add(ResourceKind.ARGOCD, _obj("standalone-argocd-instance", namespace))
        operator_cluster.set_deletion_delay(ResourceKind.NAMESPACE, namespace, delay=8.0)

        result = self._run(ctx, NamespaceScopedInstallScenario())

        assert result.passed
        assert result.elapsed == pytest.approx(8.0 + RECONCILE_DELAY)

    @pytest.mark.requirement("GV-FR-011")
    def test_machine_config_updates(
        self, ctx: ScenarioContext, applier: RecordingApplier
    ) -> None:
        result = self._run(ctx, MachineConfigUpdatesScenario())

        assert result.passed
        assert applier.applied == [Path("test/yamls/image_appcr.yaml")]

    @pytest.mark.requirement("GV-FR-011")
    def test_non_default_namespace_creates_instance(
        self, ctx: ScenarioContext, operator_cluster: InMemoryCluster
    ) -> None:
        result = self._run(ctx, NonDefaultNamespaceScenario())

        assert result.passed
        namespace = ctx.settings.non_default_namespace
        assert operator_cluster.exists(ResourceKind.NAMESPACE, namespace)
        assert operator_cluster.exists(
            ResourceKind.ARGOCD, ctx.settings.non_default_instance_name, namespace
        )

    @pytest.mark.requirement("GV-FR-011")
    def test_non_default_namespace_tolerates_existing(
        self, ctx: ScenarioContext, operator_cluster: InMemoryCluster
    ) -> None:
        namespace = ctx.settings.non_default_namespace
        operator_cluster.add(ResourceKind.NAMESPACE, _obj(namespace))
        operator_cluster.add(
            ResourceKind.ARGOCD, _obj(ctx.settings.non_default_instance_name, namespace)
        )

        assert self._run(ctx, NonDefaultNamespaceScenario()).passed

    @pytest.mark.requirement("GV-FR-011")
    def test_teardown_waits_for_finalizers(
        self, ctx: ScenarioContext, operator_cluster: InMemoryCluster
    ) -> None:
        operator_cluster.set_deletion_delay(ResourceKind.ARGOCD, GITOPS, GITOPS, delay=12.0)

        result = self._run(ctx, ArgoCDTeardownScenario())

        assert result.passed
        assert result.elapsed == pytest.approx(15.0)
        assert not operator_cluster.exists(ResourceKind.ARGOCD, GITOPS, GITOPS)
