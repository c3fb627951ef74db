"""Scenario catalogue for the GitOps operator.

Each scenario checks one side effect of the operator's reconciler. The
catalogue order matters only where ``depends_on`` says so: teardown needs
the default Argo CD instance verified by ``argocd-installation``.

See Also:
    gitops_verify.scenarios.runner: state machine and aggregation
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from gitops_verify.cluster import create_ignoring_existing
from gitops_verify.errors import AssertionMismatch
from gitops_verify.kinds import ResourceKind
from gitops_verify.models import ExpectationSet, ResourceRef, StatusTarget
from gitops_verify.scenarios.runner import Scenario, ScenarioContext

if TYPE_CHECKING:
    from gitops_verify.config import VerifySettings

IMAGE_APP_MANIFEST = "image_appcr.yaml"
IDENTITY_PROVIDER_MANIFEST = "identity-provider_appcr.yaml"
ARGOCD_SERVER_ROUTE = "openshift-gitops-server"
ALERT_RULE_NAME = "gitops-operator-argocd-alerts"


def namespace_body(name: str) -> dict[str, Any]:
    return {"metadata": {"name": name}}


def argocd_body(name: str, namespace: str) -> dict[str, Any]:
    """Minimal ArgoCD custom resource; the operator fills in defaults."""
    return {"metadata": {"name": name, "namespace": namespace}, "spec": {}}


def route_host(href: str) -> str:
    """Host part of a console link href."""
    for scheme in ("https://", "http://"):
        if href.startswith(scheme):
            href = href[len(scheme) :]
            break
    return href.split("/", 1)[0]


def standalone_expectations(name: str, namespace: str) -> ExpectationSet:
    """Resources the operator creates for a namespace-scoped Argo CD instance."""
    return ExpectationSet.from_mapping(
        namespace,
        {
            ResourceKind.DEPLOYMENT: [
                f"{name}-dex-server",
                f"{name}-redis",
                f"{name}-repo-server",
                f"{name}-server",
            ],
            ResourceKind.CONFIG_MAP: [
                "argocd-cm",
                "argocd-gpg-keys-cm",
                "argocd-rbac-cm",
                "argocd-ssh-known-hosts-cm",
                "argocd-tls-certs-cm",
            ],
            ResourceKind.SERVICE_ACCOUNT: [
                f"{name}-argocd-application-controller",
                f"{name}-argocd-server",
            ],
            ResourceKind.ROLE: [
                f"{name}-argocd-application-controller",
                f"{name}-argocd-server",
            ],
            ResourceKind.ROLE_BINDING: [
                f"{name}-argocd-application-controller",
                f"{name}-argocd-server",
            ],
            ResourceKind.SERVICE_MONITOR: [
                name,
                f"{name}-repo-server",
                f"{name}-server",
            ],
        },
    )


class OperatorDeploymentScenario(Scenario):
    """The operator's own deployment is available."""

    name = "operator-deployment"

    def verify(self, ctx: ScenarioContext) -> None:
        settings = ctx.settings
        ctx.require_deployment_ready(
            ResourceRef(
                kind=ResourceKind.DEPLOYMENT,
                name=settings.operator_name,
                namespace=settings.operator_namespace,
            ),
            replicas=settings.operator_replicas,
        )


class GitOpsBackendScenario(Scenario):
    """Backend deployment, service and route exist."""

    name = "gitops-backend"

    def verify(self, ctx: ScenarioContext) -> None:
        settings = ctx.settings
        namespace = settings.argocd_namespace
        ctx.require_deployment_ready(
            ResourceRef(
                kind=ResourceKind.DEPLOYMENT,
                name=settings.backend_name,
                namespace=namespace,
            )
        )
        ctx.require_all(
            ExpectationSet.from_mapping(
                namespace,
                {
                    ResourceKind.SERVICE: [settings.backend_name],
                    ResourceKind.ROUTE: [settings.backend_name],
                },
            )
        )


class ConsoleLinkScenario(Scenario):
    """Console link points at the Argo CD server route."""

    name = "console-link"

    def verify(self, ctx: ScenarioContext) -> None:
        settings = ctx.settings
        route_ref = ResourceRef(
            kind=ResourceKind.ROUTE,
            name=ARGOCD_SERVER_ROUTE,
            namespace=settings.argocd_namespace,
        )
        link_ref = ResourceRef(kind=ResourceKind.CONSOLE_LINK, name=settings.console_link_name)
        routes = ctx.require_all(
            ExpectationSet.from_mapping(route_ref.namespace, {route_ref.kind: [route_ref.name]})
        )
        links = ctx.require_all(ExpectationSet.from_mapping("", {link_ref.kind: [link_ref.name]}))

        route = routes.last_outcomes[route_ref].resource or {}
        link = links.last_outcomes[link_ref].resource or {}
        expected = (route.get("spec") or {}).get("host", "")
        observed = route_host((link.get("spec") or {}).get("href", ""))
        if observed != expected:
            raise AssertionMismatch(
                "consolelink.spec.href host", expected=expected, observed=observed
            )


def _disable_admin(resource: dict[str, Any]) -> Any:
    return (resource.get("spec") or {}).get("disableAdmin")


class ArgoCDInstallationScenario(Scenario):
    """Default instance exists and keeps a manual edit to ``disableAdmin``.

    The "not overwritten" check can only watch for a bounded window; a
    reconcile after the window goes unnoticed.
    """

    name = "argocd-installation"

    def _instance_ref(self, settings: VerifySettings) -> ResourceRef:
        return ResourceRef(
            kind=ResourceKind.ARGOCD,
            name=settings.argocd_instance_name,
            namespace=settings.argocd_namespace,
        )

    def trigger(self, ctx: ScenarioContext) -> None:
        settings = ctx.settings
        ctx.require_all(
            ExpectationSet.from_mapping("", {ResourceKind.NAMESPACE: [settings.argocd_namespace]})
        )
        ref = self._instance_ref(settings)
        ctx.require_all(ExpectationSet.from_mapping(ref.namespace, {ref.kind: [ref.name]}))

        instance = ctx.cluster.get(ref.kind, ref.name, ref.namespace)
        instance.setdefault("spec", {})["disableAdmin"] = True
        ctx.cluster.update(ref.kind, instance)

    def verify(self, ctx: ScenarioContext) -> None:
        ctx.require_steady(
            self._instance_ref(ctx.settings),
            lambda resource: _disable_admin(resource) is True,
            field="argocd.spec.disableAdmin",
            expected=True,
            observe=_disable_admin,
        )


class ArgoCDMetricsScenario(Scenario):
    """Monitoring RBAC, service monitors and alert rules exist."""

    name = "argocd-metrics"

    def verify(self, ctx: ScenarioContext) -> None:
        namespace = ctx.settings.argocd_namespace
        instance = ctx.settings.argocd_instance_name
        ctx.require_all(
            ExpectationSet.from_mapping(
                namespace,
                {
                    ResourceKind.ROLE: [f"{namespace}-read"],
                    ResourceKind.ROLE_BINDING: [f"{namespace}-prometheus-k8s-read-binding"],
                    ResourceKind.SERVICE_MONITOR: [
                        instance,
                        f"{instance}-server",
                        f"{instance}-repo-server",
                    ],
                    ResourceKind.PROMETHEUS_RULE: [ALERT_RULE_NAME],
                },
            )
        )


class MachineConfigUpdatesScenario(Scenario):
    """An application managing the cluster Image config syncs."""

    name = "machine-config-updates"

    def trigger(self, ctx: ScenarioContext) -> None:
        ctx.applier.apply(ctx.manifest(IMAGE_APP_MANIFEST))

    def verify(self, ctx: ScenarioContext) -> None:
        ctx.require_status(
            StatusTarget(resource_name="image", namespace=ctx.settings.argocd_namespace)
        )
        ctx.require_all(ExpectationSet.from_mapping("", {ResourceKind.IMAGE: ["cluster"]}))


class NonDefaultNamespaceScenario(Scenario):
    """An instance outside the default namespace manages an application.

    The namespace is named in the applied manifest, so it is never suffixed
    per run.
    """

    name = "non-default-namespace-management"

    def trigger(self, ctx: ScenarioContext) -> None:
        settings = ctx.settings
        namespace = settings.non_default_namespace
        create_ignoring_existing(ctx.cluster, ResourceKind.NAMESPACE, namespace_body(namespace))
        create_ignoring_existing(
            ctx.cluster,
            ResourceKind.ARGOCD,
            argocd_body(settings.non_default_instance_name, namespace),
        )
        ctx.applier.apply(ctx.manifest(IDENTITY_PROVIDER_MANIFEST))

    def verify(self, ctx: ScenarioContext) -> None:
        ctx.require_status(
            StatusTarget(
                resource_name="identity-provider",
                namespace=ctx.settings.non_default_namespace,
            )
        )


class NamespaceScopedInstallScenario(Scenario):
    """A namespace-scoped instance gets its full set of resources."""

    name = "namespace-scoped-install"

    def reset_namespaces(self, ctx: ScenarioContext) -> list[str]:
        return [ctx.namespace(ctx.settings.standalone_namespace)]

    def trigger(self, ctx: ScenarioContext) -> None:
        settings = ctx.settings
        namespace = ctx.namespace(settings.standalone_namespace)
        create_ignoring_existing(ctx.cluster, ResourceKind.NAMESPACE, namespace_body(namespace))
        ctx.cluster.create(
            ResourceKind.ARGOCD,
            argocd_body(settings.standalone_instance_name, namespace),
        )

    def verify(self, ctx: ScenarioContext) -> None:
        settings = ctx.settings
        ctx.require_all(
            standalone_expectations(
                settings.standalone_instance_name,
                ctx.namespace(settings.standalone_namespace),
            ),
            settings.convergence,
        )


class ArgoCDTeardownScenario(Scenario):
    """Deleting the default instance removes it."""

    name = "argocd-teardown"
    depends_on = ("argocd-installation",)

    def _ref(self, ctx: ScenarioContext) -> ResourceRef:
        return ResourceRef(
            kind=ResourceKind.ARGOCD,
            name=ctx.settings.argocd_instance_name,
            namespace=ctx.settings.argocd_namespace,
        )

    def trigger(self, ctx: ScenarioContext) -> None:
        ref = self._ref(ctx)
        ctx.cluster.delete(ref.kind, ref.name, ref.namespace)

    def verify(self, ctx: ScenarioContext) -> None:
        ctx.require_gone(self._ref(ctx))


def default_catalogue(settings: VerifySettings) -> list[Scenario]:
    """Scenarios in execution order."""
    scenarios: list[Scenario] = []
    if not settings.skip_operator_deployment:
        scenarios.append(OperatorDeploymentScenario())
    scenarios.extend(
        [
            GitOpsBackendScenario(),
            ConsoleLinkScenario(),
            ArgoCDInstallationScenario(),
            ArgoCDMetricsScenario(),
            MachineConfigUpdatesScenario(),
            NonDefaultNamespaceScenario(),
            NamespaceScopedInstallScenario(),
            ArgoCDTeardownScenario(),
        ]
    )
    return scenarios


__all__ = [
    "ArgoCDInstallationScenario",
    "ArgoCDMetricsScenario",
    "ArgoCDTeardownScenario",
    "ConsoleLinkScenario",
    "GitOpsBackendScenario",
    "MachineConfigUpdatesScenario",
    "NamespaceScopedInstallScenario",
    "NonDefaultNamespaceScenario",
    "OperatorDeploymentScenario",
    "argocd_body",
    "default_catalogue",
    "route_host",
    "standalone_expectations",
]
