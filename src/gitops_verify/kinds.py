"""Resource kinds known to the verification engine.

A ResourceKind is an opaque tag: it carries no behaviour of its own and is
only used to select how an object is read, created, updated or deleted.
The selection happens through KIND_SPECS, a dispatch table keyed by tag.

Kinds served by the typed Kubernetes APIs name the API group accessor and
the snake_case resource used in the generated method names
(``read_namespaced_config_map``). Custom resources name their group,
version and plural for the custom objects API.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ResourceKind(str, Enum):
    """Tag identifying a category of cluster resource."""

    NAMESPACE = "Namespace"
    DEPLOYMENT = "Deployment"
    SERVICE = "Service"
    CONFIG_MAP = "ConfigMap"
    SERVICE_ACCOUNT = "ServiceAccount"
    ROLE = "Role"
    ROLE_BINDING = "RoleBinding"
    SERVICE_MONITOR = "ServiceMonitor"
    PROMETHEUS_RULE = "PrometheusRule"
    ARGOCD = "ArgoCD"
    APPLICATION = "Application"
    ROUTE = "Route"
    CONSOLE_LINK = "ConsoleLink"
    IMAGE = "Image"
    GITOPS_SERVICE = "GitopsService"

    def __str__(self) -> str:
        return self.value


class KindSpec(BaseModel):
    """How to reach one kind through the Kubernetes API.

    Attributes:
        api: Which API client serves the kind.
        resource: snake_case resource for typed APIs, plural for custom objects.
        group: API group (custom objects only).
        version: API version (custom objects only).
        namespaced: False for cluster-scoped kinds.
    """

    model_config = ConfigDict(frozen=True)

    api: Literal["core", "apps", "rbac", "custom"]
    resource: str = Field(..., min_length=1)
    group: str = ""
    version: str = ""
    namespaced: bool = True

    @property
    def api_version(self) -> str:
        """apiVersion string used in object bodies."""
        if self.api == "custom":
            return f"{self.group}/{self.version}"
        if self.api == "apps":
            return "apps/v1"
        if self.api == "rbac":
            return "rbac.authorization.k8s.io/v1"
        return "v1"


def _custom(group: str, version: str, plural: str, *, namespaced: bool = True) -> KindSpec:
    return KindSpec(
        api="custom",
        resource=plural,
        group=group,
        version=version,
        namespaced=namespaced,
    )


KIND_SPECS: dict[ResourceKind, KindSpec] = {
    ResourceKind.NAMESPACE: KindSpec(api="core", resource="namespace", namespaced=False),
    ResourceKind.DEPLOYMENT: KindSpec(api="apps", resource="deployment"),
    ResourceKind.SERVICE: KindSpec(api="core", resource="service"),
    ResourceKind.CONFIG_MAP: KindSpec(api="core", resource="config_map"),
    ResourceKind.SERVICE_ACCOUNT: KindSpec(api="core", resource="service_account"),
    ResourceKind.ROLE: KindSpec(api="rbac", resource="role"),
    ResourceKind.ROLE_BINDING: KindSpec(api="rbac", resource="role_binding"),
    ResourceKind.SERVICE_MONITOR: _custom("monitoring.coreos.com", "v1", "servicemonitors"),
    ResourceKind.PROMETHEUS_RULE: _custom("monitoring.coreos.com", "v1", "prometheusrules"),
    ResourceKind.ARGOCD: _custom("argoproj.io", "v1alpha1", "argocds"),
    ResourceKind.APPLICATION: _custom("argoproj.io", "v1alpha1", "applications"),
    ResourceKind.ROUTE: _custom("route.openshift.io", "v1", "routes"),
    ResourceKind.CONSOLE_LINK: _custom(
        "console.openshift.io", "v1", "consolelinks", namespaced=False
    ),
    ResourceKind.IMAGE: _custom("config.openshift.io", "v1", "images", namespaced=False),
    ResourceKind.GITOPS_SERVICE: _custom(
        "pipelines.openshift.io", "v1alpha1", "gitopsservices", namespaced=False
    ),
}


def kind_spec(kind: ResourceKind) -> KindSpec:
    """Look up the dispatch entry for a kind.

    Raises:
        KeyError: If the kind has no registered spec.
    """
    return KIND_SPECS[kind]


def is_namespaced(kind: ResourceKind) -> bool:
    """Return True when objects of this kind live inside a namespace."""
    return kind_spec(kind).namespaced


__all__ = [
    "KIND_SPECS",
    "KindSpec",
    "ResourceKind",
    "is_namespaced",
    "kind_spec",
]
