"""Cluster API boundary.

The engine only needs four verbs from the backing store. ``ClusterClient``
states them as a protocol so the pollers can run against a live cluster or
an in-memory fake. Objects cross the boundary as plain dicts in the API's
own camelCase shape.

``KubernetesClusterClient`` implements the protocol on top of the official
``kubernetes`` client. Each kind is dispatched through ``KIND_SPECS`` either
to the typed Core/Apps/RBAC APIs or to the custom objects API.

Error mapping:
    HTTP 404           -> ResourceNotFoundError
    HTTP 409 on create -> ResourceAlreadyExistsError
    anything else      -> ClusterAPIError
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import structlog
from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from gitops_verify.errors import (
    ClusterAPIError,
    ClusterUnavailableError,
    ResourceAlreadyExistsError,
    ResourceNotFoundError,
)
from gitops_verify.kinds import KindSpec, ResourceKind, kind_spec

if TYPE_CHECKING:
    from gitops_verify.config import VerifySettings

logger = structlog.get_logger(__name__)


@runtime_checkable
class ClusterClient(Protocol):
    """Request/response interface to the backing store."""

    def get(self, kind: ResourceKind, name: str, namespace: str = "") -> dict[str, Any]:
        """Return the object or raise ResourceNotFoundError."""
        ...

    def create(self, kind: ResourceKind, body: dict[str, Any]) -> dict[str, Any]:
        """Create the object or raise ResourceAlreadyExistsError."""
        ...

    def update(self, kind: ResourceKind, body: dict[str, Any]) -> dict[str, Any]:
        """Replace the object with ``body``."""
        ...

    def delete(self, kind: ResourceKind, name: str, namespace: str = "") -> None:
        """Request deletion or raise ResourceNotFoundError."""
        ...


def object_meta(body: dict[str, Any]) -> tuple[str, str]:
    """Return (name, namespace) from an object body."""
    metadata = body.get("metadata") or {}
    return metadata.get("name", ""), metadata.get("namespace", "") or ""


def create_ignoring_existing(
    cluster: ClusterClient,
    kind: ResourceKind,
    body: dict[str, Any],
) -> bool:
    """Create an object, treating AlreadyExists as success.

    Returns:
        True if the object was created, False if it already existed.
    """
    name, namespace = object_meta(body)
    try:
        cluster.create(kind, body)
    except ResourceAlreadyExistsError:
        logger.info("cluster.already_exists", kind=kind.value, name=name, namespace=namespace)
        return False
    logger.info("cluster.created", kind=kind.value, name=name, namespace=namespace)
    return True


class KubernetesClusterClient:
    """ClusterClient backed by the official Kubernetes Python client.

    Attributes:
        request_timeout: Per-request timeout in seconds. Kept shorter than the
            poll interval so a hung call cannot stall a poller for long.

    Example:
        >>> cluster = KubernetesClusterClient.from_settings(get_settings())
        >>> cluster.get(ResourceKind.NAMESPACE, "openshift-gitops")
    """

    def __init__(
        self,
        api_client: Any,
        *,
        core: Any = None,
        apps: Any = None,
        rbac: Any = None,
        custom: Any = None,
        request_timeout: float = 4.0,
    ) -> None:
        self._api_client = api_client
        self._apis: dict[str, Any] = {
            "core": core or k8s_client.CoreV1Api(api_client),
            "apps": apps or k8s_client.AppsV1Api(api_client),
            "rbac": rbac or k8s_client.RbacAuthorizationV1Api(api_client),
            "custom": custom or k8s_client.CustomObjectsApi(api_client),
        }
        self.request_timeout = request_timeout

    @classmethod
    def from_settings(cls, settings: VerifySettings) -> KubernetesClusterClient:
        """Load cluster configuration and build a client.

        Attempts to load configuration in this order:
        1. Explicit kubeconfig path from settings
        2. In-cluster configuration
        3. Default kubeconfig (~/.kube/config)

        Raises:
            ClusterUnavailableError: If no configuration could be loaded.
        """
        try:
            if settings.kubeconfig_path:
                k8s_config.load_kube_config(
                    config_file=settings.kubeconfig_path,
                    context=settings.kube_context,
                )
                logger.info(
                    "cluster.kubeconfig_loaded",
                    kubeconfig_path=settings.kubeconfig_path,
                    context=settings.kube_context,
                )
            else:
                try:
                    k8s_config.load_incluster_config()
                    logger.info("cluster.incluster_config_loaded")
                except k8s_config.ConfigException:
                    k8s_config.load_kube_config(context=settings.kube_context)
                    logger.info("cluster.default_kubeconfig_loaded", context=settings.kube_context)
        except Exception as e:
            logger.exception("cluster.config_failed")
            raise ClusterUnavailableError(reason=str(e)) from e

        return cls(k8s_client.ApiClient(), request_timeout=settings.request_timeout)

    # =========================================================================
    # ClusterClient verbs
    # =========================================================================

    def get(self, kind: ResourceKind, name: str, namespace: str = "") -> dict[str, Any]:
        spec = kind_spec(kind)
        return self._call(kind, "read", spec, name=name, namespace=namespace)

    def create(self, kind: ResourceKind, body: dict[str, Any]) -> dict[str, Any]:
        spec = kind_spec(kind)
        name, namespace = object_meta(body)
        body = {"apiVersion": spec.api_version, "kind": kind.value, **body}
        return self._call(kind, "create", spec, name=name, namespace=namespace, body=body)

    def update(self, kind: ResourceKind, body: dict[str, Any]) -> dict[str, Any]:
        spec = kind_spec(kind)
        name, namespace = object_meta(body)
        return self._call(kind, "replace", spec, name=name, namespace=namespace, body=body)

    def delete(self, kind: ResourceKind, name: str, namespace: str = "") -> None:
        spec = kind_spec(kind)
        self._call(kind, "delete", spec, name=name, namespace=namespace)

    # =========================================================================
    # Dispatch
    # =========================================================================

    def _call(
        self,
        kind: ResourceKind,
        verb: str,
        spec: KindSpec,
        *,
        name: str,
        namespace: str,
        body: dict[str, Any] | None = None,
    ) -> Any:
        method, kwargs = self._resolve(verb, spec, name=name, namespace=namespace, body=body)
        try:
            result = method(_request_timeout=self.request_timeout, **kwargs)
        except ApiException as e:
            if e.status == 404:
                raise ResourceNotFoundError(kind.value, name, namespace=namespace) from e
            if e.status == 409 and verb == "create":
                raise ResourceAlreadyExistsError(kind.value, name, namespace=namespace) from e
            raise ClusterAPIError(e.reason or str(e), status=e.status) from e
        except (HTTPError, OSError, ValueError) as e:
            raise ClusterAPIError(str(e)) from e

        if verb == "delete":
            return None
        return self._api_client.sanitize_for_serialization(result)

    def _resolve(
        self,
        verb: str,
        spec: KindSpec,
        *,
        name: str,
        namespace: str,
        body: dict[str, Any] | None,
    ) -> tuple[Any, dict[str, Any]]:
        api = self._apis[spec.api]
        kwargs: dict[str, Any] = {}

        if spec.api == "custom":
            custom_verb = "get" if verb == "read" else verb
            kwargs.update(group=spec.group, version=spec.version, plural=spec.resource)
            if spec.namespaced:
                method = getattr(api, f"{custom_verb}_namespaced_custom_object")
                kwargs["namespace"] = namespace
            else:
                method = getattr(api, f"{custom_verb}_cluster_custom_object")
        elif spec.namespaced:
            method = getattr(api, f"{verb}_namespaced_{spec.resource}")
            kwargs["namespace"] = namespace
        else:
            method = getattr(api, f"{verb}_{spec.resource}")

        if verb != "create":
            kwargs["name"] = name
        if body is not None:
            kwargs["body"] = body
        return method, kwargs


__all__ = [
    "ClusterClient",
    "KubernetesClusterClient",
    "create_ignoring_existing",
    "object_meta",
]
