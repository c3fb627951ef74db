"""Settings for a verification run.

Loads from ``GITOPS_VERIFY_*`` environment variables and an optional
``.env`` file. ``SKIP_OPERATOR_DEPLOYMENT=true`` is honoured without the
prefix because existing CI pipelines already export it.

Example:
    >>> settings = get_settings()
    >>> settings.convergence.timeout
    180.0
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gitops_verify.polling import PollingConfig


class VerifySettings(BaseSettings):
    """Configuration for the scenario catalogue and its pollers.

    Environment Variables:
        GITOPS_VERIFY_KUBECONFIG_PATH: kubeconfig file (default: in-cluster, then ~/.kube/config)
        GITOPS_VERIFY_ARGOCD_NAMESPACE: namespace of the default Argo CD instance
        GITOPS_VERIFY_UNIQUE_NAMESPACES: suffix scenario namespaces per run
        SKIP_OPERATOR_DEPLOYMENT: skip the operator readiness scenario
    """

    model_config = SettingsConfigDict(
        env_prefix="GITOPS_VERIFY_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    # Cluster access
    kubeconfig_path: str | None = Field(default=None, description="Path to kubeconfig file")
    kube_context: str | None = Field(default=None, description="Kubeconfig context to use")
    request_timeout: float = Field(
        default=4.0,
        gt=0.0,
        description="Per-request timeout in seconds, shorter than the poll intervals",
    )

    # Operator under test
    operator_name: str = Field(default="gitops-operator")
    operator_namespace: str = Field(default="openshift-operators")
    operator_replicas: int = Field(default=1, ge=1)
    skip_operator_deployment: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "GITOPS_VERIFY_SKIP_OPERATOR_DEPLOYMENT",
            "SKIP_OPERATOR_DEPLOYMENT",
            "skip_operator_deployment",
        ),
    )

    # Fixture names
    argocd_namespace: str = Field(default="openshift-gitops")
    argocd_instance_name: str = Field(default="openshift-gitops")
    backend_name: str = Field(default="cluster")
    console_link_name: str = Field(default="argocd")
    standalone_namespace: str = Field(default="gitops-standalone-test")
    standalone_instance_name: str = Field(default="standalone-argocd-instance")
    non_default_namespace: str = Field(default="argocd-non-default-source")
    non_default_instance_name: str = Field(default="argocd-non-default-namespace-instance")
    unique_namespaces: bool = Field(
        default=False,
        description="Suffix namespaces created by scenarios with a random id",
    )

    # Polling cadence (seconds)
    retry_interval: float = Field(default=5.0, gt=0.0)
    timeout: float = Field(default=120.0, ge=0.0)
    cleanup_interval: float = Field(default=1.0, gt=0.0)
    cleanup_timeout: float = Field(default=60.0, ge=0.0)
    resource_interval: float = Field(default=1.0, gt=0.0)
    resource_timeout: float = Field(default=180.0, ge=0.0)
    status_interval: float = Field(default=1.0, gt=0.0)
    status_timeout: float = Field(default=60.0, ge=0.0)
    observation_window: float = Field(
        default=5.0,
        ge=0.0,
        description="How long a manual edit must survive; a heuristic, not a guarantee",
    )

    # Manifests
    manifest_dir: Path = Field(default=Path("test/yamls"))
    apply_commands: tuple[str, ...] = Field(default=("oc", "kubectl"))
    apply_timeout: int = Field(default=60, ge=1)

    # Logging
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=False)

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @property
    def default_polling(self) -> PollingConfig:
        return PollingConfig(timeout=self.timeout, interval=self.retry_interval)

    @property
    def cleanup(self) -> PollingConfig:
        return PollingConfig(timeout=self.cleanup_timeout, interval=self.cleanup_interval)

    @property
    def convergence(self) -> PollingConfig:
        return PollingConfig(timeout=self.resource_timeout, interval=self.resource_interval)

    @property
    def status(self) -> PollingConfig:
        return PollingConfig(timeout=self.status_timeout, interval=self.status_interval)


@lru_cache(maxsize=1)
def get_settings() -> VerifySettings:
    """Get or create the process-wide settings instance."""
    return VerifySettings()


__all__ = ["VerifySettings", "get_settings"]
