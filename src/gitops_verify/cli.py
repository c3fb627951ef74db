"""Command-line entry point for gitops-verify.

Commands:
    gitops-verify run: run the ordered scenario catalogue (or a subset)
    gitops-verify list: show scenario names and their dependencies

Example:
    $ gitops-verify run
    $ gitops-verify run -s namespace-scoped-install -s argocd-teardown
    $ SKIP_OPERATOR_DEPLOYMENT=true gitops-verify run --json-logs
"""

from __future__ import annotations

import sys
from enum import IntEnum
from importlib.metadata import version as get_version
from typing import TYPE_CHECKING

import click

from gitops_verify.accessor import ResourceAccessor
from gitops_verify.clean_slate import CleanSlateCoordinator
from gitops_verify.cluster import KubernetesClusterClient
from gitops_verify.config import VerifySettings, get_settings
from gitops_verify.errors import ClusterUnavailableError
from gitops_verify.manifests import CommandManifestApplier
from gitops_verify.scenarios.gitops import default_catalogue
from gitops_verify.scenarios.runner import RunReport, ScenarioContext, ScenarioRunner
from gitops_verify.status import ClusterApplicationStatus
from gitops_verify.telemetry.logging import configure_logging

if TYPE_CHECKING:
    from typing import NoReturn


class ExitCode(IntEnum):
    """Process exit codes, stable for CI pipelines."""

    SUCCESS = 0
    """All scenarios passed."""

    SCENARIO_FAILURE = 1
    """At least one scenario failed, timed out or was blocked."""

    USAGE_ERROR = 2
    """Invalid usage (unknown scenario name, bad option)."""

    CLEANUP_FAILURE = 3
    """Clean-slate reset failed; the run was aborted."""

    CLUSTER_UNAVAILABLE = 8
    """No usable cluster configuration."""


def _get_version() -> str:
    try:
        return get_version("gitops-verify")
    except Exception:
        return "unknown"


def error_exit(message: str, exit_code: ExitCode = ExitCode.SCENARIO_FAILURE) -> NoReturn:
    """Print ``Error: <message>`` to stderr and exit with ``exit_code``."""
    click.echo(f"Error: {message}", err=True)
    sys.exit(exit_code)


def build_context(settings: VerifySettings) -> ScenarioContext:
    """Wire the live-cluster collaborators for a run.

    Raises:
        ClusterUnavailableError: If the cluster client cannot be configured.
    """
    cluster = KubernetesClusterClient.from_settings(settings)
    accessor = ResourceAccessor(cluster)
    return ScenarioContext(
        settings=settings,
        cluster=cluster,
        accessor=accessor,
        status_provider=ClusterApplicationStatus(cluster),
        applier=CommandManifestApplier(settings.apply_commands, timeout=settings.apply_timeout),
        clean_slate=CleanSlateCoordinator(accessor, interval=settings.cleanup_interval),
    )


def exit_code_for(report: RunReport) -> ExitCode:
    if report.aborted:
        return ExitCode.CLEANUP_FAILURE
    if not report.passed:
        return ExitCode.SCENARIO_FAILURE
    return ExitCode.SUCCESS


def print_report(report: RunReport) -> None:
    """Print one line per scenario plus a summary."""
    for result in report.results:
        label = "PASS" if result.passed else "FAIL"
        line = f"{label}  {result.name}  [{result.state.value}, {result.elapsed:.1f}s]"
        click.echo(line)
        if result.detail:
            click.echo(f"      {result.detail}")

    failed = len(report.failures())
    click.echo(f"\n{len(report.results) - failed} passed, {failed} failed")
    if report.aborted:
        click.echo("Run aborted: clean-slate reset failed", err=True)


@click.group(
    name="gitops-verify",
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(
    version=_get_version(),
    prog_name="gitops-verify",
    message="%(prog)s %(version)s",
)
def cli() -> None:
    """Verify that the GitOps operator drives the cluster into its expected state."""


@cli.command("run")
@click.option(
    "--scenario",
    "-s",
    "scenarios",
    multiple=True,
    help="Run only this scenario (repeatable). Declared order is kept.",
)
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR).")
@click.option(
    "--json-logs/--console-logs",
    default=None,
    help="Emit JSON log lines instead of console output.",
)
@click.option(
    "--skip-operator-deployment",
    is_flag=True,
    default=False,
    help="Do not wait for the operator deployment.",
)
def run_command(
    scenarios: tuple[str, ...],
    log_level: str | None,
    json_logs: bool | None,
    skip_operator_deployment: bool,
) -> None:
    """Run the scenario catalogue and exit non-zero on any failure."""
    settings = get_settings()
    updates: dict[str, object] = {}
    if log_level is not None:
        updates["log_level"] = log_level.upper()
    if json_logs is not None:
        updates["json_logs"] = json_logs
    if skip_operator_deployment:
        updates["skip_operator_deployment"] = True
    if updates:
        settings = settings.model_copy(update=updates)

    try:
        configure_logging(settings.log_level, json_output=settings.json_logs)
    except ValueError as e:
        error_exit(str(e), ExitCode.USAGE_ERROR)

    catalogue = default_catalogue(settings)
    known = {scenario.name for scenario in catalogue}
    unknown = sorted(set(scenarios) - known)
    if unknown:
        error_exit(f"unknown scenario(s): {', '.join(unknown)}", ExitCode.USAGE_ERROR)

    try:
        ctx = build_context(settings)
    except ClusterUnavailableError as e:
        error_exit(str(e), ExitCode.CLUSTER_UNAVAILABLE)

    report = ScenarioRunner(catalogue, ctx).run(scenarios or None)
    print_report(report)
    sys.exit(exit_code_for(report))


@cli.command("list")
def list_command() -> None:
    """List scenarios in execution order."""
    for scenario in default_catalogue(get_settings()):
        suffix = f"  (after {', '.join(scenario.depends_on)})" if scenario.depends_on else ""
        click.echo(f"{scenario.name}{suffix}")


__all__ = [
    "ExitCode",
    "build_context",
    "cli",
    "error_exit",
    "exit_code_for",
    "print_report",
]
