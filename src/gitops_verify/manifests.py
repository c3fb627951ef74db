"""Manifest application as an injected collaborator.

Scenarios that trigger the reconciler by applying a manifest depend only on
``ManifestApplier``. The default implementation shells out to ``oc`` or
``kubectl``; tests substitute a recording fake.
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import Protocol

import structlog
import yaml

from gitops_verify.errors import ManifestApplyError

logger = structlog.get_logger(__name__)

DEFAULT_APPLY_TIMEOUT = 60


class ManifestApplier(Protocol):
    """Applies a manifest file to the cluster."""

    def apply(self, path: Path) -> None:
        """Apply ``path`` or raise ManifestApplyError."""
        ...


def manifest_kinds(path: Path) -> list[str]:
    """Parse a manifest file and return ``Kind/name`` of every document.

    Raises:
        ManifestApplyError: If the file is missing or not valid YAML.
    """
    try:
        with path.open() as f:
            documents = [doc for doc in yaml.safe_load_all(f) if doc]
    except OSError as e:
        raise ManifestApplyError(str(path), stderr=str(e)) from e
    except yaml.YAMLError as e:
        raise ManifestApplyError(str(path), stderr=f"invalid YAML: {e}") from e

    kinds: list[str] = []
    for doc in documents:
        if not isinstance(doc, dict) or "kind" not in doc:
            raise ManifestApplyError(str(path), stderr="document without 'kind'")
        name = (doc.get("metadata") or {}).get("name", "")
        kinds.append(f"{doc['kind']}/{name}")
    return kinds


class CommandManifestApplier:
    """Runs ``<command> apply -f <path>``.

    Attributes:
        commands: Candidate binaries, first one found on PATH wins.
        timeout: Command timeout in seconds.
    """

    def __init__(
        self,
        commands: tuple[str, ...] = ("oc", "kubectl"),
        *,
        timeout: int = DEFAULT_APPLY_TIMEOUT,
    ) -> None:
        self.commands = commands
        self.timeout = timeout

    def _binary(self, path: Path) -> str:
        for command in self.commands:
            resolved = shutil.which(command)
            if resolved:
                return resolved
        raise ManifestApplyError(
            str(path),
            stderr=f"none of {', '.join(self.commands)} found on PATH",
        )

    def apply(self, path: Path) -> None:
        kinds = manifest_kinds(path)
        binary = self._binary(path)
        logger.info("manifest.applying", path=str(path), resources=kinds, command=binary)
        try:
            result = subprocess.run(
                [binary, "apply", "-f", str(path)],
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise ManifestApplyError(str(path), stderr=f"timed out after {self.timeout}s") from e

        if result.returncode != 0:
            raise ManifestApplyError(str(path), returncode=result.returncode, stderr=result.stderr)
        logger.info("manifest.applied", path=str(path))


__all__ = [
    "CommandManifestApplier",
    "ManifestApplier",
    "manifest_kinds",
]
