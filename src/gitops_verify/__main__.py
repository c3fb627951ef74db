"""Allow ``python -m gitops_verify``."""

from __future__ import annotations

from gitops_verify.cli import cli

if __name__ == "__main__":
    cli()
