"""Shared utilities for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.markup import escape

from layer_audit.models.audit import AuditReport, Baseline
from layer_audit.models.policy import ExclusionRule

if TYPE_CHECKING:
    from layer_audit.core.image import ContainerImage
    from layer_audit.utils.config import LayerAuditConfig

EXIT_PASSED = 0
EXIT_TAMPERED = 1
EXIT_FATAL = 2
EXIT_USAGE = 10

SOURCES = ("registry", "archive", "docker")

# Results go to stdout, errors to stderr
console = Console()
err_console = Console(stderr=True)


def load_image(image: str, source: str, config: "LayerAuditConfig") -> "ContainerImage":
    """Load an image from the selected source.

    Args:
        image: Image reference, or archive path for the archive source
        source: One of registry, archive or docker
        config: Active configuration

    Returns:
        Loaded ContainerImage, which the caller must close
    """
    from layer_audit.core.image import ContainerImage
    from layer_audit.registry.oci import OCIRegistry

    with err_console.status("Loading image..."):
        if source == "archive":
            return ContainerImage.from_archive(image)
        if source == "docker":
            return ContainerImage.from_local(image)
        registry = OCIRegistry(
            timeout=config.registry.timeout,
            max_retries=config.registry.max_retries,
            docker_config_path=config.registry.docker_config_path,
        )
        return registry.pull(image)


def usage_error(message: str) -> typer.Exit:
    """Print a wrong-invocation message and build the matching exit."""
    err_console.print(f"[red]Error:[/red] {escape(message)}")
    return typer.Exit(EXIT_USAGE)


def fatal_error(message: str, details: list[str] | None = None) -> typer.Exit:
    """Print a pipeline failure and build the matching exit."""
    err_console.print(f"[red]Error:[/red] {escape(message)}")
    for detail in details or []:
        err_console.print(f"  {escape(detail)}")
    return typer.Exit(EXIT_FATAL)


class ConsoleReporter:
    """Reports audit progress on a rich console.

    Disallowed modifications are shown in red, directory exclusions in
    yellow and exact-path exclusions in blue. Exclusions are only shown
    when verbose.
    """

    def __init__(self, out: Console | None = None, verbose: bool = False) -> None:
        self._console = out or console
        self._verbose = verbose

    def database_found(self, index: int, digest: str, package_count: int) -> None:
        self._console.print(
            f"Layer {index} ([dim]{digest}[/dim]) contained the rpmdb with {package_count} packages"
        )

    def trivial_pass(self, digest: str) -> None:
        self._console.print(
            f"[green]The layer that contained the rpmdb ({digest}) was the last layer, "
            "so files cannot have been modified afterwards[/green]"
        )

    def baseline_built(self, baseline: Baseline) -> None:
        self._console.print(f"Tracking {len(baseline)} installed files")

    def checking_layer(self, index: int, digest: str) -> None:
        self._console.print(f"Checking layer {index} ([dim]{digest}[/dim]) for disallowed modifications")

    def path_excluded(self, path: str, rule: ExclusionRule) -> None:
        if not self._verbose:
            return
        style = "yellow" if rule == ExclusionRule.DIRECTORY else "blue"
        self._console.print(f"  [{style}]{path} was excluded by {rule.value} exclusions[/{style}]")

    def disallowed_found(self, digest: str, paths: list[str]) -> None:
        for path in paths:
            self._console.print(f"  [red]{path} was modified in layer {digest}[/red]")

    def audit_complete(self, report: AuditReport) -> None:
        if report.passed:
            self._console.print("[green]No disallowed modifications found[/green]")
        else:
            self._console.print(f"[red]{len(report.disallowed)} disallowed modifications found[/red]")


def resolve_output_dir(option: Path | None, config: "LayerAuditConfig") -> Path:
    """Output directory from the command line, else from the configuration."""
    return option if option is not None else Path(config.output.directory)
