"""CLI command for auditing image layers."""

from pathlib import Path
from typing import Optional

import typer

from layer_audit.cli.utils import (
    EXIT_PASSED,
    EXIT_TAMPERED,
    SOURCES,
    ConsoleReporter,
    console,
    fatal_error,
    load_image,
    resolve_output_dir,
    usage_error,
)
from layer_audit.models.audit import AuditOutcome
from layer_audit.models.policy import BaselinePolicy
from layer_audit.renderers.base import OutputFormat, RenderContext


def audit_cmd(
    ctx: typer.Context,
    image: str = typer.Argument(..., help="Image reference, or tarball path with --source archive"),
    source: Optional[str] = typer.Option(
        None,
        "--source",
        "-s",
        help="Where to load the image from (registry, archive, docker)",
    ),
    policy: Optional[str] = typer.Option(
        None,
        "--policy",
        "-p",
        help="Baseline policy (flags: skip config/doc/license files, all: every file)",
    ),
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output-dir",
        "-o",
        help="Directory for report artifacts",
    ),
    no_artifacts: bool = typer.Option(
        False,
        "--no-artifacts",
        help="Do not write report artifacts",
    ),
    format: str = typer.Option(
        "terminal",
        "--format",
        "-f",
        help="Output format (terminal, json)",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a configuration file",
    ),
) -> None:
    """
    Audit an image for modifications of package-installed files.

    Finds the oldest layer holding the RPM database, builds the set of
    files it installed, and reports every one of them that a later layer
    overwrote, deleted or replaced.

    Example:
        layer-audit audit quay.io/ns/app@sha256:... --output-dir report/
    """
    from layer_audit.core.auditor import LayerAuditor
    from layer_audit.registry.base import RegistryError
    from layer_audit.renderers import ArtifactWriter, get_renderer
    from layer_audit.utils.config import load_config
    from layer_audit.utils.errors import ConfigurationError, ValidationError, validate_image_reference

    try:
        config = load_config(config_file)
    except ConfigurationError as e:
        raise usage_error(e.message)

    source = source or config.registry.default_source
    if source not in SOURCES:
        raise usage_error(f"Invalid source: {source}")

    try:
        baseline_policy = BaselinePolicy(policy) if policy else config.audit.baseline_policy
    except ValueError:
        raise usage_error(f"Invalid policy: {policy}")

    try:
        output_format = OutputFormat(format)
    except ValueError:
        raise usage_error(f"Invalid format: {format}")

    if source == "archive":
        if not Path(image).is_file():
            raise usage_error(f"Archive not found: {image}")
    else:
        try:
            validate_image_reference(image)
        except ValidationError as e:
            raise usage_error(e.message)

    verbose = config.output.verbose or bool((ctx.obj or {}).get("verbose"))
    reporter = ConsoleReporter(verbose=verbose) if output_format == OutputFormat.TERMINAL else None
    auditor = LayerAuditor(
        policy=baseline_policy,
        exclusions=config.audit.exclusions,
        reporter=reporter,
        database_dir=config.audit.database_dir,
    )

    try:
        with load_image(image, source, config) as container:
            result = auditor.audit(container)
    except RegistryError as e:
        raise fatal_error(f"Failed to load image: {e}")

    if not result.success and result.outcome != AuditOutcome.TAMPERED:
        if output_format == OutputFormat.JSON:
            console.print_json(get_renderer(output_format).render(result, RenderContext(format=output_format)))
        raise fatal_error("Audit failed", [str(error) for error in result.errors])

    write_artifacts = config.output.write_artifacts and not no_artifacts
    if write_artifacts and result.outcome != AuditOutcome.TRIVIAL_PASS:
        writer = ArtifactWriter(resolve_output_dir(output_dir, config))
        try:
            written = writer.write(result.report)
        except OSError as e:
            raise fatal_error(f"Failed to write artifacts: {e}")
        if output_format == OutputFormat.TERMINAL:
            console.print(f"Artifacts written to {writer.directory} ({len(written)} files)")

    context = RenderContext(format=output_format, verbose=verbose, color=config.output.color)
    if output_format == OutputFormat.JSON:
        console.print_json(get_renderer(output_format).render(result, context))
    else:
        from layer_audit.renderers.terminal import TerminalRenderer

        TerminalRenderer(console).render(result, context)

    raise typer.Exit(EXIT_TAMPERED if result.outcome == AuditOutcome.TAMPERED else EXIT_PASSED)
