"""Main CLI entry point for layer-audit."""

import sys

import typer
from rich.console import Console
from typer.core import TyperGroup

from layer_audit.cli import audit
from layer_audit.cli.utils import EXIT_USAGE


def _base_error(name: str) -> type[Exception]:
    # typer raises click's exceptions or its own copies of them, depending on the release
    return next(cls for cls in typer.BadParameter.__mro__ if cls.__name__ == name)


UsageError = _base_error("UsageError")
ClickException = _base_error("ClickException")


class AuditGroup(TyperGroup):
    """Command group that exits with a dedicated status on wrong invocation."""

    def main(self, *args, standalone_mode: bool = True, **kwargs):
        if not standalone_mode:
            return super().main(*args, standalone_mode=False, **kwargs)
        try:
            rv = super().main(*args, standalone_mode=False, **kwargs)
        except UsageError as e:
            e.show()
            sys.exit(EXIT_USAGE)
        except ClickException as e:
            e.show()
            sys.exit(e.exit_code)
        except typer.Abort:
            typer.echo("Aborted!", err=True)
            sys.exit(1)
        sys.exit(rv if isinstance(rv, int) else 0)


app = typer.Typer(
    name="layer-audit",
    cls=AuditGroup,
    help="Detect modifications of package-installed files in container image layers.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

# Register subcommands
app.command(name="audit")(audit.audit_cmd)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output"),
) -> None:
    """
    layer-audit: Detect modifications of package-installed files in image layers.

    - [bold]audit[/bold]: Check every layer after the RPM database layer
    - [bold]version[/bold]: Show the installed version
    """
    ctx.ensure_object(dict)["verbose"] = verbose

    from layer_audit.utils.logging import configure_logging

    if verbose:
        configure_logging(level="DEBUG")
    elif quiet:
        configure_logging(level="WARNING")
    else:
        configure_logging(level="INFO")


@app.command()
def version() -> None:
    """Show the layer-audit version."""
    from layer_audit import __version__

    console.print(f"layer-audit version {__version__}")


if __name__ == "__main__":
    app()
