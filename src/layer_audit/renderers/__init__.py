"""Presentation of audit results and the report artifacts."""

from layer_audit.renderers.base import BaseRenderer, OutputFormat, RenderContext, Renderer
from layer_audit.renderers.json import ArtifactWriter, JSONRenderer
from layer_audit.renderers.terminal import TerminalRenderer

__all__ = [
    "ArtifactWriter",
    "BaseRenderer",
    "OutputFormat",
    "RenderContext",
    "Renderer",
    "JSONRenderer",
    "TerminalRenderer",
    "get_renderer",
]

RENDERERS: dict[OutputFormat, type[BaseRenderer]] = {
    OutputFormat.JSON: JSONRenderer,
    OutputFormat.TERMINAL: TerminalRenderer,
}


def get_renderer(format: OutputFormat | str) -> BaseRenderer:
    """Get a renderer for an output format.

    Raises:
        ValueError: If the format name is unknown
    """
    try:
        return RENDERERS[OutputFormat(format)]()
    except ValueError:
        raise ValueError(f"Unsupported format: {format}") from None
