"""Renderer protocol and shared rendering options."""

from enum import Enum
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field


class OutputFormat(str, Enum):
    """How an audit result is presented."""

    JSON = "json"
    TERMINAL = "terminal"


class RenderContext(BaseModel):
    """Options shared by every renderer."""

    model_config = {"frozen": True}

    format: OutputFormat = Field(default=OutputFormat.TERMINAL, description="Output format")
    output_path: Path | None = Field(default=None, description="File to render into")
    verbose: bool = Field(default=False, description="Also list every scanned layer")
    color: bool = Field(default=True, description="Keep styles when rendering to a file")
    indent: int = Field(default=2, description="JSON indentation, 0 for a single line")


@runtime_checkable
class Renderer(Protocol):
    """Turns an ``AuditResult`` (or plain JSON-able data) into output.

    The JSON renderer returns the document as a string. The terminal
    renderer prints to its console and returns an empty string.
    """

    @property
    def format(self) -> OutputFormat:
        ...

    def render(self, data: Any, context: RenderContext) -> str:
        ...

    def render_to_file(self, data: Any, context: RenderContext) -> None:
        """Render into ``context.output_path``.

        Raises:
            ValueError: If context.output_path is not set
        """
        ...


class BaseRenderer:
    """Writes ``render()`` output to ``context.output_path``."""

    def render(self, data: Any, context: RenderContext) -> str:
        raise NotImplementedError

    def render_to_file(self, data: Any, context: RenderContext) -> None:
        path = self._require_path(context)
        path.write_text(self.render(data, context), encoding="utf-8")

    @staticmethod
    def _require_path(context: RenderContext) -> Path:
        if context.output_path is None:
            raise ValueError("output_path must be set in context for file rendering")
        return context.output_path
