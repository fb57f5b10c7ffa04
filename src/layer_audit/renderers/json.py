"""JSON renderer and report artifacts."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from layer_audit.models.audit import AuditReport
from layer_audit.renderers.base import BaseRenderer, OutputFormat, RenderContext
from layer_audit.utils.logging import get_logger

logger = get_logger(__name__)

FILEMAP_ARTIFACT = "filemap.json"
DISALLOWED_ARTIFACT = "disallowedmods.json"


def changes_artifact(digest: str) -> str:
    """File name of the change-set artifact for a layer."""
    return f"modified-in-{digest}.json"


class JSONRenderer(BaseRenderer):
    """Serializes results and artifact payloads as JSON.

    Pydantic models are dumped in JSON mode, so enums become their values
    and datetimes ISO strings.
    """

    @property
    def format(self) -> OutputFormat:
        return OutputFormat.JSON

    def render(self, data: Any, context: RenderContext) -> str:
        if isinstance(data, BaseModel):
            data = data.model_dump(mode="json")
        return json.dumps(data, indent=context.indent or None, ensure_ascii=False)


class ArtifactWriter:
    """Writes the side artifacts of a completed audit.

    For a report it writes ``filemap.json`` (the baseline, path to owning
    package), one ``modified-in-<digest>.json`` per scanned layer (the raw
    change set) and ``disallowedmods.json`` (path to offending layer).

    Example:
        writer = ArtifactWriter(Path("out"))
        for path in writer.write(result.report):
            print(path)
    """

    def __init__(self, directory: Path | str = ".", indent: int = 2) -> None:
        self._directory = Path(directory)
        self._renderer = JSONRenderer()
        self._context = RenderContext(format=OutputFormat.JSON, indent=indent)

    @property
    def directory(self) -> Path:
        return self._directory

    def write(self, report: AuditReport) -> list[Path]:
        """Write all artifacts of ``report``.

        Args:
            report: A report produced by a scan that went past the baseline

        Returns:
            Paths of the files written, in write order
        """
        self._directory.mkdir(parents=True, exist_ok=True)

        written = [self._dump(FILEMAP_ARTIFACT, dict(sorted(report.baseline.files.items())))]
        for change_set in report.change_sets:
            written.append(self._dump(changes_artifact(change_set.digest), change_set.paths))
        written.append(self._dump(DISALLOWED_ARTIFACT, dict(sorted(report.disallowed.items()))))
        return written

    def _dump(self, name: str, data: Any) -> Path:
        path = self._directory / name
        path.write_text(self._renderer.render(data, self._context), encoding="utf-8")
        logger.debug("wrote %s", path)
        return path
