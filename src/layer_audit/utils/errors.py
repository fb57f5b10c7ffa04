"""Error handling utilities for layer-audit."""

from __future__ import annotations

import re
from typing import Any

from layer_audit.models.common import AuditError
from layer_audit.models.image import ImageReference


class LayerAuditError(Exception):
    """Base exception for layer-audit."""

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR", details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_audit_error(self) -> AuditError:
        """Convert to AuditError model."""
        return AuditError(code=self.code, message=self.message, details=self.details)


class DatabaseNotFoundError(LayerAuditError):
    """No layer of the image holds a readable package database."""

    def __init__(self, layer_count: int):
        super().__init__(
            "unable to find valid RPMDB in any layer of the image",
            code="DATABASE_NOT_FOUND",
            details={"layers_searched": layer_count},
        )


class DatabaseCorruptError(LayerAuditError):
    """A package database file was found but could not be parsed."""

    def __init__(self, digest: str, reason: str):
        super().__init__(
            f"Package database in layer {digest} is unreadable: {reason}",
            code="DATABASE_CORRUPT",
            details={"layer": digest, "reason": reason},
        )


class LayerReadError(LayerAuditError):
    """A layer archive could not be read."""

    def __init__(self, digest: str, reason: str):
        super().__init__(
            f"Failed to read layer {digest}: {reason}",
            code="LAYER_READ_ERROR",
            details={"layer": digest, "reason": reason},
        )


class EmptyBaselineError(LayerAuditError):
    """The package database yielded no trackable files."""

    def __init__(self, digest: str, package_count: int):
        super().__init__(
            "filemap was empty",
            code="EMPTY_BASELINE",
            details={"layer": digest, "packages": package_count},
        )


class ValidationError(LayerAuditError):
    """Validation failed."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class ConfigurationError(LayerAuditError):
    """Configuration error."""

    def __init__(self, message: str, config_key: str | None = None):
        details = {"config_key": config_key} if config_key else {}
        super().__init__(message, code="CONFIG_ERROR", details=details)


_COMPONENT = re.compile(r"[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*")
_HOST = re.compile(r"[A-Za-z0-9.-]+(?::[0-9]+)?")
_TAG = re.compile(r"\w[\w.-]{0,127}")
_DIGEST = re.compile(r"[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}")

MAX_COMPONENTS = 10


def validate_image_reference(reference: str) -> None:
    """Check ``reference`` against the Docker reference grammar.

    Raises:
        ValidationError: Naming the first part of the reference that is malformed
    """
    if not reference:
        raise ValidationError("Image reference cannot be empty", field="reference")
    if reference.startswith("-"):
        raise ValidationError("Image reference cannot start with '-'", field="reference")

    ref = ImageReference.parse(reference)
    if ref.registry is not None and not _HOST.fullmatch(ref.registry):
        raise ValidationError(f"Invalid registry host: {ref.registry!r}", field="reference")

    components = ref.repository.split("/")
    if len(components) > MAX_COMPONENTS:
        raise ValidationError("Image reference has too many path components", field="reference")
    for component in components:
        if not _COMPONENT.fullmatch(component):
            raise ValidationError(f"Invalid repository name component: {component!r}", field="reference")

    if ref.tag is not None and not _TAG.fullmatch(ref.tag):
        raise ValidationError(f"Invalid tag: {ref.tag!r}", field="reference")
    if ref.digest is not None and not _DIGEST.fullmatch(ref.digest):
        raise ValidationError(f"Invalid digest: {ref.digest!r}", field="reference")
