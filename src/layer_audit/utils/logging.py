"""Logging setup for layer-audit.

All loggers live below ``layer_audit`` and write to stderr, which keeps
stdout free for the JSON result document.
"""

import logging
import sys
from typing import IO, Any

PACKAGE_LOGGER = "layer_audit"

PLAIN_FORMAT = "%(levelname)s: %(message)s"
STRUCTURED_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class StructuredFormatter(logging.Formatter):
    """Appends the record's ``key=value`` context, such as the layer digest."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = getattr(record, "context", None)
        if not context:
            return message
        return message + " " + " ".join(f"{key}={value}" for key, value in context.items())


def configure_logging(
    level: str = "INFO",
    format_string: str | None = None,
    structured: bool = False,
    stream: IO[str] | None = None,
) -> None:
    """Configure the ``layer_audit`` logger.

    Replaces any handler installed by an earlier call.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_string: Custom format string
        structured: Timestamped records with their context fields appended
        stream: Destination stream (stderr when None)
    """
    if format_string is None:
        format_string = STRUCTURED_FORMAT if structured else PLAIN_FORMAT

    handler = logging.StreamHandler(stream or sys.stderr)
    formatter_class = StructuredFormatter if structured else logging.Formatter
    handler.setFormatter(formatter_class(format_string))

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level.upper())
    logger.handlers = [handler]
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Get a logger below ``layer_audit`` for a module name."""
    if not name.startswith(PACKAGE_LOGGER):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


class ContextAdapter(logging.LoggerAdapter):
    """Attaches fixed context fields to every record.

    Fields passed per call through ``extra={"context": {...}}`` are merged
    over the fixed ones.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra["context"] = {**self.extra, **extra.get("context", {})}
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger_with_context(name: str, **context: Any) -> ContextAdapter:
    """Get a module logger that tags its records with ``context``."""
    return ContextAdapter(get_logger(name), context)


def layer_logger(name: str, digest: str) -> ContextAdapter:
    """Module logger whose records carry the digest of the layer at hand."""
    return get_logger_with_context(name, layer=digest)
