"""Utility functions for layer-audit."""

from layer_audit.utils.hashing import compute_hash, content_digest, hash_file, hash_stream
from layer_audit.utils.logging import configure_logging, get_logger, get_logger_with_context, layer_logger
from layer_audit.utils.errors import (
    LayerAuditError,
    DatabaseNotFoundError,
    DatabaseCorruptError,
    LayerReadError,
    EmptyBaselineError,
    ValidationError,
    ConfigurationError,
    validate_image_reference,
)
from layer_audit.utils.config import (
    LayerAuditConfig,
    AuditConfig,
    RegistryConfig,
    OutputConfig,
    load_config,
    save_config,
    get_config,
    get_default_config,
    set_config,
)

__all__ = [
    # Hashing
    "compute_hash",
    "content_digest",
    "hash_file",
    "hash_stream",
    # Logging
    "configure_logging",
    "get_logger",
    "get_logger_with_context",
    "layer_logger",
    # Errors
    "LayerAuditError",
    "DatabaseNotFoundError",
    "DatabaseCorruptError",
    "LayerReadError",
    "EmptyBaselineError",
    "ValidationError",
    "ConfigurationError",
    "validate_image_reference",
    # Config
    "LayerAuditConfig",
    "AuditConfig",
    "RegistryConfig",
    "OutputConfig",
    "load_config",
    "save_config",
    "get_config",
    "get_default_config",
    "set_config",
]
