"""Core domain logic for layer-audit.

This module provides the main library API for auditing image layers.
"""

from layer_audit.core.image import ContainerImage, FileLayer, MemoryLayer
from layer_audit.core.paths import normalize
from layer_audit.core.exclusions import ExclusionEngine
from layer_audit.core.changes import generate_changes, touched_path
from layer_audit.core.database import DatabaseExtractor, find_database
from layer_audit.core.baseline import build_baseline
from layer_audit.core.reporting import AuditReporter, LoggingReporter, NullReporter
from layer_audit.core.auditor import LayerAuditor

__all__ = [
    "ContainerImage",
    "FileLayer",
    "MemoryLayer",
    "normalize",
    "ExclusionEngine",
    "generate_changes",
    "touched_path",
    "DatabaseExtractor",
    "find_database",
    "build_baseline",
    "AuditReporter",
    "LoggingReporter",
    "NullReporter",
    "LayerAuditor",
]
