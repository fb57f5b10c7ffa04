"""Data models for layer-audit.

All models are Pydantic BaseModel with frozen=True for immutability.
"""

from layer_audit.models.image import ImageDigest, ImageManifest, ImageReference, LayerInfo
from layer_audit.models.packages import EXEMPT_FLAGS, FileFlag, InstalledFile, PackageRecord
from layer_audit.models.policy import (
    DEFAULT_EXCLUDED_DIRECTORIES,
    DEFAULT_EXCLUDED_PATHS,
    BaselinePolicy,
    ExclusionPolicy,
    ExclusionRule,
)
from layer_audit.models.audit import (
    AuditOutcome,
    AuditReport,
    AuditResult,
    AuditState,
    Baseline,
    ChangeSet,
    DatabaseLookup,
    LookupStatus,
)
from layer_audit.models.common import AuditError

__all__ = [
    # Image
    "ImageDigest",
    "ImageManifest",
    "ImageReference",
    "LayerInfo",
    # Packages
    "EXEMPT_FLAGS",
    "FileFlag",
    "InstalledFile",
    "PackageRecord",
    # Policy
    "DEFAULT_EXCLUDED_DIRECTORIES",
    "DEFAULT_EXCLUDED_PATHS",
    "BaselinePolicy",
    "ExclusionPolicy",
    "ExclusionRule",
    # Audit
    "AuditOutcome",
    "AuditReport",
    "AuditResult",
    "AuditState",
    "Baseline",
    "ChangeSet",
    "DatabaseLookup",
    "LookupStatus",
    # Common
    "AuditError",
]
