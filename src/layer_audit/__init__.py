"""layer-audit: detect modifications of package-installed files in image layers.

An image built on an RPM-based distribution carries a package database in
one of its layers. Every file recorded there was put in place by the
package manager; any later layer that overwrites, deletes, or re-links one
of those files bypasses it. This package finds such modifications:

- **Database search**: Locate the oldest layer holding ``var/lib/rpm``
- **Baseline**: Map every tracked installed path to its owning package
- **Layer scan**: Collect the paths each later layer touches
- **Verdict**: Report tracked paths touched by later layers, minus exclusions

Usage:
    # Library API
    from layer_audit import ContainerImage, LayerAuditor

    with ContainerImage.from_archive("image.tar") as image:
        result = LayerAuditor().audit(image)

    if result.report and not result.report.passed:
        for path, digest in result.report.disallowed.items():
            print(f"{path} modified in {digest}")

CLI:
    layer-audit audit <image>
    layer-audit audit image.tar --source archive --policy all
"""

__version__ = "0.1.0"

# Core classes
from layer_audit.core.image import ContainerImage
from layer_audit.core.auditor import LayerAuditor
from layer_audit.core.reporting import AuditReporter, LoggingReporter, NullReporter

# Models (commonly used)
from layer_audit.models.audit import AuditOutcome, AuditReport, AuditResult, Baseline, ChangeSet
from layer_audit.models.packages import PackageRecord
from layer_audit.models.policy import BaselinePolicy, ExclusionPolicy

# Renderers
from layer_audit.renderers.base import Renderer, RenderContext, OutputFormat

__all__ = [
    # Version
    "__version__",
    # Core
    "ContainerImage",
    "LayerAuditor",
    "AuditReporter",
    "LoggingReporter",
    "NullReporter",
    # Models
    "AuditOutcome",
    "AuditReport",
    "AuditResult",
    "Baseline",
    "ChangeSet",
    "PackageRecord",
    "BaselinePolicy",
    "ExclusionPolicy",
    # Renderers
    "Renderer",
    "RenderContext",
    "OutputFormat",
]
