"""Progress reporting for audit runs.

The auditor never formats output itself. It calls an ``AuditReporter`` at
each stage, so styling (or silence) is decided by whoever runs the audit.
"""

from __future__ import annotations

from typing import Protocol

from layer_audit.models.audit import AuditReport, Baseline
from layer_audit.models.policy import ExclusionRule
from layer_audit.utils.logging import get_logger


class AuditReporter(Protocol):
    """Interface for observing an audit run. Observational only."""

    def database_found(self, index: int, digest: str, package_count: int) -> None:
        ...

    def trivial_pass(self, digest: str) -> None:
        ...

    def baseline_built(self, baseline: Baseline) -> None:
        ...

    def checking_layer(self, index: int, digest: str) -> None:
        ...

    def path_excluded(self, path: str, rule: ExclusionRule) -> None:
        ...

    def disallowed_found(self, digest: str, paths: list[str]) -> None:
        ...

    def audit_complete(self, report: AuditReport) -> None:
        ...


class NullReporter:
    """A no-op reporter, for callers that only want the result."""

    def database_found(self, index: int, digest: str, package_count: int) -> None:
        return

    def trivial_pass(self, digest: str) -> None:
        return

    def baseline_built(self, baseline: Baseline) -> None:
        return

    def checking_layer(self, index: int, digest: str) -> None:
        return

    def path_excluded(self, path: str, rule: ExclusionRule) -> None:
        return

    def disallowed_found(self, digest: str, paths: list[str]) -> None:
        return

    def audit_complete(self, report: AuditReport) -> None:
        return


class LoggingReporter:
    """Reports progress through the ``layer_audit`` logger."""

    def __init__(self, name: str = "audit") -> None:
        self._logger = get_logger(name)

    def database_found(self, index: int, digest: str, package_count: int) -> None:
        self._logger.info("layer %d (%s) contained the rpmdb with %d packages", index, digest, package_count)

    def trivial_pass(self, digest: str) -> None:
        self._logger.info(
            "the layer that contained the rpmdb (%s) was the last layer, "
            "so files cannot have been modified afterwards",
            digest,
        )

    def baseline_built(self, baseline: Baseline) -> None:
        self._logger.info("tracking %d installed files", len(baseline))

    def checking_layer(self, index: int, digest: str) -> None:
        self._logger.info("checking layer %d (%s) for disallowed modifications", index, digest)

    def path_excluded(self, path: str, rule: ExclusionRule) -> None:
        self._logger.debug("%s was excluded by %s exclusions", path, rule.value)

    def disallowed_found(self, digest: str, paths: list[str]) -> None:
        self._logger.warning("found %d disallowed modifications in layer %s", len(paths), digest)

    def audit_complete(self, report: AuditReport) -> None:
        if report.passed:
            self._logger.info("no disallowed modifications found")
        else:
            self._logger.warning("%d disallowed modifications found", len(report.disallowed))
