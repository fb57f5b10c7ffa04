"""Audit orchestration: database search, baseline, layer scan."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from layer_audit.core.baseline import build_baseline
from layer_audit.core.changes import generate_changes
from layer_audit.core.database import DEFAULT_DATABASE_DIR, DatabaseExtractor, find_database
from layer_audit.core.exclusions import ExclusionEngine
from layer_audit.core.image import ContainerImage
from layer_audit.core.reporting import AuditReporter, LoggingReporter
from layer_audit.models.audit import (
    AuditOutcome,
    AuditReport,
    AuditResult,
    AuditState,
    Baseline,
    ChangeSet,
)
from layer_audit.models.policy import BaselinePolicy, ExclusionPolicy
from layer_audit.utils.errors import DatabaseNotFoundError, EmptyBaselineError, LayerAuditError
from layer_audit.utils.logging import get_logger

if TYPE_CHECKING:
    from layer_audit.registry.base import Layer

logger = get_logger(__name__)


class LayerAuditor:
    """Audits an image for modifications of package-installed files.

    The audit moves through ``SEARCHING`` -> ``BASELINE_BUILT`` ->
    ``SCANNING`` -> ``DONE``. It stops early in ``TRIVIAL_PASS`` when the
    database is in the last layer, in ``NO_DATABASE_FOUND`` when no layer
    holds one, and in ``FAILED`` on any other fatal error. No state is ever
    revisited.

    Example:
        auditor = LayerAuditor()
        result = auditor.audit(image)

        if result.outcome == AuditOutcome.TAMPERED:
            for path, digest in result.report.disallowed.items():
                print(f"{path} modified in {digest}")
    """

    def __init__(
        self,
        policy: BaselinePolicy = BaselinePolicy.FLAGS,
        exclusions: ExclusionPolicy | None = None,
        reporter: AuditReporter | None = None,
        database_dir: str = DEFAULT_DATABASE_DIR,
    ) -> None:
        """Initialize the auditor.

        Args:
            policy: Which installed files enter the baseline
            exclusions: Paths exempt from tamper reporting
            reporter: Receives progress notifications (logging by default)
            database_dir: Directory holding the package database inside layers
        """
        self._policy = policy
        self._engine = ExclusionEngine(exclusions)
        self._reporter = reporter or LoggingReporter()
        self._extractor = DatabaseExtractor(database_dir)
        self._state = AuditState.SEARCHING

    @property
    def state(self) -> AuditState:
        """State reached by the most recent audit."""
        return self._state

    def audit(
        self,
        image: ContainerImage | Sequence["Layer"],
        reference: str | None = None,
    ) -> AuditResult:
        """Audit an image, or a sequence of layers ordered oldest first.

        Args:
            image: The image (or its layers) to audit
            reference: Image reference recorded in the report

        Returns:
            AuditResult with the outcome and, unless the audit failed, the report
        """
        if isinstance(image, ContainerImage):
            layers = image.layers()
            reference = reference or image.reference
        else:
            layers = list(image)

        self._state = AuditState.SEARCHING
        try:
            return self._run(layers, reference)
        except DatabaseNotFoundError as e:
            self._state = AuditState.NO_DATABASE_FOUND
            logger.error(e.message)
            return AuditResult.fail(AuditOutcome.NO_DATABASE, self._state, [e.to_audit_error()])
        except LayerAuditError as e:
            logger.error("audit failed while %s: %s", self._state.value, e.message)
            self._state = AuditState.FAILED
            return AuditResult.fail(AuditOutcome.ERROR, self._state, [e.to_audit_error()])

    def _run(self, layers: list["Layer"], reference: str | None) -> AuditResult:
        index, packages = find_database(layers, self._extractor)
        database_layer = layers[index]
        self._reporter.database_found(index, database_layer.digest, len(packages))

        if index == len(layers) - 1:
            self._state = AuditState.TRIVIAL_PASS
            self._reporter.trivial_pass(database_layer.digest)
            return AuditResult.trivial(
                AuditReport(
                    reference=reference,
                    layer_count=len(layers),
                    database_layer_index=index,
                    database_layer_digest=database_layer.digest,
                )
            )

        baseline = build_baseline(packages, self._policy)
        if not len(baseline):
            raise EmptyBaselineError(database_layer.digest, len(packages))
        self._state = AuditState.BASELINE_BUILT
        self._reporter.baseline_built(baseline)

        self._state = AuditState.SCANNING
        change_sets: list[ChangeSet] = []
        disallowed: dict[str, str] = {}
        for position, layer in enumerate(layers[index + 1:], start=index + 1):
            self._reporter.checking_layer(position, layer.digest)
            change_set = generate_changes(layer)
            change_sets.append(change_set)

            found = self.disallowed_paths(change_set, baseline)
            # a later layer replaces the attribution of an earlier one
            for path in found:
                disallowed[path] = layer.digest
            if found:
                self._reporter.disallowed_found(layer.digest, found)

        report = AuditReport(
            reference=reference,
            layer_count=len(layers),
            database_layer_index=index,
            database_layer_digest=database_layer.digest,
            baseline=baseline,
            change_sets=change_sets,
            disallowed=disallowed,
        )
        self._state = AuditState.DONE
        self._reporter.audit_complete(report)
        return AuditResult.ok(report)

    def disallowed_paths(self, change_set: ChangeSet, baseline: Baseline) -> list[str]:
        """Paths of ``change_set`` that are tracked and not exempt, deduplicated."""
        found: list[str] = []
        seen: set[str] = set()
        for path in change_set.paths:
            if path in seen or path not in baseline:
                continue
            seen.add(path)
            rule = self._engine.match(path)
            if rule is not None:
                self._reporter.path_excluded(path, rule)
                continue
            found.append(path)
        return found
