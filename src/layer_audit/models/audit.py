"""Audit data models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from layer_audit.models.common import AuditError
from layer_audit.models.packages import PackageRecord


class LookupStatus(str, Enum):
    """Outcome of looking for a package database in one layer."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    CORRUPT = "corrupt"
    READ_ERROR = "read_error"


class DatabaseLookup(BaseModel):
    """Tagged result of a database extraction attempt.

    Only ``NOT_FOUND`` lets the search continue with the next layer;
    ``CORRUPT`` and ``READ_ERROR`` are fatal to the audit.
    """

    model_config = {"frozen": True}

    status: LookupStatus
    digest: str
    packages: list[PackageRecord] = Field(default_factory=list)
    database_path: str | None = Field(default=None, description="Database file inside the layer")
    reason: str | None = Field(default=None, description="Why the lookup did not succeed")

    @classmethod
    def found(cls, digest: str, packages: list[PackageRecord], database_path: str) -> DatabaseLookup:
        return cls(status=LookupStatus.FOUND, digest=digest, packages=packages, database_path=database_path)

    @classmethod
    def not_found(cls, digest: str) -> DatabaseLookup:
        return cls(status=LookupStatus.NOT_FOUND, digest=digest)

    @classmethod
    def corrupt(cls, digest: str, database_path: str, reason: str) -> DatabaseLookup:
        return cls(status=LookupStatus.CORRUPT, digest=digest, database_path=database_path, reason=reason)

    @classmethod
    def read_error(cls, digest: str, reason: str) -> DatabaseLookup:
        return cls(status=LookupStatus.READ_ERROR, digest=digest, reason=reason)


class Baseline(BaseModel):
    """Normalized installed path -> owning ``name-version-release``."""

    model_config = {"frozen": True}

    files: dict[str, str] = Field(default_factory=dict)
    package_count: int = Field(default=0, description="Packages the baseline was built from")
    skipped: int = Field(default=0, description="Files left out because of their flags")
    overwritten: int = Field(default=0, description="Paths claimed by more than one package")

    def __contains__(self, path: object) -> bool:
        return path in self.files

    def __len__(self) -> int:
        return len(self.files)

    def owner(self, path: str) -> str | None:
        """Package that installed ``path``, if it is tracked."""
        return self.files.get(path)


class ChangeSet(BaseModel):
    """Paths touched by one layer, in archive order."""

    model_config = {"frozen": True}

    digest: str = Field(description="Digest of the layer")
    paths: list[str] = Field(default_factory=list)


class AuditState(str, Enum):
    """States of the audit run."""

    SEARCHING = "searching"
    BASELINE_BUILT = "baseline_built"
    SCANNING = "scanning"
    DONE = "done"
    NO_DATABASE_FOUND = "no_database_found"
    TRIVIAL_PASS = "trivial_pass"
    FAILED = "failed"


class AuditOutcome(str, Enum):
    """Distinguishable end results of an audit."""

    PASSED = "passed"
    TAMPERED = "tampered"
    TRIVIAL_PASS = "trivial_pass"
    NO_DATABASE = "no_database"
    ERROR = "error"

    @property
    def success(self) -> bool:
        return self in (AuditOutcome.PASSED, AuditOutcome.TRIVIAL_PASS)


class AuditReport(BaseModel):
    """Write-once output of a single audit run."""

    model_config = {"frozen": True}

    reference: str | None = Field(default=None, description="Image reference audited")
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    layer_count: int = Field(default=0)
    database_layer_index: int = Field(description="Index of the layer holding the database")
    database_layer_digest: str = Field(description="Digest of the layer holding the database")
    baseline: Baseline = Field(default_factory=Baseline)
    change_sets: list[ChangeSet] = Field(default_factory=list, description="One per scanned layer")
    disallowed: dict[str, str] = Field(
        default_factory=dict,
        description="Disallowed path -> digest of the most recent layer touching it",
    )

    @property
    def passed(self) -> bool:
        return not self.disallowed

    def disallowed_by_layer(self) -> dict[str, list[str]]:
        """Group disallowed paths by the layer they are attributed to."""
        grouped: dict[str, list[str]] = {}
        for path, digest in sorted(self.disallowed.items()):
            grouped.setdefault(digest, []).append(path)
        return grouped


class AuditResult(BaseModel):
    """Result of an audit operation."""

    model_config = {"frozen": True}

    outcome: AuditOutcome
    state: AuditState
    report: AuditReport | None = Field(default=None, description="The report if the audit completed")
    errors: list[AuditError] = Field(default_factory=list, description="Fatal errors")

    @property
    def success(self) -> bool:
        return self.outcome.success

    @classmethod
    def ok(cls, report: AuditReport) -> AuditResult:
        """Create a completed result from a scanned report."""
        outcome = AuditOutcome.PASSED if report.passed else AuditOutcome.TAMPERED
        return cls(outcome=outcome, state=AuditState.DONE, report=report)

    @classmethod
    def trivial(cls, report: AuditReport) -> AuditResult:
        """Create a result for a database found in the last layer."""
        return cls(outcome=AuditOutcome.TRIVIAL_PASS, state=AuditState.TRIVIAL_PASS, report=report)

    @classmethod
    def fail(cls, outcome: AuditOutcome, state: AuditState, errors: list[AuditError]) -> AuditResult:
        """Create a failed result."""
        return cls(outcome=outcome, state=state, errors=errors)
