"""Exclusion policy engine."""

from __future__ import annotations

from layer_audit.core.paths import ROOT, is_within, normalize
from layer_audit.models.policy import ExclusionPolicy, ExclusionRule


class ExclusionEngine:
    """Decides whether a normalized path is exempt from tamper reporting.

    Two independent rules apply: a path equal to or nested under an excluded
    directory, or a path matching an excluded entry literally. The rules are
    static and do not depend on which package owns the path.

    Example:
        engine = ExclusionEngine()
        engine.is_excluded("etc/passwd")      # True, directory rule
        engine.is_excluded("usr/bin/bash")    # False
    """

    def __init__(self, policy: ExclusionPolicy | None = None) -> None:
        self._policy = policy or ExclusionPolicy()
        # rule entries may be written rooted or with trailing separators
        directories = (normalize(d) for d in self._policy.directories)
        self._directories = tuple(d for d in directories if d != ROOT)
        self._paths = frozenset(self._policy.paths) | {normalize(p) for p in self._policy.paths}

    @property
    def policy(self) -> ExclusionPolicy:
        return self._policy

    def directory_excluded(self, path: str) -> bool:
        """Exclude a directory and any file contained in that directory."""
        return any(is_within(path, directory) for directory in self._directories)

    def path_excluded(self, path: str) -> bool:
        """Check if ``path`` matches an entry as written or in normalized form."""
        return path in self._paths

    def match(self, path: str) -> ExclusionRule | None:
        """Return the rule exempting ``path``, or None if it is reportable."""
        if self.directory_excluded(path):
            return ExclusionRule.DIRECTORY
        if self.path_excluded(path):
            return ExclusionRule.PATH
        return None

    def is_excluded(self, path: str) -> bool:
        return self.match(path) is not None
