"""Baseline file map construction."""

from __future__ import annotations

from collections.abc import Iterable

from layer_audit.core.paths import normalize
from layer_audit.models.audit import Baseline
from layer_audit.models.packages import PackageRecord
from layer_audit.models.policy import BaselinePolicy
from layer_audit.utils.logging import get_logger

logger = get_logger(__name__)


def build_baseline(
    packages: Iterable[PackageRecord],
    policy: BaselinePolicy = BaselinePolicy.FLAGS,
) -> Baseline:
    """Map every tracked installed path to the package that installed it.

    With ``BaselinePolicy.ALL`` every installed file is tracked. With
    ``BaselinePolicy.FLAGS`` files flagged as configuration, documentation,
    license, readme or missing-ok are left out, since they are expected to
    change after installation.

    When several packages claim the same path the last package in
    enumeration order owns it.

    Args:
        packages: Packages in database order
        policy: Inclusion policy

    Returns:
        The baseline (possibly empty; callers decide whether that is fatal)
    """
    files: dict[str, str] = {}
    package_count = 0
    skipped = 0
    overwritten = 0

    for package in packages:
        package_count += 1
        owner = package.nvr
        for installed in package.installed_files():
            if policy == BaselinePolicy.FLAGS and installed.exempt:
                skipped += 1
                continue
            path = normalize(installed.path)
            previous = files.get(path)
            if previous is not None and previous != owner:
                overwritten += 1
                logger.debug("%s claimed by %s, previously %s", path, owner, previous)
            files[path] = owner

    logger.info(
        "baseline holds %d files from %d packages (%d skipped by flags)",
        len(files),
        package_count,
        skipped,
    )
    return Baseline(
        files=files,
        package_count=package_count,
        skipped=skipped,
        overwritten=overwritten,
    )
