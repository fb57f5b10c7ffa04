"""Unit tests for baseline construction."""

from layer_audit.core.baseline import build_baseline
from layer_audit.models.packages import InstalledFile, PackageRecord
from layer_audit.models.policy import BaselinePolicy


class TestBuildBaseline:
    """Tests for build_baseline."""

    def test_flags_policy(self, sample_packages):
        """Test exempt files are left out under the flags policy."""
        baseline = build_baseline(sample_packages)
        assert sorted(baseline.files) == [
            "etc/os-release",
            "run",
            "usr/bin/bash",
            "usr/bin/cat",
            "usr/bin/ls",
            "usr/bin/sh",
            "var/log",
        ]
        assert baseline.skipped == 6
        assert baseline.package_count == 3

    def test_all_policy(self, sample_packages):
        """Test every file is tracked under the all policy."""
        baseline = build_baseline(sample_packages, BaselinePolicy.ALL)
        assert len(baseline) == 13
        assert baseline.skipped == 0
        assert "etc/passwd" in baseline

    def test_owner_is_nvr(self, sample_packages):
        """Test owners are name-version-release under both policies."""
        for policy in BaselinePolicy:
            baseline = build_baseline(sample_packages, policy)
            assert baseline.owner("usr/bin/ls") == "coreutils-8.32-34.el9"
            assert baseline.owner("usr/bin/missing") is None

    def test_flags_excludes_only_exempt_files(self, sample_packages):
        """Test every file dropped by the flags policy carries an exemption flag."""
        unfiltered = build_baseline(sample_packages, BaselinePolicy.ALL)
        filtered = build_baseline(sample_packages, BaselinePolicy.FLAGS)

        assert set(filtered.files) <= set(unfiltered.files)
        flagged = {
            f.path.lstrip("/"): f
            for package in sample_packages
            for f in package.files
        }
        for path in set(unfiltered.files) - set(filtered.files):
            assert flagged[path].exempt

    def test_paths_normalized(self):
        """Test paths are normalized before insertion."""
        package = PackageRecord(
            name="odd", version="1", release="1", files=[InstalledFile(path="//usr/./bin/../bin/odd")]
        )
        assert list(build_baseline([package]).files) == ["usr/bin/odd"]

    def test_last_package_wins(self):
        """Test the last package in enumeration order owns a shared path."""
        first = PackageRecord(name="a", version="1", release="1", files=[InstalledFile(path="/usr/bin/x")])
        second = PackageRecord(name="b", version="2", release="1", files=[InstalledFile(path="/usr/bin/x")])

        baseline = build_baseline([first, second])
        assert baseline.owner("usr/bin/x") == "b-2-1"
        assert baseline.overwritten == 1

        assert build_baseline([second, first]).owner("usr/bin/x") == "a-1-1"

    def test_empty(self):
        """Test no packages yield an empty baseline."""
        baseline = build_baseline([])
        assert len(baseline) == 0
        assert baseline.package_count == 0
