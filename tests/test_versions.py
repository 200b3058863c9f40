"""Tests for branchbuild.versions."""

from __future__ import annotations

from pathlib import Path

import pytest

from branchbuild.errors import VersionFormatError
from branchbuild.models import BuildModule
from branchbuild.properties import DotProperties
from branchbuild.versions import (
    bump_patch,
    correct_version,
    negotiate_version,
    parse_version,
    version_tags,
)


class TestParseVersion:
    def test_full_semver(self) -> None:
        v = parse_version("1.2.3")
        assert v.major == 1
        assert v.minor == 2
        assert v.patch == 3

    def test_leading_zeros_dropped(self) -> None:
        v = parse_version("1.02.003")
        assert (v.major, v.minor, v.patch) == (1, 2, 3)

    @pytest.mark.parametrize("bad", ["1.2", "1", "1.2.3-SNAPSHOT", "v1.2.3", "", "a.b.c"])
    def test_rejects_malformed(self, bad: str) -> None:
        with pytest.raises(VersionFormatError):
            parse_version(bad)


class TestBumpPatch:
    def test_bump_full_version(self) -> None:
        assert bump_patch("1.2.3") == "1.2.4"

    def test_bump_zero(self) -> None:
        assert bump_patch("0.0.0") == "0.0.1"

    def test_bump_high_patch(self) -> None:
        assert bump_patch("1.0.99") == "1.0.100"


class TestVersionTags:
    def test_keeps_release_tags_only(self) -> None:
        tags = ["v1.0.0", "V2.0.0", "v1.0", "release-1", "v1.0.0-rc1", "1.0.0"]
        assert version_tags(tags) == {"v1.0.0", "V2.0.0"}


class TestNegotiateVersion:
    """Tests for negotiate_version()."""

    def test_skips_taken_versions(self) -> None:
        """The first untagged patch version wins."""
        assert negotiate_version("0.0.1", {"v0.0.1", "v0.0.2", "v0.0.3"}) == "0.0.4"

    def test_untaken_base_is_kept(self) -> None:
        """A base that is not tagged is returned as is."""
        assert negotiate_version("1.0.0", {"v0.9.0", "v1.0.1"}) == "1.0.0"

    def test_gap_in_tags_is_used(self) -> None:
        """Only the run of taken versions starting at base is skipped."""
        assert negotiate_version("1.0.0", {"v1.0.0", "v1.0.2"}) == "1.0.1"

    def test_result_not_in_tags(self) -> None:
        tags = {f"v2.3.{i}" for i in range(0, 50)}
        result = negotiate_version("2.3.0", tags)
        assert result == "2.3.50"
        assert f"v{result}" not in tags

    def test_no_search_returns_base(self) -> None:
        """Local builds keep the version."""
        assert negotiate_version("0.0.1", {"v0.0.1"}, search=False) == "0.0.1"

    def test_malformed_base_fails_even_without_search(self) -> None:
        with pytest.raises(VersionFormatError):
            negotiate_version("1.0", set(), search=False)

    def test_non_release_tags_ignored(self) -> None:
        assert negotiate_version("1.0.0", {"1.0.0", "release-1.0.0"}) == "1.0.0"


class TestCorrectVersion:
    """Tests for correct_version()."""

    def test_writes_vacant_version(self, tmp_path: Path) -> None:
        """On CI the vacant version is written to the properties file."""
        path = tmp_path / "gradle.properties"
        path.write_text("# c\nversion=0.0.1\ngroup=org.example\n")

        project = correct_version(
            DotProperties(path),
            ["v0.0.1", "v0.0.2"],
            [BuildModule(name="core")],
            search=True,
            default_group="demo",
        )

        assert project.version == "0.0.3"
        assert project.previous_version == "0.0.1"
        assert project.group == "org.example"
        assert path.read_text() == "# c\nversion=0.0.3\ngroup=org.example\n"

    def test_local_build_leaves_file_alone(self, tmp_path: Path) -> None:
        path = tmp_path / "gradle.properties"
        path.write_text("version=0.0.1\n")

        project = correct_version(
            DotProperties(path), ["v0.0.1"], [], search=False, default_group="demo"
        )

        assert project.version == "0.0.1"
        assert project.group == "demo"
        assert path.read_text() == "version=0.0.1\n"

    def test_defaults_without_version_key(self, tmp_path: Path) -> None:
        """A missing version starts at 0.0.1 and is appended."""
        path = tmp_path / "gradle.properties"
        path.write_text("group=g\n")

        project = correct_version(
            DotProperties(path), ["v0.0.1"], [], search=True, default_group="demo"
        )

        assert project.version == "0.0.2"
        assert path.read_text() == "group=g\nversion=0.0.2\n"

    def test_missing_properties_file(self, tmp_path: Path) -> None:
        project = correct_version(
            DotProperties(tmp_path / "absent.properties"),
            ["v0.0.1"],
            [],
            search=True,
            default_group="demo",
        )

        assert project.version == "0.0.1"
        assert project.group == "demo"

    def test_malformed_version_is_fatal(self, tmp_path: Path) -> None:
        path = tmp_path / "gradle.properties"
        path.write_text("version=1.0-SNAPSHOT\n")

        with pytest.raises(VersionFormatError):
            correct_version(DotProperties(path), [], [], search=True, default_group="demo")

    def test_reports_each_module(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        path = tmp_path / "gradle.properties"
        path.write_text("version=1.0.0\ngroup=g\n")

        correct_version(
            DotProperties(path),
            ["v1.0.0"],
            [BuildModule(name="a"), BuildModule(name="b")],
            search=True,
            default_group="demo",
        )

        out = capsys.readouterr().out
        assert "project 'a': version: 1.0.0 => 1.0.1, group: g" in out
        assert "project 'b': version: 1.0.0 => 1.0.1, group: g" in out
