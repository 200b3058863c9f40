"""Tests for branchbuild.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from branchbuild.config import (
    DEFAULT_RELEASE_URL,
    Environment,
    RepositorySettings,
    env_or_prop,
    load_settings,
)
from branchbuild.errors import ConfigError
from branchbuild.properties import DotProperties


class TestLoadSettings:
    """Tests for load_settings()."""

    def test_defaults_without_file(self, tmp_path: Path) -> None:
        settings = load_settings(tmp_path)

        assert settings.branches.trunk == "master"
        assert settings.branches.integration == "develop"
        assert settings.repositories.release_url == DEFAULT_RELEASE_URL
        assert settings.properties.file == "gradle.properties"
        assert settings.corrector.header_extensions["java"] == "//"

    def test_overrides(self, tmp_path: Path) -> None:
        (tmp_path / "branchbuild.toml").write_text(
            '[branches]\ntrunk = "main"\n\n'
            "[corrector]\nforce_eol = true\n"
            'header_excludes = ["docs/*"]\n'
        )

        settings = load_settings(tmp_path)

        assert settings.branches.trunk == "main"
        assert settings.branches.integration == "develop"
        assert settings.corrector.force_eol
        assert settings.corrector.header_excludes == ["docs/*"]

    def test_unknown_key_rejected(self, tmp_path: Path) -> None:
        """A misspelled option fails the load instead of being ignored."""
        (tmp_path / "branchbuild.toml").write_text("[corrector]\nforce_eols = true\n")

        with pytest.raises(ConfigError, match="force_eols"):
            load_settings(tmp_path)

    def test_empty_comment_prefix_rejected(self, tmp_path: Path) -> None:
        (tmp_path / "branchbuild.toml").write_text(
            '[corrector.header_extensions]\njava = "//"\nsh = ""\n'
        )

        with pytest.raises(ConfigError, match="sh"):
            load_settings(tmp_path)


class TestRepositorySettings:
    def test_snapshot_url(self) -> None:
        repos = RepositorySettings(release_url="https://h/packages")
        assert repos.snapshot_url == "https://h/packages-snapshots"

    def test_default_local_repo(self) -> None:
        url = RepositorySettings().local_repo_url
        assert url.startswith("file://")
        assert url.endswith("/.m2/repository")

    def test_probe_order(self) -> None:
        repos = RepositorySettings(release_url="https://h/p", local_url="file:///m2")
        assert repos.effective_probe_urls == ["file:///m2", "https://h/p-snapshots", "https://h/p"]

    def test_explicit_probe_urls(self) -> None:
        repos = RepositorySettings(probe_urls=["https://only"])
        assert repos.effective_probe_urls == ["https://only"]


class TestEnvOrProp:
    """Tests for env_or_prop()."""

    def test_property_wins(self, tmp_path: Path) -> None:
        path = tmp_path / "p.properties"
        path.write_text("CI=false\n")

        assert env_or_prop("CI", DotProperties(path), {"CI": "true"}) == "false"

    def test_environment_fallback(self, tmp_path: Path) -> None:
        path = tmp_path / "p.properties"
        path.write_text("version=1.0.0\n")

        assert env_or_prop("CI", DotProperties(path), {"CI": "true"}) == "true"

    def test_absent(self) -> None:
        assert env_or_prop("CI", None, {}) is None


class TestEnvironment:
    """Tests for Environment.collect()."""

    def test_flags(self) -> None:
        env = Environment.collect(None, {"CI": "TRUE", "TESTING": "yes"})
        assert env.ci
        assert not env.testing

    def test_tokens_and_workflow(self) -> None:
        env = Environment.collect(
            None,
            {
                "ALLREP_TOKEN": "tok",
                "JETBRAINS_PUBLISH_TOKEN": "jb",
                "GITHUB_WORKFLOW": "build",
                "GITHUB_OUTPUT": "/tmp/out",
            },
        )
        assert env.allrep_token == "tok"
        assert env.jetbrains_token == "jb"
        assert env.github_workflow == "build"
        assert env.github_output == "/tmp/out"
        assert not env.dry_run

    def test_dry_run(self) -> None:
        assert Environment.collect(None, {"ALLREP_TOKEN": "DRY"}).dry_run

    def test_head_ref_preferred(self) -> None:
        """Pull request builds report the source branch."""
        env = Environment.collect(
            None, {"GITHUB_HEAD_REF": "feature", "GITHUB_REF_NAME": "12/merge"}
        )
        assert env.github_ref_name == "feature"

    def test_empty_head_ref_ignored(self) -> None:
        env = Environment.collect(None, {"GITHUB_HEAD_REF": "", "GITHUB_REF_NAME": "develop"})
        assert env.github_ref_name == "develop"
