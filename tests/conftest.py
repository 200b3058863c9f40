"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path
from unittest.mock import patch

import pytest
import tomlkit

from branchbuild.models import BranchContext, BuildContext, VcsStatus
from branchbuild.pipeline import Workspace

ORIGIN_URL = "https://github.com/ModelingValueGroup/demo.git"


class FakeVcs:
    """In-memory VcsGateway recording what would be committed."""

    def __init__(self, root: Path):
        self._root = root
        self.changed: set[str] = set()
        self.tag_list: list[str] = []
        self.commits: list[tuple[list[str], str, bool]] = []
        self.tags_set: list[str] = []

    @property
    def root(self) -> Path:
        return self._root

    def status(self) -> VcsStatus:
        return VcsStatus(modified=set(self.changed))

    def tags(self) -> list[str]:
        return list(self.tag_list)

    def diff(self, path: str) -> str:
        return f"--- a/{path}\n+++ b/{path}\n"

    def stage_commit_push(
        self, paths: Iterable[str], message: str, *, dry_run: bool = False
    ) -> bool:
        self.commits.append((sorted(paths), message, dry_run))
        return True

    def tag(self, name: str, *, dry_run: bool = False) -> None:
        self.tags_set.append(name)


@pytest.fixture
def branch_ctx() -> BranchContext:
    """A CI build of a feature branch."""
    return BranchContext(branch="feature", ci=True)


@pytest.fixture
def repo_root(tmp_path: Path) -> Path:
    """A repository checked out on branch 'feature' with a properties file."""
    root = tmp_path / "demo"
    (root / ".git").mkdir(parents=True)
    (root / ".git" / "HEAD").write_text("ref: refs/heads/feature\n")
    (root / "gradle.properties").write_text("# project\nversion=0.0.1\ngroup=org.example\n")
    return root


@pytest.fixture
def build_ctx(repo_root: Path, branch_ctx: BranchContext) -> BuildContext:
    return BuildContext(root=repo_root.resolve(), branch=branch_ctx, repo_name="demo")


@pytest.fixture
def fake_vcs(repo_root: Path) -> FakeVcs:
    return FakeVcs(repo_root.resolve())


@pytest.fixture
def make_workspace(repo_root: Path) -> Callable[..., Workspace]:
    """Build a Workspace on `branch` with the given environment."""

    def make(branch: str = "feature", **environ: str) -> Workspace:
        (repo_root / ".git" / "HEAD").write_text(f"ref: refs/heads/{branch}\n")
        with patch("branchbuild.context.git", return_value=ORIGIN_URL):
            return Workspace(repo_root, environ=environ)

    return make


@pytest.fixture
def manifest_doc() -> tomlkit.TOMLDocument:
    """A manifest with one consuming and one publishing module."""
    content = """\
[[module]]
name = "app"
dependencies = ["org.example:collections:2.1.0-BRANCHED", "junit:junit:4.13"]

[[module.publication]]
name = "maven"
artifact = "app"

[[module]]
name = "lib"

[[module.publication]]
name = "maven"
group = "org.other"
artifact = "lib"
version = "3.0.0"

[[module.repository]]
name = "custom"
url = "https://repo.example.org/maven"
"""
    return tomlkit.parse(content)
