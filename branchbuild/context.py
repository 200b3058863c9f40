"""Build context construction.

The branch, CI flags and repository identity are read once at the entry
point and frozen into a BuildContext that every component receives.
"""

from __future__ import annotations

import re
from pathlib import Path

from .config import Environment, Settings
from .models import BranchContext, BuildContext
from .shell import git, warn

DEFAULT_BRANCH = "can-not-determine-branch"
GIT_HEAD_FILE_START = "ref: refs/heads/"


def detect_branch(root: Path, env: Environment | None = None) -> str:
    """Return the checked-out branch of the repository at `root`.

    Reads .git/HEAD directly; a detached HEAD or missing repository falls
    back to the branch name CI provides, and finally to a sentinel.
    """
    head_file = root / ".git" / "HEAD"
    if head_file.is_file():
        try:
            lines = head_file.read_text().splitlines()
        except OSError as exc:
            warn(f"could not read {head_file} to determine git branch: {exc}")
        else:
            if lines and lines[0].startswith(GIT_HEAD_FILE_START):
                return lines[0][len(GIT_HEAD_FILE_START):].strip()
    if env is not None and env.github_ref_name:
        return env.github_ref_name
    warn(f"could not determine git branch ({head_file} not usable), assuming '{DEFAULT_BRANCH}'")
    return DEFAULT_BRANCH


def parse_branch_parameters(branch: str) -> dict[str, str]:
    """Parse "name@k=v;k2=v2" into {"k": "v", "k2": "v2"}.

    A key without '=' maps to "". The first occurrence of a key wins.

    Examples:
        "feature" → {}
        "feature@mps=2021.1;java=17" → {"mps": "2021.1", "java": "17"}
        "feature@a=1;;flag;" → {"a": "1", "flag": ""}
    """
    if "@" not in branch:
        return {}
    params: dict[str, str] = {}
    for kv in branch.split("@", 1)[1].split(";"):
        key, _, value = kv.partition("=")
        if key:
            params.setdefault(key, value)
    return params


def detect_repo_name(root: Path, owner: str) -> str | None:
    """Name of the origin repository when it belongs to `owner`, else None."""
    url = git("config", "--get", "remote.origin.url", cwd=root, check=False)
    match = re.search(rf"[/:]{re.escape(owner)}/([^/]+?)(?:\.git)?/?$", url)
    if not match:
        return None
    return match.group(1)


def build_context(root: Path, settings: Settings, env: Environment) -> BuildContext:
    """Assemble the immutable context of one invocation."""
    root = root.resolve()
    branch = detect_branch(root, env)
    branch_ctx = BranchContext(
        branch=branch,
        trunk=settings.branches.trunk,
        integration=settings.branches.integration,
        ci=env.ci,
        testing=env.testing,
        parameters=parse_branch_parameters(branch),
    )
    return BuildContext(
        root=root,
        branch=branch_ctx,
        repo_name=detect_repo_name(root, settings.repositories.owner),
    )
