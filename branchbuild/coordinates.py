"""Branch-based coordinate rewriting.

A build on a development branch must not publish over released artifacts.
Its coordinates are moved into a separate namespace: the group gets a
"snapshots." prefix and the version becomes a synthetic per-branch
snapshot version such as "feature_x-1a2b3c4d-SNAPSHOT". CI builds of the
trunk branch keep their coordinates.
"""

from __future__ import annotations

import re

from .models import Coordinate

BRANCH_INDICATOR = "-BRANCHED"
SNAPSHOT_VERSION_POST = "-SNAPSHOT"
SNAPSHOTS_REPO_POST = "-snapshots"
SNAPSHOTS_GROUP_PRE = "snapshots."
MAX_BRANCHNAME_PART_LENGTH = 16

_NON_WORD_RE = re.compile(r"\W", re.ASCII)


def java_string_hash(s: str) -> int:
    """Java's String.hashCode(), as a signed 32-bit int.

    Synthetic versions must match the ones other builds of the same branch
    computed, so the hash is the one those builds use.
    """
    data = s.encode("utf-16-be")
    h = 0
    for i in range(0, len(data), 2):
        h = (31 * h + int.from_bytes(data[i : i + 2], "big")) & 0xFFFFFFFF
    return h - (1 << 32) if h >= 1 << 31 else h


def branch_version_id(branch: str) -> str:
    """Synthetic snapshot version of `branch`.

    Examples:
        "ab" → "ab-00000c21-SNAPSHOT"
        "feature/very-long-name@mps=2021" → "feature_very_lon-<hash>-SNAPSHOT"
    """
    sanitized = _NON_WORD_RE.sub("_", re.sub(r"@.*", "", branch, count=1, flags=re.S))
    part = sanitized[:MAX_BRANCHNAME_PART_LENGTH]
    return f"{part}-{java_string_hash(branch) & 0xFFFFFFFF:08x}{SNAPSHOT_VERSION_POST}"


def snapshot_repo_url(url: str) -> str:
    """Append the snapshot suffix to a repository URL, at most once."""
    stripped = url.rstrip("/")
    if not stripped or stripped.endswith(SNAPSHOTS_REPO_POST):
        return url
    return stripped + SNAPSHOTS_REPO_POST


def strip_branch_indicator(version: str) -> str:
    if version.endswith(BRANCH_INDICATOR):
        return version[: -len(BRANCH_INDICATOR)]
    return version


class CoordinateRewriter:
    """Rewrites coordinates for a branch.

    One instance serves a whole build. Synthetic versions are memoized per
    branch name so every module of the build agrees on them.

    Args:
        ci_or_testing: Running under CI (or the test harness).
        trunk: Name of the release branch.
    """

    def __init__(self, ci_or_testing: bool, trunk: str = "master"):
        self.ci_or_testing = ci_or_testing
        self.trunk = trunk
        self._ids: dict[str, str] = {}

    def _released(self, branch: str) -> bool:
        return self.ci_or_testing and branch == self.trunk

    def version_id(self, branch: str) -> str:
        if branch not in self._ids:
            self._ids[branch] = branch_version_id(branch)
        return self._ids[branch]

    def rewrite_group(self, group: str, branch: str) -> str:
        if self._released(branch) or not group or group.startswith(SNAPSHOTS_GROUP_PRE):
            return group
        return SNAPSHOTS_GROUP_PRE + group

    def rewrite_artifact(self, artifact: str, branch: str) -> str:
        return artifact

    def rewrite_version(self, version: str, branch: str) -> str:
        if self._released(branch) or not version or version.endswith(SNAPSHOT_VERSION_POST):
            return version
        return self.version_id(branch)

    def rewrite(self, coord: Coordinate, branch: str) -> Coordinate:
        """Rewrite all three parts of `coord` for `branch`."""
        return Coordinate(
            group=self.rewrite_group(coord.group, branch),
            artifact=self.rewrite_artifact(coord.artifact, branch),
            version=self.rewrite_version(coord.version, branch),
        )

    def substitute(self, coord: Coordinate, branch: str) -> Coordinate:
        """Replacement for a branch-indicated dependency on `branch`.

        The indicator is removed before the version is rewritten, so a
        trusted trunk candidate resolves to the plain released version.
        """
        return self.rewrite(
            coord.model_copy(update={"version": strip_branch_indicator(coord.version)}),
            branch,
        )
