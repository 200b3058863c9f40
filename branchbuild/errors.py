"""Exception types raised by branchbuild.

Library code raises these; the CLI turns any BranchBuildError into a
failed command with the message on stderr.
"""

from __future__ import annotations

from pathlib import Path


class BranchBuildError(Exception):
    """Base class for all fatal branchbuild errors."""


class VersionFormatError(BranchBuildError):
    """A version string does not have the MAJOR.MINOR.PATCH form."""


class PropertiesError(BranchBuildError):
    """A properties file could not be read or written."""


class ConcurrentModificationError(PropertiesError):
    """A properties file changed on disk between read and write."""


class ContextMismatchError(BranchBuildError):
    """A component was handed state for a different repository root."""


class TrunkCorrectionError(BranchBuildError):
    """Corrections are pending on the trunk branch.

    Corrections must be made on development branches; on trunk the build
    fails and shows one offending diff so the fix can be made by hand.
    """

    def __init__(self, branch: str, changes: set[str], path: str, diff: str):
        self.branch = branch
        self.changes = changes
        self.path = path
        self.diff = diff
        super().__init__(
            f"{len(changes)} file(s) need correction on branch '{branch}'; "
            f"corrections are not committed on {branch}. "
            f"Apply them on a development branch. First offending file: {path}\n"
            f"{diff}"
        )


class WorkflowLoopError(BranchBuildError):
    """Workflow jobs that can re-trigger themselves through bot commits."""

    def __init__(self, offenders: list[tuple[Path, str]], guard: str):
        self.offenders = offenders
        lines = "\n".join(f"  - {path}: job '{job}'" for path, job in offenders)
        super().__init__(
            "BUILD LOOP DANGER in one or more workflow files "
            f"(add 'if: \"{guard}\"' to each job):\n{lines}"
        )


class WriteVerificationError(BranchBuildError):
    """A file read back after writing differs from what was written."""


class VcsError(BranchBuildError):
    """A version-control operation failed."""


class UploadError(BranchBuildError):
    """The plugin marketplace rejected an upload."""


class ConfigError(BranchBuildError):
    """branchbuild.toml or the build manifest is invalid."""
