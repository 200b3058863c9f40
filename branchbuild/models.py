"""Data models for branchbuild.

These Pydantic models represent the core data structures shared by the
branch-based building engine and the correction pipeline.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class Coordinate(BaseModel):
    """A (group, artifact, version) triple identifying a published artifact.

    Attributes:
        group: Organization/namespace part, e.g. "org.example".
        artifact: Artifact name, e.g. "collections".
        version: Either a released MAJOR.MINOR.PATCH form or a version
                 carrying a branch marker ("-BRANCHED" or "-SNAPSHOT").
    """

    model_config = ConfigDict(frozen=True)

    group: str
    artifact: str
    version: str

    @classmethod
    def parse(cls, gav: str) -> Coordinate:
        """Parse a "group:artifact:version" string.

        Raises:
            ValueError: If the string does not have exactly three parts.
        """
        parts = gav.strip().split(":")
        if len(parts) != 3:
            raise ValueError(f"not a group:artifact:version coordinate: '{gav}'")
        return cls(group=parts[0], artifact=parts[1], version=parts[2])

    @property
    def package(self) -> str:
        """Dotted package name used for trigger bookkeeping."""
        return f"{self.group}.{self.artifact}"

    def __str__(self) -> str:
        return f"{self.group}:{self.artifact}:{self.version}"


class BranchContext(BaseModel):
    """Branch state of one build invocation.

    Derived once from VCS state and environment, never mutated afterwards.

    Attributes:
        branch: Current branch name, possibly carrying "@k=v;..." parameters.
        trunk: Name of the release branch.
        integration: Name of the integration branch.
        ci: Running on the organization's CI.
        testing: Running the plugin's own test harness (behaves like CI).
        parameters: Key/value pairs parsed from the branch name after '@'.
    """

    model_config = ConfigDict(frozen=True)

    branch: str
    trunk: str = "master"
    integration: str = "develop"
    ci: bool = False
    testing: bool = False
    parameters: dict[str, str] = Field(default_factory=dict)

    @property
    def is_trunk(self) -> bool:
        return self.branch == self.trunk

    @property
    def is_integration(self) -> bool:
        return self.branch == self.integration

    @property
    def ci_or_testing(self) -> bool:
        return self.ci or self.testing


class BuildContext(BaseModel):
    """Everything a component needs to know about the running build.

    Constructed once at the entry point and passed to every component.
    """

    model_config = ConfigDict(frozen=True)

    root: Path
    branch: BranchContext
    repo_name: str | None = None

    @property
    def workflows_dir(self) -> Path:
        return self.root / ".github" / "workflows"

    @property
    def build_dir(self) -> Path:
        return self.root / "build"


class Repository(BaseModel):
    """A named artifact repository."""

    name: str
    url: str


class Publication(BaseModel):
    """One artifact a module publishes."""

    name: str
    group: str = ""
    artifact: str
    version: str = ""

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(group=self.group, artifact=self.artifact, version=self.version)


class BuildModule(BaseModel):
    """A build module with its declared dependencies and publications.

    Attributes:
        name: Module name as declared in the manifest.
        dependencies: Declared dependency coordinates, possibly with the
                      branch-indicator version suffix.
        publications: Artifacts this module publishes.
        repositories: Publish repositories; left alone when non-empty.
    """

    name: str
    dependencies: list[Coordinate] = Field(default_factory=list)
    publications: list[Publication] = Field(default_factory=list)
    repositories: list[Repository] = Field(default_factory=list)


class SubstitutionOutcome(BaseModel):
    """Result of trying to substitute one branch-indicated dependency.

    Attributes:
        requested: The coordinate as declared.
        target: The substituted coordinate, or None when no candidate
                branch could be resolved (or no substitution applied).
        branch: The candidate branch that won.
        tried: Candidate branches probed, in order.
    """

    requested: Coordinate
    target: Coordinate | None = None
    branch: str | None = None
    tried: list[str] = Field(default_factory=list)

    @property
    def substituted(self) -> bool:
        return self.target is not None


class WriteOutcome(str, Enum):
    """What a guarded overwrite did to a file."""

    GENERATED = "generated"
    REGENERATED = "regenerated"
    UNTOUCHED = "untouched"


class CorrectionResult(BaseModel):
    """Files one correction pass changed, relative to the repository root."""

    corrector: str
    changed_files: set[Path] = Field(default_factory=set)
    outcomes: dict[Path, WriteOutcome] = Field(default_factory=dict)


class TriggerRecord(BaseModel):
    """Repo `producing_repo` consumes `consuming_package` and wants its
    `workflows` re-run whenever that package changes."""

    producing_repo: str
    consuming_package: str
    workflows: list[str] = Field(default_factory=list)


class VcsStatus(BaseModel):
    """Working-tree status, as repository-relative posix paths."""

    modified: set[str] = Field(default_factory=set)
    added: set[str] = Field(default_factory=set)
    untracked: set[str] = Field(default_factory=set)
    missing: set[str] = Field(default_factory=set)

    @property
    def changed(self) -> set[str]:
        """Paths a commit would pick up."""
        return self.modified | self.added | self.untracked | self.missing


class ProjectVersion(BaseModel):
    """Version and group applied to every build module."""

    version: str
    group: str
    previous_version: str | None = None


class ResolvedBuild(BaseModel):
    """Modules after substitution and retargeting.

    Attributes:
        modules: Modules with substituted dependencies and retargeted
                 publications.
        consumed: "group.artifact" of every substituted dependency.
        produced: "group.artifact" of every publication.
    """

    modules: list[BuildModule] = Field(default_factory=list)
    consumed: set[str] = Field(default_factory=set)
    produced: set[str] = Field(default_factory=set)
