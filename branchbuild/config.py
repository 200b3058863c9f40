"""Typed configuration.

Settings come from branchbuild.toml at the repository root; every
recognized option is a field below and unknown keys are rejected at load
time. Process-level inputs (CI flags, tokens, workflow name) are collected
in Environment, looked up in the properties file first and the process
environment second.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .coordinates import snapshot_repo_url
from .errors import ConfigError
from .properties import DotProperties
from .toml import get_table, load_config_doc

DEFAULT_HEADER_URL = (
    "https://raw.githubusercontent.com/ModelingValueGroup/generic-info/master/header"
)
DEFAULT_RELEASE_URL = "https://maven.pkg.github.com/ModelingValueGroup/packages"
DEFAULT_TRACKING_REPO_URL = "https://github.com/ModelingValueGroup/dependencies.git"

DEFAULT_EXCLUDES = [
    ".git/*",
    ".github/workflows/*",  # github refuses bot pushes of workflow files
    ".idea/*",
    ".gradle/*",
    "gradle/*",
    "gradlew*",
    "MPS/*",
    "*/build/*",
    "*_gen/*",
]


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid")


class CorrectorSettings(_Strict):
    """Options of the correction passes."""

    header_url: str = DEFAULT_HEADER_URL
    text_files: set[str] = Field(
        default_factory=lambda: {".gitignore", ".gitattributes", "LICENSE", "header"}
    )
    no_text_files: set[str] = Field(default_factory=lambda: {".DS_Store"})
    text_extensions: set[str] = Field(
        default_factory=lambda: {
            "MF", "java", "js", "md", "pom", "properties", "sh", "txt", "xml",
            "yaml", "yml", "adoc", "project", "prefs", "classpath", "jardesc",
            "mps", "mpl", "msd", "kt", "kts", "gradle",
        }
    )
    no_text_extensions: set[str] = Field(
        default_factory=lambda: {"class", "iml", "jar", "jpeg", "jpg", "png"}
    )
    header_extensions: dict[str, str] = Field(
        default_factory=lambda: {
            "java": "//",
            "js": "//",
            "kt": "//",
            "kts": "//",
            "gradle": "//",
            "properties": "##",
            "sh": "##",
            "yaml": "##",
            "yml": "##",
        }
    )
    header_excludes: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDES))
    eol_excludes: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDES))
    script_excludes: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDES))
    force_eol: bool = False
    force_header: bool = False
    force_dependabot: bool = False
    force_script: bool = False
    force_version: bool = False
    verify_writes: bool = False

    @field_validator("header_extensions")
    @classmethod
    def _prefix_not_empty(cls, v: dict[str, str]) -> dict[str, str]:
        empty = sorted(ext for ext, prefix in v.items() if not prefix.strip())
        if empty:
            raise ValueError(f"empty comment prefix for extension(s): {', '.join(empty)}")
        return v


class BranchSettings(_Strict):
    trunk: str = "master"
    integration: str = "develop"


class RepositorySettings(_Strict):
    """Where artifacts are published and probed."""

    release_url: str = DEFAULT_RELEASE_URL
    owner: str = "ModelingValueGroup"
    tracking_repo_url: str = DEFAULT_TRACKING_REPO_URL
    local_url: str | None = None
    probe_urls: list[str] = Field(default_factory=list)

    @property
    def snapshot_url(self) -> str:
        return snapshot_repo_url(self.release_url)

    @property
    def local_repo_url(self) -> str:
        return self.local_url or (Path.home() / ".m2" / "repository").as_uri()

    @property
    def effective_probe_urls(self) -> list[str]:
        """Repositories consulted when probing for a branch artifact."""
        return self.probe_urls or [self.local_repo_url, self.snapshot_url, self.release_url]


class PropertiesSettings(_Strict):
    file: str = "gradle.properties"


class Settings(_Strict):
    corrector: CorrectorSettings = Field(default_factory=CorrectorSettings)
    branches: BranchSettings = Field(default_factory=BranchSettings)
    repositories: RepositorySettings = Field(default_factory=RepositorySettings)
    properties: PropertiesSettings = Field(default_factory=PropertiesSettings)


def load_settings(root: Path) -> Settings:
    """Read and validate the settings tables of <root>/branchbuild.toml.

    Raises:
        ConfigError: If any table holds an unknown key or a bad value.
    """
    doc = load_config_doc(root)
    raw = {
        name: get_table(doc, name)
        for name in ("corrector", "branches", "repositories", "properties")
    }
    try:
        return Settings.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration in {root / 'branchbuild.toml'}:\n{exc}") from exc


def _flag(value: str | None) -> bool:
    return value is not None and value.strip().lower() == "true"


def env_or_prop(
    name: str,
    props: DotProperties | None,
    environ: Mapping[str, str] | None = None,
) -> str | None:
    """Look `name` up in the properties file, then in the environment."""
    environ = os.environ if environ is None else environ
    if props is not None and name in props:
        return props.get(name)
    return environ.get(name)


class Environment(BaseModel):
    """Process inputs of one invocation."""

    model_config = ConfigDict(frozen=True)

    ci: bool = False
    testing: bool = False
    allrep_token: str | None = None
    jetbrains_token: str | None = None
    github_workflow: str | None = None
    github_output: str | None = None
    github_ref_name: str | None = None

    @classmethod
    def collect(
        cls,
        props: DotProperties | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> Environment:
        def get(name: str) -> str | None:
            return env_or_prop(name, props, environ)

        return cls(
            ci=_flag(get("CI")),
            testing=_flag(get("TESTING")),
            allrep_token=get("ALLREP_TOKEN"),
            jetbrains_token=get("JETBRAINS_PUBLISH_TOKEN"),
            github_workflow=get("GITHUB_WORKFLOW"),
            github_output=get("GITHUB_OUTPUT"),
            github_ref_name=get("GITHUB_HEAD_REF") or get("GITHUB_REF_NAME"),
        )

    @property
    def dry_run(self) -> bool:
        return self.allrep_token == "DRY"
