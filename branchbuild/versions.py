"""Version parsing, vacancy search and the version-correction step.

Release tags have the form v<MAJOR.MINOR.PATCH>. On CI the project
version is moved forward past every tagged version so each build
publishes under an unused number; local builds keep the version as is.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

import semver

from .errors import VersionFormatError
from .models import BuildModule, ProjectVersion
from .properties import DotProperties
from .shell import note

DEFAULT_VERSION = "0.0.1"
PROP_NAME_VERSION = "version"
PROP_NAME_GROUP = "group"

_VERSION_RE = re.compile(r"\d+\.\d+\.\d+")
_VERSION_TAG_RE = re.compile(r"^[vV]\d+\.\d+\.\d+$")


def parse_version(version_str: str) -> semver.Version:
    """Parse a MAJOR.MINOR.PATCH string into a semver.Version.

    Leading zeros are accepted and dropped ("1.02.3" → 1.2.3).

    Raises:
        VersionFormatError: If the string is not three dot-separated numbers.
    """
    if not _VERSION_RE.fullmatch(version_str):
        raise VersionFormatError(
            f"the current version '{version_str}' does not match the version "
            f"pattern '{_VERSION_RE.pattern}'"
        )
    major, minor, patch = (int(p) for p in version_str.split("."))
    return semver.Version(major=major, minor=minor, patch=patch)


def bump_patch(version_str: str) -> str:
    """Increment the patch version and return as a string.

    Examples:
        "1.2.3" → "1.2.4"
        "0.0.9" → "0.0.10"
    """
    return str(parse_version(version_str).bump_patch())


def version_tags(tags: Iterable[str]) -> set[str]:
    """Keep only release tags (v1.2.3 or V1.2.3)."""
    return {t for t in tags if _VERSION_TAG_RE.match(t)}


def negotiate_version(base: str, tags: Iterable[str], *, search: bool = True) -> str:
    """Return the lowest patch version at or above `base` that is not tagged.

    The format of `base` is checked even when `search` is off, so a bad
    version fails every build, not only CI builds.

    Args:
        base: MAJOR.MINOR.PATCH version to start from.
        tags: Existing tags; only v-prefixed release tags are considered.
        search: When False (local builds) `base` is returned unchanged.

    Raises:
        VersionFormatError: If `base` is malformed.

    Examples:
        negotiate_version("0.0.1", {"v0.0.1", "v0.0.2", "v0.0.3"}) → "0.0.4"
        negotiate_version("1.0.0", {"v0.9.0"}) → "1.0.0"
    """
    parse_version(base)
    if not search:
        return base
    taken = version_tags(tags)
    candidate = base
    while f"v{candidate}" in taken:
        candidate = bump_patch(candidate)
    return candidate


def correct_version(
    props: DotProperties,
    tags: Iterable[str],
    modules: list[BuildModule],
    *,
    search: bool,
    default_group: str,
) -> ProjectVersion:
    """Negotiate the project version and store it in the properties file.

    Reads `version` (default 0.0.1) and `group` (default `default_group`)
    from `props`. When `search` is set the vacant version is written back
    through the properties file's checksum guard.

    Raises:
        VersionFormatError: If the stored version is malformed.
        PropertiesError: If the properties file cannot be rewritten.
    """
    if not props.valid:
        note(f"can not determine version: no properties file found at {props.path}")
        return ProjectVersion(version=DEFAULT_VERSION, group=default_group)

    old_version = props.get(PROP_NAME_VERSION, DEFAULT_VERSION)
    group = props.get(PROP_NAME_GROUP, default_group)
    new_version = negotiate_version(old_version, tags, search=search)

    if not search:
        note(f"version not adjusted: not on CI (version stays {old_version})")
    elif new_version != old_version:
        note(
            f"overwriting property {PROP_NAME_VERSION} with new version {new_version} "
            f"(was {old_version}) in property file {props.path}"
        )
        props.set(PROP_NAME_VERSION, new_version)
    else:
        note(f"found vacant version: {new_version}")

    for module in modules:
        note(
            f"project '{module.name}': version: {old_version} => {new_version}, "
            f"group: {group}"
        )
    return ProjectVersion(version=new_version, group=group, previous_version=old_version)
