"""Build modules declared in branchbuild.toml.

    [[module]]
    name = "core"
    dependencies = ["org.example:collections:2.1.0-BRANCHED"]

    [[module.publication]]
    name = "maven"
    artifact = "core"
"""

from __future__ import annotations

from typing import Any

import tomlkit
from pydantic import ValidationError

from .errors import ConfigError
from .models import BuildModule, Coordinate, ProjectVersion, Publication, Repository
from .toml import get_array_of_tables


def _module(raw: dict[str, Any], project: ProjectVersion | None) -> BuildModule:
    name = raw.get("name")
    if not name:
        raise ConfigError("a [[module]] entry has no name")
    try:
        deps = [Coordinate.parse(d) for d in raw.get("dependencies", [])]
    except ValueError as exc:
        raise ConfigError(f"module '{name}': {exc}") from exc

    publications = []
    for pub in raw.get("publication", []):
        pub = dict(pub)
        if project is not None:
            pub.setdefault("group", project.group)
            pub.setdefault("version", project.version)
        publications.append(pub)

    unknown = set(raw) - {"name", "dependencies", "publication", "repository"}
    if unknown:
        raise ConfigError(f"module '{name}': unknown key(s) {', '.join(sorted(unknown))}")

    try:
        return BuildModule(
            name=name,
            dependencies=deps,
            publications=[Publication.model_validate(p) for p in publications],
            repositories=[Repository.model_validate(r) for r in raw.get("repository", [])],
        )
    except ValidationError as exc:
        raise ConfigError(f"module '{name}': {exc}") from exc


def load_modules(
    doc: tomlkit.TOMLDocument, project: ProjectVersion | None = None
) -> list[BuildModule]:
    """Read every [[module]] of the document.

    Publications without group or version inherit them from `project`.

    Raises:
        ConfigError: On a malformed module or dependency.
    """
    return [_module(raw, project) for raw in get_array_of_tables(doc, "module")]
