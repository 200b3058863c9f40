"""TOML reading and writing utilities.

Uses tomlkit to read branchbuild.toml, the per-repository configuration
and build manifest. Values are unwrapped to plain Python types before they
reach the pydantic settings models.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit

CONFIG_FILE = "branchbuild.toml"


def load_config_doc(root: Path) -> tomlkit.TOMLDocument:
    """Load and parse <root>/branchbuild.toml.

    A missing file yields an empty document so every setting falls back to
    its default.
    """
    path = root / CONFIG_FILE
    if not path.is_file():
        return tomlkit.document()
    return tomlkit.parse(path.read_text())


def get_table(doc: tomlkit.TOMLDocument, name: str) -> dict[str, Any]:
    """Return a top-level table as plain Python values, or {} if absent."""
    table = doc.get(name)
    if table is None:
        return {}
    return table.unwrap() if hasattr(table, "unwrap") else dict(table)


def get_array_of_tables(doc: tomlkit.TOMLDocument, name: str) -> list[dict[str, Any]]:
    """Return an array of tables (e.g. [[module]]) as plain dicts."""
    tables = doc.get(name)
    if tables is None:
        return []
    return [t.unwrap() if hasattr(t, "unwrap") else dict(t) for t in tables]
