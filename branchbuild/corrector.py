"""Shared machinery of the correction passes.

Every pass computes the desired lines of a file and hands them to
overwrite(), which only touches the file when its content actually
differs. Running the passes twice in a row therefore changes nothing the
second time.
"""

from __future__ import annotations

import fnmatch
import os
import re
from collections.abc import Iterable, Iterator
from pathlib import Path

from .errors import WriteVerificationError
from .models import CorrectionResult, WriteOutcome
from .shell import note

# "\n\r" counts as one terminator, as "\r\n" does
_LINE_BREAK_RE = re.compile(r"\r\n|\n\r|\r|\n")


def split_lines(text: str) -> list[str]:
    """Split text into lines on any line terminator.

    A terminator at the very end does not start an extra empty line.

    Examples:
        "a\\nb\\n" → ["a", "b"]
        "a\\r\\nb" → ["a", "b"]
        "a\\n\\rb\\n\\r" → ["a", "b"]
    """
    if not text:
        return []
    lines = _LINE_BREAK_RE.split(text)
    if lines[-1] == "":
        lines.pop()
    return lines


def read_lines(path: Path) -> list[str]:
    """Read a UTF-8 file as a list of lines without terminators."""
    return split_lines(path.read_bytes().decode("utf-8"))


def get_extension(path: Path) -> str | None:
    """Text after the last '.' of the file name, or None.

    Examples:
        "Main.java" → "java"
        ".gitignore" → "gitignore"
        "Makefile" → None
    """
    name = path.name
    if "." not in name:
        return None
    return name.rsplit(".", 1)[1]


def overwrite(path: Path, lines: list[str], *, verify: bool = False) -> WriteOutcome:
    """Make `path` contain `lines`, writing only when something differs.

    A new file gets a terminator after every line. An existing file keeps
    its trailing-terminator state: the lines are joined with "\\n" and a
    final "\\n" is added only if the old content ended in one.

    Args:
        path: File to write.
        lines: Desired lines, without terminators.
        verify: Re-read the file after writing and compare.

    Raises:
        WriteVerificationError: If `verify` is set and the file reads back
            differently from what was written.
    """
    if not path.is_file():
        data = "".join(line + "\n" for line in lines).encode("utf-8")
        _write(path, data, verify)
        return WriteOutcome.GENERATED

    was = path.read_bytes().decode("utf-8")
    req = "\n".join(lines)
    if was.endswith(("\n", "\r")):
        req += "\n"
    if req == was:
        return WriteOutcome.UNTOUCHED
    _write(path, req.encode("utf-8"), verify)
    return WriteOutcome.REGENERATED


def _write(path: Path, data: bytes, verify: bool) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    if verify and path.read_bytes() != data:
        raise WriteVerificationError(f"file does not read back as written: {path}")


def is_excluded(rel: str, patterns: Iterable[str]) -> bool:
    """True if a root-relative posix path matches any exclusion glob.

    Each pattern is tried against both "a/b" and "./a/b", so "*/build/*"
    also excludes a top-level build directory.
    """
    dotted = f"./{rel}"
    return any(
        fnmatch.fnmatchcase(rel, pattern) or fnmatch.fnmatchcase(dotted, pattern)
        for pattern in patterns
    )


def walk_files(root: Path, excludes: Iterable[str]) -> Iterator[Path]:
    """Yield regular files under `root` not matched by `excludes`.

    Excluded directories are not descended into. Order is sorted per
    directory so runs are reproducible.
    """
    excludes = list(excludes)
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else rel_dir + "/"
        dirnames[:] = sorted(d for d in dirnames if not is_excluded(prefix + d + "/", excludes))
        for name in sorted(filenames):
            path = Path(dirpath) / name
            if path.is_file() and not is_excluded(prefix + name, excludes):
                yield path


class Corrector:
    """Base of a correction pass.

    Subclasses implement generate() and write through self.overwrite(),
    which records the outcome per root-relative path.
    """

    name = "corrector"

    def __init__(self, root: Path, *, verify: bool = False):
        self.root = root
        self.verify = verify
        self.outcomes: dict[Path, WriteOutcome] = {}

    def overwrite(self, path: Path, lines: list[str]) -> WriteOutcome:
        outcome = overwrite(path, lines, verify=self.verify)
        rel = path.relative_to(self.root)
        self.outcomes[rel] = outcome
        note(f"{self.name:<10} {outcome.value:<11}: {rel.as_posix()}")
        return outcome

    @property
    def changed_files(self) -> set[Path]:
        return {p for p, o in self.outcomes.items() if o is not WriteOutcome.UNTOUCHED}

    def result(self) -> CorrectionResult:
        return CorrectionResult(
            corrector=self.name,
            changed_files=self.changed_files,
            outcomes=dict(self.outcomes),
        )

    def generate(self) -> CorrectionResult:
        raise NotImplementedError


class TreeCorrector(Corrector):
    """A pass that visits every non-excluded file of the tree."""

    def __init__(self, root: Path, excludes: Iterable[str], *, verify: bool = False):
        super().__init__(root, verify=verify)
        self.excludes = list(excludes)

    def files(self) -> Iterator[Path]:
        return walk_files(self.root, self.excludes)
