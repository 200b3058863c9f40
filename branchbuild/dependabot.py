"""Dependabot configuration correction."""

from __future__ import annotations

from pathlib import Path

from .corrector import Corrector, read_lines
from .models import CorrectionResult, WriteOutcome
from .shell import note

NOTOUCH_MARKER = "#notouch"
ECOSYSTEMS = ("gradle", "github-actions")


def dependabot_lines(target_branch: str) -> list[str]:
    lines = ["version: 2", "updates:"]
    for ecosystem in ECOSYSTEMS:
        lines += [
            f'  - package-ecosystem: "{ecosystem}"',
            '    directory: "/"',
            f'    target-branch: "{target_branch}"',
            "    schedule:",
            '      interval: "daily"',
        ]
    return lines


def significant_lines(lines: list[str]) -> list[str]:
    """Lines that are neither blank nor comments, right-stripped."""
    return [
        line.rstrip() for line in lines if line.strip() and not line.lstrip().startswith("#")
    ]


class DependabotCorrector(Corrector):
    """Keeps .github/dependabot.yml at the generated content.

    A file containing "#notouch" is left alone. Comments and blank lines
    are ignored when comparing, so annotating the file by hand does not
    cause a rewrite.
    """

    name = "dependabot"

    def __init__(self, root: Path, target_branch: str = "develop", *, verify: bool = False):
        super().__init__(root, verify=verify)
        self.target_branch = target_branch

    @property
    def path(self) -> Path:
        return self.root / ".github" / "dependabot.yml"

    def generate(self) -> CorrectionResult:
        wanted = dependabot_lines(self.target_branch)
        if self.path.is_file():
            existing = read_lines(self.path)
            if any(NOTOUCH_MARKER in line for line in existing):
                note(f"{self.name:<10} {'skipped':<11}: {NOTOUCH_MARKER} found")
                return self.result()
            if significant_lines(existing) == significant_lines(wanted):
                self.outcomes[self.path.relative_to(self.root)] = WriteOutcome.UNTOUCHED
                return self.result()
        self.overwrite(self.path, wanted)
        return self.result()
