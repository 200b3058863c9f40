"""Tests for branchbuild.dependabot."""

from __future__ import annotations

from pathlib import Path

from branchbuild.dependabot import DependabotCorrector, dependabot_lines, significant_lines
from branchbuild.models import WriteOutcome

REL = Path(".github/dependabot.yml")


def test_dependabot_lines() -> None:
    lines = dependabot_lines("develop")

    assert lines[:2] == ["version: 2", "updates:"]
    assert '  - package-ecosystem: "gradle"' in lines
    assert '  - package-ecosystem: "github-actions"' in lines
    assert lines.count('    target-branch: "develop"') == 2


def test_significant_lines() -> None:
    assert significant_lines(["# c", "a  ", "", "  # d", "  b"]) == ["a", "  b"]


class TestDependabotCorrector:
    """Tests for DependabotCorrector."""

    def test_generates_missing_file(self, tmp_path: Path) -> None:
        result = DependabotCorrector(tmp_path).generate()

        assert result.outcomes == {REL: WriteOutcome.GENERATED}
        assert (tmp_path / REL).read_text().splitlines() == dependabot_lines("develop")

    def test_regenerates_wrong_content(self, tmp_path: Path) -> None:
        (tmp_path / ".github").mkdir()
        (tmp_path / REL).write_text("version: 2\nupdates: []\n")

        result = DependabotCorrector(tmp_path, "main").generate()

        assert result.outcomes == {REL: WriteOutcome.REGENERATED}
        assert 'target-branch: "main"' in (tmp_path / REL).read_text()

    def test_comments_do_not_count(self, tmp_path: Path) -> None:
        """A hand-annotated but equivalent file is not rewritten."""
        (tmp_path / ".github").mkdir()
        content = "# managed by the build\n\n" + "\n".join(dependabot_lines("develop")) + "\n"
        (tmp_path / REL).write_text(content)

        result = DependabotCorrector(tmp_path).generate()

        assert result.outcomes == {REL: WriteOutcome.UNTOUCHED}
        assert (tmp_path / REL).read_text() == content

    def test_notouch_marker(self, tmp_path: Path) -> None:
        (tmp_path / ".github").mkdir()
        (tmp_path / REL).write_text("#notouch\nversion: 2\n")

        result = DependabotCorrector(tmp_path).generate()

        assert result.outcomes == {}
        assert (tmp_path / REL).read_text() == "#notouch\nversion: 2\n"
