"""Tests for branchbuild.scripts."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from branchbuild.models import WriteOutcome
from branchbuild.scripts import ScriptCorrector


def _completed(stdout: str = "", stderr: str = "", returncode: int = 0) -> MagicMock:
    proc = MagicMock()
    proc.stdout = stdout
    proc.stderr = stderr
    proc.returncode = returncode
    return proc


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    (tmp_path / "gen").mkdir()
    (tmp_path / "gen" / "list.txt.corrector.sh").write_text("echo a\n")
    (tmp_path / "other.sh").write_text("echo b\n")
    return tmp_path


class TestScriptCorrector:
    """Tests for ScriptCorrector."""

    def test_finds_scripts(self, tree: Path) -> None:
        scripts = ScriptCorrector(tree, []).scripts()

        assert scripts == [tree / "gen" / "list.txt.corrector.sh"]

    @patch("branchbuild.scripts.bash_available", return_value=True)
    @patch("branchbuild.scripts.run")
    def test_output_written_next_to_script(
        self, mock_run: MagicMock, mock_bash: MagicMock, tree: Path
    ) -> None:
        """stdout becomes the file named without the .corrector.sh suffix."""
        mock_run.return_value = _completed(stdout="one\r\ntwo\n")

        result = ScriptCorrector(tree, []).generate()

        assert (tree / "gen" / "list.txt").read_text() == "one\ntwo\n"
        assert result.outcomes == {Path("gen/list.txt"): WriteOutcome.GENERATED}
        mock_run.assert_called_once_with(
            "bash",
            str(tree / "gen" / "list.txt.corrector.sh"),
            cwd=tree,
            capture=True,
            timeout=300.0,
            check=False,
        )

    @patch("branchbuild.scripts.bash_available", return_value=True)
    @patch("branchbuild.scripts.run")
    def test_failing_script_ignored(
        self,
        mock_run: MagicMock,
        mock_bash: MagicMock,
        tree: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        mock_run.return_value = _completed(stdout="partial", returncode=2)

        result = ScriptCorrector(tree, []).generate()

        assert result.outcomes == {}
        assert not (tree / "gen" / "list.txt").exists()
        assert "resulted in an error (2)" in capsys.readouterr().err

    @patch("branchbuild.scripts.bash_available", return_value=True)
    @patch("branchbuild.scripts.run")
    def test_timeout_ignored(
        self, mock_run: MagicMock, mock_bash: MagicMock, tree: Path
    ) -> None:
        mock_run.side_effect = subprocess.TimeoutExpired("bash", 300)

        result = ScriptCorrector(tree, []).generate()

        assert result.outcomes == {}

    @patch("branchbuild.scripts.bash_available", return_value=True)
    @patch("branchbuild.scripts.run")
    def test_stderr_reported(
        self,
        mock_run: MagicMock,
        mock_bash: MagicMock,
        tree: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        mock_run.return_value = _completed(stdout="x\n", stderr="careful\n")

        ScriptCorrector(tree, []).generate()

        out = capsys.readouterr().out
        assert "produced messages on stderr" in out
        assert "careful" in out

    @patch("branchbuild.scripts.bash_available", return_value=True)
    @patch("branchbuild.scripts.run")
    def test_unchanged_output_untouched(
        self, mock_run: MagicMock, mock_bash: MagicMock, tree: Path
    ) -> None:
        (tree / "gen" / "list.txt").write_text("a\n")
        mock_run.return_value = _completed(stdout="a\n")

        result = ScriptCorrector(tree, []).generate()

        assert result.changed_files == set()

    @patch("branchbuild.scripts.bash_available", return_value=False)
    @patch("branchbuild.scripts.run")
    def test_no_bash(
        self,
        mock_run: MagicMock,
        mock_bash: MagicMock,
        tree: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        result = ScriptCorrector(tree, []).generate()

        assert result.outcomes == {}
        mock_run.assert_not_called()
        assert "bash is not available" in capsys.readouterr().err

    @patch("branchbuild.scripts.run")
    def test_excluded_script_not_run(self, mock_run: MagicMock, tree: Path) -> None:
        ScriptCorrector(tree, ["gen/*"]).generate()

        mock_run.assert_not_called()


@pytest.fixture
def two_scripts(tmp_path: Path) -> Path:
    (tmp_path / "a.txt.corrector.sh").write_text("printf '\\377\\376'\n")
    (tmp_path / "b.txt.corrector.sh").write_text("echo ok\n")
    return tmp_path


class TestScriptErrorsContinue:
    """A broken script is reported and the remaining scripts still run."""

    @patch("branchbuild.scripts.bash_available", return_value=True)
    @patch("branchbuild.scripts.run")
    def test_undecodable_output(
        self,
        mock_run: MagicMock,
        mock_bash: MagicMock,
        two_scripts: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        def fake_run(*args: str, **kwargs: object) -> MagicMock:
            if args[1].endswith("a.txt.corrector.sh"):
                raise UnicodeDecodeError("utf-8", b"\xff\xfe", 0, 1, "invalid start byte")
            return _completed(stdout="ok\n")

        mock_run.side_effect = fake_run

        result = ScriptCorrector(two_scripts, []).generate()

        assert result.outcomes == {Path("b.txt"): WriteOutcome.GENERATED}
        assert (two_scripts / "b.txt").read_text() == "ok\n"
        assert not (two_scripts / "a.txt").exists()
        assert "could not run a.txt.corrector.sh" in capsys.readouterr().err

    @patch("branchbuild.scripts.bash_available", return_value=True)
    @patch("branchbuild.scripts.run")
    def test_unwritable_output(
        self,
        mock_run: MagicMock,
        mock_bash: MagicMock,
        two_scripts: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """An output path that is a directory is skipped."""
        (two_scripts / "a.txt").mkdir()
        mock_run.return_value = _completed(stdout="ok\n")

        result = ScriptCorrector(two_scripts, []).generate()

        assert result.outcomes == {Path("b.txt"): WriteOutcome.GENERATED}
        assert (two_scripts / "a.txt").is_dir()
        assert "output of a.txt.corrector.sh could not be written" in capsys.readouterr().err
