"""Generated-file correction through corrector scripts.

A file named "<name>.corrector.sh" is run with bash and its standard
output becomes the content of "<name>" next to it.
"""

from __future__ import annotations

import shutil
import subprocess
import sys
from pathlib import Path

from .corrector import TreeCorrector, split_lines
from .models import CorrectionResult
from .shell import note, run, warn

CORRECTOR_EXT = ".corrector.sh"


def bash_available() -> bool:
    return sys.platform != "win32" and shutil.which("bash") is not None


class ScriptCorrector(TreeCorrector):
    """Runs every corrector script of the tree and stores its output.

    Args:
        root: Repository root.
        excludes: Exclusion globs.
        timeout: Seconds a single script may run.
    """

    name = "bash"

    def __init__(
        self,
        root: Path,
        excludes: list[str],
        *,
        timeout: float | None = 300.0,
        verify: bool = False,
    ):
        super().__init__(root, excludes, verify=verify)
        self.timeout = timeout

    def scripts(self) -> list[Path]:
        return [p for p in self.files() if p.name.endswith(CORRECTOR_EXT)]

    def generate(self) -> CorrectionResult:
        scripts = self.scripts()
        if scripts and not bash_available():
            warn(f"bash is not available on this platform; {len(scripts)} corrector script(s) skipped")
            return self.result()
        for script in scripts:
            self._run_script(script)
        return self.result()

    def _run_script(self, script: Path) -> None:
        rel = script.relative_to(self.root).as_posix()
        note(f"running {rel}")
        try:
            proc = run(
                "bash",
                str(script),
                cwd=self.root,
                capture=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired, UnicodeDecodeError) as exc:
            warn(f"could not run {rel}: {exc} (ignored)")
            return
        if proc.returncode != 0:
            warn(f"run of script {rel} resulted in an error ({proc.returncode})")
            return
        stderr = split_lines(proc.stderr or "")
        if stderr:
            note(f"running {script.name} produced messages on stderr:")
            for line in stderr:
                note(f"    {line}")
        out_file = script.parent / script.name[: -len(CORRECTOR_EXT)]
        try:
            self.overwrite(out_file, split_lines(proc.stdout or ""))
        except (OSError, UnicodeDecodeError) as exc:
            warn(f"output of {rel} could not be written to {out_file} ({exc}), file skipped")
