"""Line-ending normalization.

Every text file is rewritten with "\\n" line terminators. Whether a file
ends in a terminator is preserved.
"""

from __future__ import annotations

from pathlib import Path

from .config import CorrectorSettings
from .corrector import TreeCorrector, get_extension, read_lines
from .models import CorrectionResult
from .shell import note


class EolCorrector(TreeCorrector):
    """Normalizes line terminators of the text files of the tree."""

    name = "eols"

    def __init__(self, root: Path, settings: CorrectorSettings, *, verify: bool = False):
        super().__init__(root, settings.eol_excludes, verify=verify)
        self.settings = settings

    def is_text_type(self, path: Path) -> bool:
        """Classify a file by name, then by extension.

        Empty files and files without an extension are never text; an
        unknown extension is reported and skipped.
        """
        if path.stat().st_size == 0:
            return False
        if path.name in self.settings.text_files:
            return True
        if path.name in self.settings.no_text_files:
            return False
        ext = get_extension(path)
        if ext is None:
            return False
        if ext in self.settings.text_extensions:
            return True
        if ext in self.settings.no_text_extensions:
            return False
        note(f"unknown file type (not correcting EOLs): {path.relative_to(self.root).as_posix()}")
        return False

    def generate(self) -> CorrectionResult:
        for path in self.files():
            try:
                if self.is_text_type(path):
                    self.overwrite(path, read_lines(path))
            except (OSError, UnicodeDecodeError) as exc:
                note(f"error '{exc}' detected (and ignored) on file {path}")
        return self.result()
