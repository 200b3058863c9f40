"""License header correction.

The header template is downloaded once per run, cleaned of any comment
decoration it carries, and rendered per comment prefix inside a tilde
frame:

    //~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
    // (C) Copyright 2018-2024 Example Group   ~
    //                                         ~
    // Licensed under the Apache License...   ~
    //~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
    <blank line>

An existing frame (and blank lines) right after an optional shebang line
is removed before the fresh one is inserted.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path

import httpx

from .corrector import TreeCorrector, get_extension, read_lines
from .models import CorrectionResult
from .shell import note, warn

NO_HEADER = "no header available"


def download_template(url: str, timeout: float = 30.0) -> list[str] | None:
    """Fetch the header template, or None if it cannot be fetched."""
    try:
        response = httpx.get(url, timeout=timeout, follow_redirects=True)
        response.raise_for_status()
        text = response.content.decode("utf-8")
    except (httpx.HTTPError, httpx.InvalidURL, UnicodeDecodeError) as exc:
        note(f"failure getting file from: {url} ({exc})")
        return None
    return text.split("\n")


def substitute_year(lines: list[str], year: int | None = None) -> list[str]:
    year_str = str(year if year is not None else datetime.now().year)
    return [line.replace("yyyy", year_str) for line in lines]


def cleanup(prefix: str, template: list[str]) -> list[str]:
    """Strip comment decoration and common indentation from a template.

    Border lines of either this prefix or "//" are dropped, as are leading
    prefixes and trailing tildes, so a template that already carries a
    frame renders the same as a bare one.
    """
    border_re = re.compile(rf"^(?:{re.escape(prefix)}|//)~+$")
    lines = []
    for line in template:
        line = line.rstrip()
        if border_re.match(line):
            continue
        if line.startswith(prefix):
            line = line[len(prefix):]
        if line.startswith("//"):
            line = line[2:]
        if line.endswith("~"):
            line = line[:-1]
        lines.append(line.rstrip())

    indents = [len(line) - len(line.lstrip(" ")) for line in lines if line.strip()]
    indent = min(indents, default=0)
    if indent > 0:
        lines = [line[indent:] for line in lines]

    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return lines or [NO_HEADER]


def border(prefix: str, template: list[str]) -> list[str]:
    """Render the framed header block for one comment prefix."""
    lines = cleanup(prefix, template)
    width = max(len(line) for line in lines)
    rule = prefix + "~" * (width + 3)
    return [rule, *(f"{prefix} {line:<{width}} ~" for line in lines), rule, ""]


def is_header_line(line: str, prefix: str) -> bool:
    return (line.startswith(prefix) and line.endswith("~")) or not line.strip()


def replace_header(lines: list[str], header: list[str], prefix: str) -> list[str]:
    """Return `lines` with its header block replaced by `header`."""
    lines = list(lines)
    base = 1 if lines and lines[0].startswith("#!") else 0
    while base < len(lines) and is_header_line(lines[base], prefix):
        del lines[base]
    base = 1 if lines and lines[0].startswith("#!") else 0
    lines[base:base] = header
    return lines


class HeaderCorrector(TreeCorrector):
    """Inserts or refreshes the license header of every eligible file.

    Args:
        root: Repository root.
        template: Raw template lines; None skips the whole pass.
        extensions: Comment prefix per file extension; other files are
                    left alone.
        excludes: Exclusion globs.
    """

    name = "header"

    def __init__(
        self,
        root: Path,
        template: list[str] | None,
        extensions: dict[str, str],
        excludes: list[str],
        *,
        verify: bool = False,
    ):
        super().__init__(root, excludes, verify=verify)
        self.template = substitute_year(template) if template is not None else None
        self.extensions = extensions
        self._headers: dict[str, list[str]] = {}

    def header_for(self, ext: str) -> list[str]:
        if ext not in self._headers:
            self._headers[ext] = border(self.extensions[ext], self.template or [])
        return self._headers[ext]

    def needs_header(self, path: Path) -> bool:
        ext = get_extension(path)
        return ext is not None and ext in self.extensions and path.stat().st_size != 0

    def generate(self) -> CorrectionResult:
        if self.template is None:
            warn("headers are not updated because the header template could not be read")
            return self.result()
        for path in self.files():
            try:
                if not self.needs_header(path):
                    continue
                ext = get_extension(path)
                lines = read_lines(path)
                new_lines = replace_header(lines, self.header_for(ext), self.extensions[ext])
                self.overwrite(path, new_lines)
            except (OSError, UnicodeDecodeError) as exc:
                warn(f"inserting a header in {path} impossible ({exc}), file skipped")
        return self.result()
