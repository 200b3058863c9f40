"""Line-preserving access to key=value properties files.

The project's version and group live in a properties file at the
repository root (gradle.properties by default). Edits touch only the line
of the changed key so comments and ordering survive, and every write first
checks that nobody else modified the file since it was read.
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path

from .corrector import split_lines
from .errors import ConcurrentModificationError, PropertiesError

# key, separator (=, : or whitespace), value; continuation lines unsupported
_ENTRY_RE = re.compile(r"^\s*([^=:\s]+)(?:\s*[=:]\s*|\s+)?(.*)$")


def _checksum(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _parse_entry(line: str) -> tuple[str, str] | None:
    """Return (key, value) for a property line, None for comments/blanks."""
    stripped = line.strip()
    if not stripped or stripped[0] in "#!":
        return None
    match = _ENTRY_RE.match(line)
    if not match:
        return None
    return match.group(1), match.group(2).strip()


class DotProperties:
    """A properties file with a parsed view and its original lines.

    Attributes:
        path: Location of the file.
        valid: True if the file existed when it was read.
    """

    def __init__(self, path: Path):
        self.path = path
        self.valid = path.is_file()
        self._lines: list[str] = []
        self._values: dict[str, str] = {}
        self._checksum: str | None = None
        self._trailing_newline = True
        if self.valid:
            self._load()

    def _load(self) -> None:
        try:
            data = self.path.read_bytes()
            text = data.decode("utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise PropertiesError(
                f"properties file could not be read: {self.path.absolute()}"
            ) from exc
        self._checksum = _checksum(data)
        self._lines = split_lines(text)
        self._trailing_newline = not text or text.endswith(("\n", "\r"))
        self._values = {}
        for line in self._lines:
            entry = _parse_entry(line)
            if entry:
                self._values[entry[0]] = entry[1]

    def get(self, name: str, default: str | None = None) -> str | None:
        """Return the value of `name`, or `default` if not set."""
        return self._values.get(name, default)

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def set(self, name: str, value: str) -> bool:
        """Set `name` to `value` and write the file.

        Only lines defining `name` are rewritten; an unknown key is
        appended. Nothing is written when the value is unchanged.

        Returns:
            True if the file was written.

        Raises:
            PropertiesError: If the file did not exist or cannot be written.
            ConcurrentModificationError: If the file changed on disk since
                it was read.
        """
        if not self.valid:
            raise PropertiesError(f"properties file does not exist: {self.path.absolute()}")
        if self._values.get(name) == value:
            return False

        self._check_unchanged_on_disk()

        replaced = False
        new_lines: list[str] = []
        for line in self._lines:
            entry = _parse_entry(line)
            if entry and entry[0] == name:
                new_lines.append(f"{name}={value}")
                replaced = True
            else:
                new_lines.append(line)
        if not replaced:
            new_lines.append(f"{name}={value}")

        text = "\n".join(new_lines)
        if self._trailing_newline and new_lines:
            text += "\n"
        data = text.encode("utf-8")
        try:
            self.path.write_bytes(data)
        except OSError as exc:
            raise PropertiesError(
                f"properties file could not be written: {self.path.absolute()}"
            ) from exc

        self._lines = new_lines
        self._values[name] = value
        self._checksum = _checksum(data)
        return True

    def _check_unchanged_on_disk(self) -> None:
        try:
            current = _checksum(self.path.read_bytes())
        except OSError as exc:
            raise PropertiesError(
                f"properties file could not be read: {self.path.absolute()}"
            ) from exc
        if current != self._checksum:
            raise ConcurrentModificationError(
                f"properties file was modified by another process since it was read: "
                f"{self.path.absolute()}"
            )
