"""Shell and git utilities.

Provides simple wrappers around subprocess calls for running shell commands
and git operations, plus output formatting helpers.
"""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path


def git(
    *args: str, cwd: Path | None = None, check: bool = True
) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "status", "--porcelain").
        cwd: Directory to run git in. Defaults to the current directory.
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail (e.g., tag lookup).

    Returns:
        Stripped stdout from the git command.
    """
    result = subprocess.run(
        ["git", *args],
        cwd=str(cwd) if cwd else None,
        capture_output=True,
        text=True,
        check=check,
    )
    return result.stdout.strip()


def run(
    *args: str,
    cwd: Path | None = None,
    capture: bool = False,
    timeout: float | None = None,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Run an arbitrary command.

    Unlike git(), output is streamed to the terminal unless ``capture`` is
    set, in which case stdout/stderr are collected as text.

    Args:
        *args: Command and arguments (e.g., "bash", "gen.corrector.sh").
        cwd: Working directory for the command.
        capture: Collect stdout/stderr instead of streaming them.
        timeout: Seconds before the command is killed.
        check: If True (default), raise on non-zero exit.

    Returns:
        CompletedProcess with returncode for checking success.
    """
    return subprocess.run(
        args,
        cwd=str(cwd) if cwd else None,
        capture_output=capture,
        text=True,
        timeout=timeout,
        check=check,
    )


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases of a correction run in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def note(msg: str) -> None:
    """Print an indented detail line under the current step."""
    print(f"  {msg}")


def warn(msg: str) -> None:
    """Print a warning to stderr; the run continues."""
    print(f"WARNING: {msg}", file=sys.stderr)


def hide(secret: str | None) -> str | None:
    """Mask a token for display, keeping the first three characters.

    Examples:
        "ghp_abcdef123" → "ghp**********"
        "short" → "*****"
        "DRY" → "DRY"
    """
    if secret is None or secret == "DRY":
        return secret
    if len(secret) < 7:
        return "*" * len(secret)
    return secret[:3] + "*" * (len(secret) - 3)
