"""Version-control access.

The rest of the package talks to git through the small VcsGateway
interface. GitGateway implements it on top of the git command line; one
instance exists per repository root for the life of the process.
"""

from __future__ import annotations

import functools
import subprocess
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from .errors import ContextMismatchError, VcsError
from .models import BuildContext, VcsStatus
from .shell import git, note, run

NO_CI_MESSAGE = "[no-ci]"
AUTOMATION_NAME = "automation"
AUTOMATION_EMAIL = "automation@modelingvalue.org"


class VcsGateway(Protocol):
    """What the build needs from version control."""

    @property
    def root(self) -> Path: ...

    def status(self) -> VcsStatus: ...

    def tags(self) -> list[str]: ...

    def diff(self, path: str) -> str: ...

    def stage_commit_push(self, paths: Iterable[str], message: str, *, dry_run: bool = False) -> bool: ...

    def tag(self, name: str, *, dry_run: bool = False) -> None: ...


def parse_porcelain(output: str) -> VcsStatus:
    """Parse `git status --porcelain=v1 -z` output.

    Renamed entries count as added under their new name.
    """
    status = VcsStatus()
    entries = output.split("\0")
    i = 0
    while i < len(entries):
        entry = entries[i]
        i += 1
        if len(entry) < 4:
            continue
        xy, path = entry[:2], entry[3:]
        if xy == "??":
            status.untracked.add(path)
        elif xy[0] in "RC":
            status.added.add(path)
            i += 1  # the original path follows
        elif "D" in xy:
            status.missing.add(path)
        elif xy[0] == "A":
            status.added.add(path)
        else:
            status.modified.add(path)
    return status


class GitGateway:
    """VcsGateway backed by the git executable.

    Args:
        root: Top-level directory of the working tree.
    """

    def __init__(self, root: Path):
        self._root = root

    @property
    def root(self) -> Path:
        return self._root

    def _git(self, *args: str) -> str:
        try:
            return git(*args, cwd=self._root)
        except (OSError, subprocess.CalledProcessError) as exc:
            detail = getattr(exc, "stderr", None) or exc
            raise VcsError(f"git {' '.join(args)} failed in {self._root}: {detail}") from exc

    def status(self) -> VcsStatus:
        try:
            proc = run(
                "git", "status", "--porcelain=v1", "-z", "--untracked-files=all",
                cwd=self._root,
                capture=True,
            )
        except (OSError, subprocess.CalledProcessError) as exc:
            raise VcsError(f"git status failed in {self._root}: {exc}") from exc
        return parse_porcelain(proc.stdout)

    def tags(self) -> list[str]:
        out = self._git("tag", "--list")
        return out.splitlines() if out else []

    def diff(self, path: str) -> str:
        """Diff of one path against HEAD; untracked files diff against nothing."""
        out = git("diff", "HEAD", "--", path, cwd=self._root, check=False)
        if out:
            return out
        return git("diff", "--no-index", "--", "/dev/null", path, cwd=self._root, check=False)

    def stage_commit_push(
        self, paths: Iterable[str], message: str, *, dry_run: bool = False
    ) -> bool:
        """Stage `paths`, commit them as the automation user and push.

        Deleted paths are removed from the index, the others added.

        Returns:
            False if there was nothing to stage.
        """
        paths = sorted(set(paths))
        if not paths:
            note("git: staging changes (nothing to stage)")
            return False
        status = self.status()
        removed = [p for p in paths if p in status.missing]
        added = [p for p in paths if p not in status.missing]
        note(f"git: staging changes (adds/mods={len(added)} dels={len(removed)})")
        if added:
            self._git("add", "--", *added)
        if removed:
            self._git("rm", "--quiet", "--cached", "--", *removed)

        note(f"git: commit (message='{message}')")
        ident = f"{AUTOMATION_NAME} <{AUTOMATION_EMAIL}>"
        self._git(
            "-c", f"user.name={AUTOMATION_NAME}",
            "-c", f"user.email={AUTOMATION_EMAIL}",
            "commit", "--quiet", f"--author={ident}", "-m", message,
        )
        self.push(dry_run=dry_run)
        return True

    def push(self, *, tags: bool = False, dry_run: bool = False) -> None:
        note(f"git: {'[dry] ' if dry_run else ''}push{' tags' if tags else ''}")
        args = ["push"]
        if tags:
            args.append("--tags")
        if dry_run:
            args.append("--dry-run")
        self._git(*args)

    def tag(self, name: str, *, dry_run: bool = False) -> None:
        """Force-set tag `name` on HEAD and push tags."""
        note(f"git: tagging with '{name}'")
        self._git("tag", "--force", name)
        self.push(tags=True, dry_run=dry_run)


@functools.lru_cache(maxsize=None)
def _gateway_for(toplevel: Path) -> GitGateway:
    return GitGateway(toplevel)


def open_repository(path: Path) -> GitGateway:
    """Return the gateway of the working tree containing `path`.

    Gateways are memoized per resolved top-level directory, so every
    component of a run shares one.

    Raises:
        VcsError: If `path` is not inside a git working tree.
    """
    try:
        toplevel = git("rev-parse", "--show-toplevel", cwd=path)
    except (OSError, subprocess.CalledProcessError) as exc:
        raise VcsError(f"not a git working tree: {path}") from exc
    return _gateway_for(Path(toplevel).resolve())


def check_context(vcs: VcsGateway, ctx: BuildContext) -> None:
    """Fail if `vcs` does not belong to the repository of `ctx`."""
    if vcs.root.resolve() != ctx.root.resolve():
        raise ContextMismatchError(
            f"repository root changed during the build: context has {ctx.root}, "
            f"version control has {vcs.root}"
        )
