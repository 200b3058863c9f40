"""Downstream build triggering.

A shared tracking repository records, per package, which repositories use
it and which of their workflows to re-run when it changes:

    org/example/collections/app-repo.trigger    WORKFLOWS=build.yaml/test.yml

After a branch build, the current repository re-registers everything it
consumes (replacing its previous records) and dispatches the workflows of
every repository that consumes what it produces, on the same branch.
"""

from __future__ import annotations

import os
import shutil
import socket
import subprocess
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

import httpx

from .errors import VcsError
from .models import BuildContext, TriggerRecord
from .properties import DotProperties
from .shell import git, note, warn
from .vcs import GitGateway

TRIGGER_EXT = ".trigger"
GITHUB_API = "https://api.github.com"
GITHUB_JSON = "application/vnd.github.v3+json"


class WorkflowDispatcher:
    """Starts workflow_dispatch runs through the GitHub REST API.

    Args:
        owner: GitHub organization of the dependent repositories.
        token: API token; without one nothing is dispatched.
        client: httpx client to use; one is created when omitted.
        timeout: Seconds per request.
    """

    def __init__(
        self,
        owner: str,
        token: str | None,
        client: httpx.Client | None = None,
        timeout: float = 10.0,
    ):
        self.owner = owner
        self.token = token
        self._client = client or httpx.Client(timeout=timeout)

    def dispatch(self, repo: str, workflow: str, ref: str) -> bool:
        """Request a run of `workflow` in `repo` on branch `ref`.

        Failures are reported and return False.
        """
        if not self.token:
            note(f"no token, not triggering {repo}/{workflow}")
            return False
        url = f"{GITHUB_API}/repos/{self.owner}/{repo}/actions/workflows/{workflow}/dispatches"
        note(f"TRIGGER dependent project (repo={repo} branch={ref} workflow={workflow})")
        try:
            response = self._client.post(
                url,
                json={"ref": ref},
                headers={"Authorization": f"token {self.token}", "Accept": GITHUB_JSON},
            )
        except httpx.HTTPError as exc:
            note(f"could not trigger (repo={repo} wf={workflow} msg='{exc.__class__.__name__}:{exc}')")
            return False
        if not response.is_success:
            note(f"TRIGGER gave problem: {response.status_code} {response.text}")
            return False
        return True


def trigger_dir(repo_dir: Path, package: str) -> Path:
    return repo_dir.joinpath(*package.split("."))


def trigger_file(repo_dir: Path, package: str, producing_repo: str) -> Path:
    return trigger_dir(repo_dir, package) / f"{producing_repo}{TRIGGER_EXT}"


def read_trigger(path: Path, package: str) -> TriggerRecord | None:
    """Parse one trigger file; None when it names no workflows."""
    value = DotProperties(path).get("WORKFLOWS")
    if value is None:
        return None
    return TriggerRecord(
        producing_repo=path.name[: -len(TRIGGER_EXT)],
        consuming_package=package,
        workflows=[w for w in value.split("/") if w],
    )


class DependencyTriggerManager:
    """Maintains the tracking repository and dispatches dependents.

    Inert unless running under CI (or the test harness) on a branch other
    than trunk.

    Args:
        ctx: Build context.
        tracking_url: Clone URL of the tracking repository.
        workflows: Workflow file names of this repository to register.
        dispatcher: Used to start downstream workflows.
        dry_run: Push the tracking repository with --dry-run.
    """

    def __init__(
        self,
        ctx: BuildContext,
        tracking_url: str,
        workflows: list[str],
        dispatcher: WorkflowDispatcher,
        *,
        dry_run: bool = False,
    ):
        self.ctx = ctx
        self.tracking_url = tracking_url
        self.workflows = workflows
        self.dispatcher = dispatcher
        self.dry_run = dry_run
        self.repo_dir = ctx.build_dir / "dependencies"

    @property
    def active(self) -> bool:
        return self.ctx.branch.ci_or_testing and not self.ctx.branch.is_trunk

    def checkout(self) -> bool:
        """Clone the tracking repository on the current branch.

        A missing branch is created and pushed. Returns False (after a
        warning) if git fails.
        """
        branch = self.ctx.branch.branch
        try:
            if self.repo_dir.is_dir():
                note(f"deleting old dependencies repo at {self.repo_dir}")
                shutil.rmtree(self.repo_dir)
            self.repo_dir.parent.mkdir(parents=True, exist_ok=True)
            note(f"cloning dependencies repo {self.tracking_url} branch {branch} in {self.repo_dir}")
            git("clone", "--quiet", self.tracking_url, str(self.repo_dir))
            remotes = git("branch", "--remotes", cwd=self.repo_dir).splitlines()
            if any(r.strip() == f"origin/{branch}" for r in remotes):
                git("checkout", "--quiet", "-B", branch, "--track", f"origin/{branch}", cwd=self.repo_dir)
            else:
                git("checkout", "--quiet", "-b", branch, cwd=self.repo_dir)
                push = ["push", "--quiet", "--set-upstream", "origin", branch]
                if self.dry_run:
                    push.append("--dry-run")
                git(*push, cwd=self.repo_dir)
        except (OSError, subprocess.CalledProcessError) as exc:
            warn(f"problem with dependencies repo: {getattr(exc, 'stderr', None) or exc}")
            return False
        return True

    def clear(self, producing_repo: str) -> None:
        """Delete every trigger file of `producing_repo`."""
        name = f"{producing_repo}{TRIGGER_EXT}"
        for dirpath, dirnames, filenames in os.walk(self.repo_dir):
            dirnames[:] = [d for d in dirnames if d != ".git"]
            if name in filenames:
                path = Path(dirpath) / name
                note(f"deleting obsolete trigger file: {path.relative_to(self.repo_dir)}")
                path.unlink()

    def write(self, producing_repo: str, packages: Iterable[str]) -> None:
        content = f"WORKFLOWS={'/'.join(self.workflows)}\n".encode()
        for package in sorted(set(packages)):
            path = trigger_file(self.repo_dir, package, producing_repo)
            note(f"creating trigger file: {path.relative_to(self.repo_dir)}")
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)

    def save(self, producing_repo: str | None, packages: Iterable[str]) -> None:
        """Replace the records of `producing_repo` and push them.

        Git or file system failures are reported and the build continues.
        """
        if not self.active:
            return
        if producing_repo is None:
            note(f"saving dependencies skipped: not a repository of the organization at {self.ctx.root}")
            return
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        message = f"{producing_repo}:{self.ctx.branch.branch} @{stamp} [{socket.gethostname()}]"
        try:
            self.clear(producing_repo)
            self.write(producing_repo, packages)
            tracking = GitGateway(self.repo_dir)
            tracking.stage_commit_push(tracking.status().changed, message, dry_run=self.dry_run)
        except (OSError, VcsError) as exc:
            warn(f"dependencies could not be saved: {exc}")

    def records(self, package: str) -> list[TriggerRecord]:
        directory = trigger_dir(self.repo_dir, package)
        if not directory.is_dir():
            return []
        found = []
        for path in sorted(directory.iterdir()):
            if path.is_file() and path.name.endswith(TRIGGER_EXT):
                record = read_trigger(path, package)
                if record is not None:
                    found.append(record)
        return found

    def trigger(self, packages: Iterable[str]) -> int:
        """Dispatch the workflows of every consumer of `packages`.

        Each (repository, workflow) pair is dispatched once. Returns the
        number of successful dispatches.
        """
        if not self.active:
            return 0
        pairs: dict[tuple[str, str], None] = {}
        for package in sorted(set(packages)):
            for record in self.records(package):
                for workflow in record.workflows:
                    pairs[(record.producing_repo, workflow)] = None
        return sum(
            self.dispatcher.dispatch(repo, workflow, self.ctx.branch.branch)
            for repo, workflow in pairs
        )
