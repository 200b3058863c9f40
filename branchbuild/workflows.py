"""GitHub Actions workflow helpers.

Commits pushed by the automation carry "[no-ci]" in their message; every
workflow job must refuse to run on such commits or a correction push
would trigger the next correction run forever.
"""

from __future__ import annotations

import re
from pathlib import Path

import yaml

from .errors import WorkflowLoopError
from .shell import warn

NO_CI_GUARD = "!contains(github.event.head_commit.message, '[no-ci]')"

_WORKFLOW_FILE_RE = re.compile(r".*\.ya?ml")


def workflow_files(workflows_dir: Path) -> list[Path]:
    if not workflows_dir.is_dir():
        return []
    return sorted(
        p for p in workflows_dir.iterdir() if p.is_file() and _WORKFLOW_FILE_RE.fullmatch(p.name)
    )


def check_workflow_guards(workflows_dir: Path) -> None:
    """Verify that every job of every workflow carries the no-ci guard.

    Raises:
        WorkflowLoopError: Listing every unguarded job.
    """
    if not workflows_dir.is_dir():
        warn(f"can not check for BUILD LOOP DANGER: workflows dir not found at {workflows_dir}")
        return

    offenders: list[tuple[Path, str]] = []
    for path in workflow_files(workflows_dir):
        try:
            doc = yaml.safe_load(path.read_text())
        except (OSError, yaml.YAMLError) as exc:
            warn(f"could not read workflow file {path}: {exc}")
            continue
        jobs = doc.get("jobs") if isinstance(doc, dict) else None
        if not jobs:
            warn(f"RECURSION DANGER: the workflow file {path} does not contain jobs; is it a workflow file?")
            continue
        for job_name, job in jobs.items():
            guard = job.get("if") if isinstance(job, dict) else None
            if guard != NO_CI_GUARD:
                offenders.append((path, str(job_name)))

    if offenders:
        raise WorkflowLoopError(offenders, NO_CI_GUARD)


def find_trigger_workflows(workflows_dir: Path, workflow_name: str | None) -> list[str]:
    """File names of the workflows dependents should re-run.

    Only workflows that can be dispatched (mention workflow_dispatch)
    qualify. If some of them are named `workflow_name`, only those.
    """
    dispatchable: list[Path] = []
    for path in workflow_files(workflows_dir):
        try:
            text = path.read_text()
        except OSError:
            continue
        if "workflow_dispatch" in text:
            dispatchable.append(path)

    if workflow_name:
        name_re = re.compile(rf"^name: *{re.escape(workflow_name)}$", re.MULTILINE)
        named = [p for p in dispatchable if name_re.search(p.read_text())]
        if named:
            return [p.name for p in named]
    return [p.name for p in dispatchable]


def write_step_output(output_path: str, name: str, value: str) -> None:
    """Append a name=value line to the GitHub step output file."""
    with open(output_path, "a") as fh:
        fh.write(f"{name}={value}\n")
