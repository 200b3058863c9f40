"""Build tasks: correct → resolve → trigger → tag.

The `correct` task orchestrates the repository hygiene run:
1. Refuse workflow files that could re-trigger themselves
2. Negotiate the project version and store it in the properties file
3. Run the correction passes (eols, headers, dependabot, scripts)
4. Keep only the changes git actually sees
5. Commit and push them, or fail on trunk where nothing may be corrected

The other tasks apply branch-based building to the declared modules,
notify dependent repositories and tag releases.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from pathlib import Path

from .config import CorrectorSettings, Environment, load_settings
from .context import build_context
from .coordinates import CoordinateRewriter
from .corrector import Corrector
from .dependabot import DependabotCorrector
from .deps import ArtifactProbe, BranchSubstitutionEngine, RepositoryProbe
from .eols import EolCorrector
from .errors import PropertiesError, TrunkCorrectionError
from .headers import HeaderCorrector, download_template
from .manifest import load_modules
from .models import (
    BuildContext,
    BuildModule,
    CorrectionResult,
    ProjectVersion,
    ResolvedBuild,
)
from .properties import DotProperties
from .publishing import PublicationRetargeter
from .scripts import ScriptCorrector
from .shell import note, step
from .toml import load_config_doc
from .triggers import DependencyTriggerManager, WorkflowDispatcher
from .vcs import NO_CI_MESSAGE, VcsGateway, check_context, open_repository
from .versions import DEFAULT_VERSION, PROP_NAME_GROUP, PROP_NAME_VERSION, correct_version
from .workflows import check_workflow_guards, find_trigger_workflows, write_step_output

COMMIT_MESSAGE = f"{NO_CI_MESSAGE} updated by branchbuild"
CORRECT_TASK = "correct"

# tasks a host build must not make depend on the correct task
NOT_BEFORE_TASKS = [
    re.compile(rf"^{p}$", re.IGNORECASE)
    for p in (
        r".*jar",
        r".*kotlin.*",
        r"buildEnvironment",
        r"buildScanPublishPrevious",
        r"components",
        r"dependen.*",
        r"help",
        r"init",
        r"model",
        r"mvg.*",
        r"outgoingVariants",
        r"prepareKotlinBuildScriptModel",
        r"process.*",
        r"projects",
        r"properties",
        r"provisionGradleEnterpriseAccessKey",
        r"publish.*",
        r"tasks",
        r"test",
        r"wrapper",
        r"clean.*",
    )
]
NOT_BEFORE_GROUPS = {"help", "build setup", "gradle enterprise"}


def should_run_before(task_name: str, group: str | None = None) -> bool:
    """Whether the correct task should be ordered before `task_name`."""
    if task_name == CORRECT_TASK:
        return False
    if any(p.match(task_name) for p in NOT_BEFORE_TASKS):
        return False
    return (group or "").lower() not in NOT_BEFORE_GROUPS


class Workspace:
    """Configuration and context of one repository, loaded once.

    Attributes:
        settings: Validated branchbuild.toml settings.
        props: The properties file holding version and group.
        env: CI flags and tokens.
        ctx: Immutable build context.
    """

    def __init__(self, root: Path, environ: Mapping[str, str] | None = None):
        root = root.resolve()
        self.settings = load_settings(root)
        self.props = DotProperties(root / self.settings.properties.file)
        self.env = Environment.collect(self.props, environ)
        self.ctx = build_context(root, self.settings, self.env)
        self._doc = load_config_doc(root)

    @property
    def root(self) -> Path:
        return self.ctx.root

    @property
    def default_group(self) -> str:
        return self.ctx.root.name

    def project(self) -> ProjectVersion:
        """Version and group as currently stored in the properties file."""
        return ProjectVersion(
            version=self.props.get(PROP_NAME_VERSION, DEFAULT_VERSION),
            group=self.props.get(PROP_NAME_GROUP, self.default_group),
        )

    def modules(self, project: ProjectVersion | None = None) -> list[BuildModule]:
        return load_modules(self._doc, project)


class CorrectionPipeline:
    """Runs the enabled correction passes in order.

    A pass runs under CI (or the test harness) or when its force flag is
    set.

    Args:
        ctx: Build context.
        settings: Corrector options.
        fetch_template: Returns the header template lines, or None.
    """

    def __init__(
        self,
        ctx: BuildContext,
        settings: CorrectorSettings,
        fetch_template: Callable[[str], list[str] | None] = download_template,
    ):
        self.ctx = ctx
        self.settings = settings
        self.fetch_template = fetch_template

    @property
    def verify(self) -> bool:
        return self.settings.verify_writes or self.ctx.branch.testing

    def _enabled(self, force: bool) -> bool:
        return self.ctx.branch.ci_or_testing or force

    def passes(self) -> list[Corrector]:
        s = self.settings
        root = self.ctx.root
        passes: list[Corrector] = []
        if self._enabled(s.force_eol):
            passes.append(EolCorrector(root, s, verify=self.verify))
        if self._enabled(s.force_header):
            passes.append(
                HeaderCorrector(
                    root,
                    self.fetch_template(s.header_url),
                    s.header_extensions,
                    s.header_excludes,
                    verify=self.verify,
                )
            )
        if self._enabled(s.force_dependabot):
            passes.append(
                DependabotCorrector(root, self.ctx.branch.integration, verify=self.verify)
            )
        if self._enabled(s.force_script):
            passes.append(ScriptCorrector(root, s.script_excludes, verify=self.verify))
        return passes

    def run(self) -> list[CorrectionResult]:
        results = []
        for corrector in self.passes():
            step(f"Correcting: {corrector.name}")
            results.append(corrector.generate())
        return results


class ChangeVerifier:
    """Filters self-reported changes down to what git sees as changed.

    Two passes can cancel each other out; only the working-tree status
    decides what gets committed.
    """

    def __init__(self, vcs: VcsGateway):
        self.vcs = vcs

    def verify(self, reported: set[Path]) -> set[str]:
        changed = self.vcs.status().changed
        return {p.as_posix() for p in reported} & changed


def run_version(
    ws: Workspace, vcs: VcsGateway | None = None, github_output: str | None = None
) -> ProjectVersion:
    """Negotiate the project version and report it to the modules.

    The repository is only opened when a search needs its tags.
    """
    step("Correcting version")
    search = ws.ctx.branch.ci_or_testing or ws.settings.corrector.force_version
    tags: list[str] = []
    if search:
        vcs = vcs or open_repository(ws.root)
        check_context(vcs, ws.ctx)
        tags = vcs.tags()
    project = correct_version(
        ws.props,
        tags,
        ws.modules(),
        search=search,
        default_group=ws.default_group,
    )
    output = github_output or ws.env.github_output
    if output:
        write_step_output(output, "version", project.version)
    return project


def run_correct(
    ws: Workspace,
    vcs: VcsGateway | None = None,
    fetch_template: Callable[[str], list[str] | None] = download_template,
) -> set[str]:
    """Run the correct task.

    Returns:
        The verified changed paths (root-relative, posix).

    Raises:
        WorkflowLoopError: If a workflow job lacks the no-ci guard.
        TrunkCorrectionError: If corrections are pending on trunk in CI.
    """
    ctx = ws.ctx
    step(f"Correcting {ctx.root.name} (branch {ctx.branch.branch})")
    check_workflow_guards(ctx.workflows_dir)

    vcs = vcs or open_repository(ctx.root)
    check_context(vcs, ctx)
    run_version(ws, vcs)

    results = CorrectionPipeline(ctx, ws.settings.corrector, fetch_template).run()
    reported: set[Path] = set()
    for result in results:
        reported |= result.changed_files

    step("Verifying changes")
    verified = ChangeVerifier(vcs).verify(reported)
    note(f"changed {len(verified)} file(s) ({len(reported)} reported)")
    if not verified:
        note("nothing to commit")
        return verified

    branch = ctx.branch
    if branch.is_trunk and branch.ci and not branch.testing:
        first = sorted(verified)[0]
        raise TrunkCorrectionError(branch.branch, verified, first, vcs.diff(first))

    if branch.ci_or_testing and ws.env.allrep_token:
        step("Pushing corrections")
        vcs.stage_commit_push(verified, COMMIT_MESSAGE, dry_run=ws.env.dry_run)
    else:
        for path in sorted(verified):
            note(f"corrected locally: {path}")
    return verified


def run_resolve(ws: Workspace, probe: ArtifactProbe | None = None) -> ResolvedBuild:
    """Apply dependency substitution and publication retargeting."""
    step("Resolving branch based coordinates")
    branch = ws.ctx.branch
    repos = ws.settings.repositories
    rewriter = CoordinateRewriter(branch.ci_or_testing, branch.trunk)
    probe = probe or RepositoryProbe(repos.effective_probe_urls, token=ws.env.allrep_token)

    engine = BranchSubstitutionEngine(branch, rewriter, probe)
    modules, _ = engine.substitute_modules(ws.modules(ws.project()))
    retargeter = PublicationRetargeter(branch, rewriter, repos)
    modules = retargeter.retarget_modules(modules)
    return ResolvedBuild(modules=modules, consumed=engine.packages, produced=retargeter.packages)


def run_trigger(
    ws: Workspace,
    probe: ArtifactProbe | None = None,
    dispatcher: WorkflowDispatcher | None = None,
) -> int:
    """Register consumed packages and dispatch dependents of produced ones.

    Returns:
        Number of successful dispatches.
    """
    ctx = ws.ctx
    repos = ws.settings.repositories
    manager = DependencyTriggerManager(
        ctx,
        repos.tracking_repo_url,
        find_trigger_workflows(ctx.workflows_dir, ws.env.github_workflow),
        dispatcher or WorkflowDispatcher(repos.owner, ws.env.allrep_token),
        dry_run=ws.env.dry_run,
    )
    if not manager.active:
        note("triggers inactive: only used for CI builds of non-trunk branches")
        return 0
    resolved = run_resolve(ws, probe)
    step("Triggering dependent builds")
    if not manager.checkout():
        return 0
    manager.save(ctx.repo_name, resolved.consumed)
    return manager.trigger(resolved.produced)


def run_tag(ws: Workspace, vcs: VcsGateway | None = None) -> str | None:
    """Tag HEAD with v<version> on trunk.

    Returns:
        The tag, or None when not on trunk.

    Raises:
        PropertiesError: If no version is set.
    """
    version = ws.props.get(PROP_NAME_VERSION)
    if not version:
        raise PropertiesError(
            f"can not tag git with version: version is not set in {ws.props.path}"
        )
    tag = f"v{version}"
    if not ws.ctx.branch.is_trunk:
        note(f"not tagging with '{tag}' because this is not the trunk branch (branch={ws.ctx.branch.branch})")
        return None
    vcs = vcs or open_repository(ws.root)
    check_context(vcs, ws.ctx)
    step(f"Tagging with {tag}")
    vcs.tag(tag, dry_run=ws.env.dry_run)
    return tag
