"""CLI entry point for branchbuild."""

from __future__ import annotations

import functools
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from branchbuild.errors import BranchBuildError
from branchbuild.pipeline import (
    Workspace,
    run_correct,
    run_resolve,
    run_tag,
    run_trigger,
    run_version,
)
from branchbuild.upload import default_channel, find_plugin_zip, upload_plugin

root_option = click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Repository root.",
)


def _fail_on_build_error(fn: Callable[..., Any]) -> Callable[..., Any]:
    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except BranchBuildError as exc:
            raise click.ClickException(str(exc)) from exc

    return wrapper


@click.group()
@click.version_option(package_name="branchbuild")
def cli() -> None:
    """Branch-based building and source correction for CI."""


@cli.command()
@root_option
@_fail_on_build_error
def correct(root: Path) -> None:
    """Correct versions, headers, eols and generated files; push the result."""
    changed = run_correct(Workspace(root))
    click.echo(f"✓ {len(changed)} file(s) corrected")


@cli.command()
@root_option
@click.option(
    "--github-output",
    type=click.Path(dir_okay=False),
    default=None,
    help="Append version=<v> to this GitHub step output file.",
)
@_fail_on_build_error
def version(root: Path, github_output: str | None) -> None:
    """Print the version this build publishes."""
    ws = Workspace(root)
    project = run_version(ws, github_output=github_output)
    click.echo(project.version)


@cli.command()
@root_option
@_fail_on_build_error
def resolve(root: Path) -> None:
    """Print the modules after branch-based substitution as JSON."""
    resolved = run_resolve(Workspace(root))
    click.echo(json.dumps(resolved.model_dump(mode="json"), indent=2, sort_keys=True))


@cli.command()
@root_option
@_fail_on_build_error
def trigger(root: Path) -> None:
    """Register dependencies and trigger builds of dependent repositories."""
    count = run_trigger(Workspace(root))
    click.echo(f"✓ {count} workflow(s) triggered")


@cli.command()
@root_option
@_fail_on_build_error
def tag(root: Path) -> None:
    """Tag the current commit with v<version> (trunk only)."""
    result = run_tag(Workspace(root))
    if result:
        click.echo(f"✓ Tagged {result}")


@cli.command()
@root_option
@click.option("--plugin-id", required=True, help="Marketplace plugin id.")
@click.option("--channel", default=None, help="Release channel [default: by branch].")
@click.option(
    "--file",
    "zip_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Plugin archive [default: the single zip in build/artifacts].",
)
@click.option("--token", default=None, help="Upload token [default: JETBRAINS_PUBLISH_TOKEN].")
@_fail_on_build_error
def upload(
    root: Path,
    plugin_id: str,
    channel: str | None,
    zip_file: Path | None,
    token: str | None,
) -> None:
    """Upload a plugin archive to the JetBrains marketplace."""
    ws = Workspace(root)
    channel = channel or default_channel(ws.ctx.branch)
    zip_file = zip_file or find_plugin_zip(ws.ctx.build_dir / "artifacts")
    if upload_plugin(plugin_id, channel, zip_file, token or ws.env.jetbrains_token):
        click.echo(f"✓ Uploaded {zip_file.name} to channel {channel}")
