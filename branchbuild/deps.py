"""Branch-based dependency substitution.

A dependency declared with a "-BRANCHED" version means "the artifact built
from the branch I am on, if there is one". The engine tries the current
branch, then the integration branch, then trunk, and substitutes the first
candidate whose artifact exists in one of the probe repositories. Trunk is
trusted without probing.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx

from .coordinates import BRANCH_INDICATOR, CoordinateRewriter
from .models import BranchContext, BuildModule, Coordinate, SubstitutionOutcome
from .shell import note, warn


def candidate_branches(ctx: BranchContext) -> list[str]:
    """Branches whose artifacts may replace a branch-indicated dependency.

    Examples:
        on master → ["master"]
        on develop → ["develop", "master"]
        on feature → ["feature", "develop", "master"]
    """
    if ctx.is_trunk:
        return [ctx.trunk]
    if ctx.is_integration:
        return [ctx.integration, ctx.trunk]
    return [ctx.branch, ctx.integration, ctx.trunk]


def pom_path(coord: Coordinate) -> str:
    """Maven layout path of the POM of `coord`.

    Example:
        org.example:core:1.0.0 → "org/example/core/1.0.0/core-1.0.0.pom"
    """
    group_path = coord.group.replace(".", "/")
    return f"{group_path}/{coord.artifact}/{coord.version}/{coord.artifact}-{coord.version}.pom"


class ArtifactProbe(Protocol):
    """Answers whether an artifact can be resolved."""

    def exists(self, coord: Coordinate) -> bool: ...


class RepositoryProbe:
    """Looks for an artifact's POM in a list of Maven repositories.

    file: URLs are checked on disk, anything else with an HTTP HEAD request.
    Network errors count as "not there".

    Args:
        urls: Repository base URLs, consulted in order.
        token: Password for repositories that need one (GitHub packages).
        client: httpx client to use; one is created when omitted.
        timeout: Seconds per request.
    """

    def __init__(
        self,
        urls: list[str],
        token: str | None = None,
        client: httpx.Client | None = None,
        timeout: float = 10.0,
    ):
        self.urls = urls
        self._client = client or httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            auth=("", token) if token and token != "DRY" else None,
        )

    def exists(self, coord: Coordinate) -> bool:
        path = pom_path(coord)
        for url in self.urls:
            if self._exists_in(url, path):
                return True
        return False

    def _exists_in(self, base: str, path: str) -> bool:
        parsed = urlparse(base)
        if parsed.scheme == "file":
            return (Path(url2pathname(parsed.path)) / path).is_file()
        try:
            response = self._client.head(f"{base.rstrip('/')}/{path}")
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            note(f"probe of {base} failed: {exc}")
            return False
        return response.is_success


class BranchSubstitutionEngine:
    """Replaces branch-indicated dependencies of build modules.

    Attributes:
        packages: Raw "group.artifact" names of every substituted
                  dependency, for downstream-trigger bookkeeping.
    """

    def __init__(
        self,
        ctx: BranchContext,
        rewriter: CoordinateRewriter,
        probe: ArtifactProbe,
    ):
        self.ctx = ctx
        self.rewriter = rewriter
        self.probe = probe
        self.packages: set[str] = set()

    def substitute(self, coord: Coordinate) -> SubstitutionOutcome:
        """Find the replacement of one dependency.

        A dependency without the branch indicator is returned with no
        target; substituting an already substituted coordinate is a no-op.
        """
        if not coord.version.endswith(BRANCH_INDICATOR):
            return SubstitutionOutcome(requested=coord)

        tried: list[str] = []
        for branch in candidate_branches(self.ctx):
            tried.append(branch)
            target = self.rewriter.substitute(coord, branch)
            if branch == self.ctx.trunk or self.probe.exists(target):
                self.packages.add(coord.package)
                note(f"dependency replaced: {coord} => {target} (branch {branch})")
                return SubstitutionOutcome(
                    requested=coord, target=target, branch=branch, tried=tried
                )
            note(f"dependency {target} not found for branch {branch}")

        warn(f"dependency {coord} not found in any of the branches {', '.join(tried)}")
        return SubstitutionOutcome(requested=coord, tried=tried)

    def substitute_modules(
        self, modules: list[BuildModule]
    ) -> tuple[list[BuildModule], list[SubstitutionOutcome]]:
        """Apply substitution to every dependency of every module.

        Returns:
            Tuple of (modules with substituted dependencies, one outcome
            per branch-indicated dependency).
        """
        result: list[BuildModule] = []
        outcomes: list[SubstitutionOutcome] = []
        for module in modules:
            deps: list[Coordinate] = []
            for dep in module.dependencies:
                outcome = self.substitute(dep)
                if dep.version.endswith(BRANCH_INDICATOR):
                    outcomes.append(outcome)
                deps.append(outcome.target or dep)
            result.append(module.model_copy(update={"dependencies": deps}))
        return result, outcomes
