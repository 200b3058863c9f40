"""Publication retargeting.

Decides under which coordinates, and into which repository, each module
publishes. CI builds of trunk publish releases; other CI builds publish
rewritten coordinates to the snapshot repository; local builds always
publish rewritten coordinates to the local Maven repository.
"""

from __future__ import annotations

from .config import RepositorySettings
from .coordinates import CoordinateRewriter
from .models import BranchContext, BuildModule, Publication, Repository
from .shell import note, warn


class PublicationRetargeter:
    """Rewrites publications and chooses publish repositories.

    Attributes:
        packages: "group.artifact" of every publication seen, before
                  rewriting, for downstream-trigger bookkeeping.
    """

    def __init__(
        self,
        ctx: BranchContext,
        rewriter: CoordinateRewriter,
        repositories: RepositorySettings,
    ):
        self.ctx = ctx
        self.rewriter = rewriter
        self.repositories = repositories
        self.packages: set[str] = set()

    def target_repository(self) -> Repository:
        if not self.ctx.ci_or_testing:
            return Repository(name="mavenLocal", url=self.repositories.local_repo_url)
        if self.ctx.is_trunk:
            return Repository(name="release", url=self.repositories.release_url)
        return Repository(name="snapshots", url=self.repositories.snapshot_url)

    def _rewrite(self, pub: Publication) -> Publication:
        new = self.rewriter.rewrite(pub.coordinate, self.ctx.branch)
        if new != pub.coordinate:
            note(f"changed publication {pub.name}: '{pub.coordinate}' => '{new}'")
        return pub.model_copy(
            update={"group": new.group, "artifact": new.artifact, "version": new.version}
        )

    def retarget(self, module: BuildModule) -> BuildModule:
        """Return `module` with retargeted publications and repositories.

        Pre-existing repositories are kept and no repository is added next
        to them.
        """
        for pub in module.publications:
            self.packages.add(pub.coordinate.package)

        if module.repositories:
            warn(
                f"the repository set for module {module.name} is not empty; "
                "no publish repository will be added. Make it empty to publish "
                "branch based."
            )

        publications = module.publications
        if not (self.ctx.ci_or_testing and self.ctx.is_trunk):
            publications = [self._rewrite(pub) for pub in publications]

        repositories = module.repositories
        if not repositories and publications:
            repo = self.target_repository()
            note(f"adding {repo.name} publishing repo for module {module.name}: {repo.url}")
            repositories = [repo]

        return module.model_copy(
            update={"publications": publications, "repositories": repositories}
        )

    def retarget_modules(self, modules: list[BuildModule]) -> list[BuildModule]:
        return [self.retarget(m) for m in modules]
