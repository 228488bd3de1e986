"""
ReleaseDiff — Release artifact matching.

Pairs the artifacts of two releases by (type, alias) and hands each
pair to the comparator for its artifact type:

  Git                         → commit range walk
  Build                       → pipeline run comparison
  Artifactory / JFrogArtifactory → JFrog build info → CI build or release id

Skip rules (logged, never fatal): unsupported type, Build artifacts
from non-Azure repositories, identical versions, and artifacts with no
counterpart in the "from" release.
"""

from __future__ import annotations

import asyncio
import enum
from typing import Protocol

from releasediff.engine.commits import ArtifactGraphWalker
from releasediff.engine.context import ComparisonContext
from releasediff.engine.pipelines import PipelineComparisonEngine
from releasediff.engine.ranges import RangeResolver
from releasediff.errors import RepositoryNotFoundError
from releasediff.models.azure import Release, ReleaseArtifact
from releasediff.models.changes import ArtifactChangesGroup, ArtifactDescriptor
from releasediff.models.request import VersionType
from releasediff.providers.base import ArtifactRepositoryProvider, SourceControlProvider
from releasediff.utils.logging import logger
from releasediff.utils.refs import extract_ci_run


class ArtifactType(str, enum.Enum):
    GIT = "Git"
    BUILD = "Build"
    ARTIFACTORY = "Artifactory"
    JFROG_ARTIFACTORY = "JFrogArtifactory"


SUPPORTED_BUILD_REPOSITORY_PROVIDERS = {"tfsgit", "tfsversioncontrol"}


def artifact_key(artifact: ReleaseArtifact) -> tuple[str, str]:
    return (artifact.type, artifact.alias)


class ArtifactComparator(Protocol):
    async def compare(
        self, ctx: ComparisonContext, from_artifact: ReleaseArtifact, to_artifact: ReleaseArtifact
    ) -> ArtifactChangesGroup | None: ...


class GitArtifactComparator:
    def __init__(self, source_control: SourceControlProvider, walker: ArtifactGraphWalker):
        self.source_control = source_control
        self.walker = walker

    async def compare(self, ctx, from_artifact, to_artifact):
        project = to_artifact.project or ctx.project
        repo = await self.source_control.get_repo_by_id(project, to_artifact.definition_id)
        if repo is None:
            raise RepositoryNotFoundError(to_artifact.definition_name or to_artifact.definition_id, project)
        changes = await self.walker.get_commit_range_changes(
            ctx,
            repo,
            from_artifact.version_id,
            VersionType.COMMIT.value,
            to_artifact.version_id,
            VersionType.COMMIT.value,
        )
        return ArtifactChangesGroup(
            artifact=ArtifactDescriptor(name=to_artifact.alias or repo.name),
            changes=changes.linked,
            non_linked_commits=changes.unlinked,
        )


class BuildArtifactComparator:
    def __init__(self, engine: PipelineComparisonEngine):
        self.engine = engine

    async def compare(self, ctx, from_artifact, to_artifact):
        changes = await self.engine.get_pipeline_changes(
            ctx, int(to_artifact.version_id), int(from_artifact.version_id)
        )
        return ArtifactChangesGroup(
            artifact=ArtifactDescriptor(name=to_artifact.definition_name or to_artifact.alias),
            changes=changes.changes,
            non_linked_commits=changes.changes_without_link,
        )


class ArtifactoryArtifactComparator:
    """
    JFrog build info records the CI URL of the Azure run that produced
    the build. Both versions are mapped back to their run ids, which are
    then compared as pipeline builds or as releases.
    """

    def __init__(
        self,
        artifact_repository: ArtifactRepositoryProvider,
        engine: PipelineComparisonEngine,
        matcher: ReleaseArtifactMatcher,
    ):
        self.artifact_repository = artifact_repository
        self.engine = engine
        self.matcher = matcher

    async def compare(self, ctx, from_artifact, to_artifact):
        name = to_artifact.definition_name or to_artifact.alias
        connection_url = await self.artifact_repository.get_service_connection_url(
            to_artifact.project or ctx.project, to_artifact.connection_id
        )
        from_url = await self.artifact_repository.resolve_ci_url_for_build(
            connection_url, name, from_artifact.version_name or from_artifact.version_id
        )
        to_url = await self.artifact_repository.resolve_ci_url_for_build(
            connection_url, name, to_artifact.version_name or to_artifact.version_id
        )
        from_run, to_run = extract_ci_run(from_url), extract_ci_run(to_url)
        if from_run is None or to_run is None:
            logger.debug("  No CI record for %s (%r → %r) — skipped", name, from_url, to_url)
            return None
        if from_run.kind != to_run.kind:
            logger.warning("  %s versions come from a build and a release — skipped", name)
            return None

        group = ArtifactChangesGroup(artifact=ArtifactDescriptor(name=name))
        if to_run.kind == "build":
            changes = await self.engine.get_pipeline_changes(ctx, to_run.run_id, from_run.run_id)
            group.changes.extend(changes.changes)
            group.non_linked_commits.extend(changes.changes_without_link)
            return group

        for nested in await self.matcher.compare_release_ids(ctx, from_run.run_id, to_run.run_id):
            group.changes.extend(nested.changes)
            group.non_linked_commits.extend(nested.non_linked_commits)
        return group


class ReleaseArtifactMatcher:
    def __init__(
        self,
        source_control: SourceControlProvider,
        artifact_repository: ArtifactRepositoryProvider,
        walker: ArtifactGraphWalker,
        engine: PipelineComparisonEngine,
        resolver: RangeResolver,
    ):
        self.resolver = resolver
        git = GitArtifactComparator(source_control, walker)
        artifactory = ArtifactoryArtifactComparator(artifact_repository, engine, self)
        self.comparators: dict[ArtifactType, ArtifactComparator] = {
            ArtifactType.GIT: git,
            ArtifactType.BUILD: BuildArtifactComparator(engine),
            ArtifactType.ARTIFACTORY: artifactory,
            ArtifactType.JFROG_ARTIFACTORY: artifactory,
        }

    def _comparable(self, from_release: Release, to_artifact: ReleaseArtifact) -> ReleaseArtifact | None:
        """The baseline artifact to compare against, or None (with the reason logged)."""
        try:
            ArtifactType(to_artifact.type)
        except ValueError:
            logger.debug("  Artifact %s has unsupported type %s — skipped", to_artifact.alias, to_artifact.type)
            return None

        if (
            to_artifact.type == ArtifactType.BUILD.value
            and to_artifact.repository_provider.lower() not in SUPPORTED_BUILD_REPOSITORY_PROVIDERS
        ):
            logger.debug(
                "  Build artifact %s comes from %s repository — skipped",
                to_artifact.alias, to_artifact.repository_provider or "an unknown",
            )
            return None

        baseline = {artifact_key(a): a for a in from_release.artifacts}.get(artifact_key(to_artifact))
        if baseline is None:
            logger.debug("  Artifact %s missing from release %s — no baseline", to_artifact.alias, from_release.name)
            return None
        if baseline.version_id == to_artifact.version_id:
            logger.debug("  Artifact %s unchanged at %s — nothing to compare", to_artifact.alias, to_artifact.version_id)
            return None
        return baseline

    async def compare_releases(
        self, ctx: ComparisonContext, from_release: Release, to_release: Release
    ) -> list[ArtifactChangesGroup]:
        """
        One group per changed artifact, in the target release's declaration order.

        Artifacts are fetched concurrently, each in an isolated context, and
        then admitted into ``ctx`` one by one in declaration order. A commit
        reachable from two artifacts therefore always lands in the first
        declared one. The first failure cancels the remaining fetches.
        """
        ctx.visited_release_pairs.add((from_release.id, to_release.id))
        pending = []
        for to_artifact in to_release.artifacts:
            from_artifact = self._comparable(from_release, to_artifact)
            if from_artifact is None:
                continue
            comparator = self.comparators[ArtifactType(to_artifact.type)]
            pending.append(comparator.compare(ctx.isolated(), from_artifact, to_artifact))

        logger.info(
            "  Releases %s → %s: comparing %d of %d artifacts",
            from_release.name, to_release.name, len(pending), len(to_release.artifacts),
        )
        tasks = [asyncio.ensure_future(coro) for coro in pending]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        groups = []
        for result in results:
            if result is None:
                continue
            group = ctx.admit(result)
            if group.total:
                groups.append(group)
        return groups

    async def compare_release_ids(
        self, ctx: ComparisonContext, from_release_id: int, to_release_id: int
    ) -> list[ArtifactChangesGroup]:
        if (from_release_id, to_release_id) in ctx.visited_release_pairs:
            logger.warning("  Release pair %d → %d already compared — skipped", from_release_id, to_release_id)
            return []
        from_release = await self.resolver.get_release(ctx, from_release_id)
        to_release = await self.resolver.get_release(ctx, to_release_id)
        return await self.compare_releases(ctx, from_release, to_release)
