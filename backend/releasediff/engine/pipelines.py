"""
ReleaseDiff — Pipeline run comparison.

Diffs two runs of a pipeline: every repository the runs checked out,
then every upstream "resource pipeline" the runs consumed, recursively.

Resource pipelines can reference each other (and themselves), so the
recursion is an explicit FIFO worklist over
(definition id, source run, target run) triples with a visited set.
A repeated triple is logged and contributes nothing, which bounds the
number of run comparisons by the number of distinct triples.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

from releasediff.engine.commits import ArtifactGraphWalker
from releasediff.engine.context import ComparisonContext
from releasediff.engine.ranges import RangeResolver, ensure_build_comparable
from releasediff.errors import BuildNotSucceededError
from releasediff.models.azure import Build, GitRepository, ResourcePipeline, ResourceRepository
from releasediff.models.changes import PipelineChanges
from releasediff.models.request import VersionType
from releasediff.providers.base import PipelineProvider
from releasediff.utils.logging import logger
from releasediff.utils.refs import remove_user_from_git_repo_url

SUPPORTED_RESOURCE_PROVIDER = "tfsgit"


@dataclass(frozen=True)
class RunPair:
    definition_id: int
    source_run_id: int
    target_run_id: int
    project: str
    name: str = ""

    @property
    def triple(self) -> tuple[int, int, int]:
        return (self.definition_id, self.source_run_id, self.target_run_id)


class PipelineComparisonEngine:
    def __init__(
        self,
        pipelines: PipelineProvider,
        walker: ArtifactGraphWalker,
        resolver: RangeResolver,
    ):
        self.pipelines = pipelines
        self.walker = walker
        self.resolver = resolver

    async def get_pipeline_changes(
        self,
        ctx: ComparisonContext,
        to_build_id: int,
        from_build_id: int | None = None,
    ) -> PipelineChanges:
        """Changes between two builds; without ``from_build_id`` the previous successful build is used."""
        source, target = await self.resolver.resolve_builds(ctx, to_build_id, from_build_id)
        if source is None:
            return PipelineChanges()
        return await self.compare_builds(ctx, source, target)

    async def compare_builds(self, ctx: ComparisonContext, source: Build, target: Build) -> PipelineChanges:
        result = PipelineChanges()
        root = RunPair(
            definition_id=target.definition_id,
            source_run_id=source.id,
            target_run_id=target.id,
            project=target.project or ctx.project,
            name=target.definition_name,
        )
        queue: deque[RunPair] = deque([root])
        visited: set[tuple[int, int, int]] = set()

        while queue:
            pair = queue.popleft()
            if pair.triple in visited:
                logger.warning(
                    "  Pipeline cycle detected at definition %d (%d → %d) — skipped",
                    pair.definition_id, pair.source_run_id, pair.target_run_id,
                )
                continue
            visited.add(pair.triple)

            if pair is not root and not await self._nested_target_comparable(ctx, pair):
                continue

            logger.info(
                "  Comparing pipeline %s runs %d → %d",
                pair.name or pair.definition_id, pair.source_run_id, pair.target_run_id,
            )
            source_run = await self.pipelines.get_pipeline_run_details(
                pair.project, pair.definition_id, pair.source_run_id
            )
            target_run = await self.pipelines.get_pipeline_run_details(
                pair.project, pair.definition_id, pair.target_run_id
            )

            await self._diff_repositories(
                ctx,
                await self.pipelines.get_referenced_repositories(source_run),
                await self.pipelines.get_referenced_repositories(target_run),
                pair,
                result,
            )

            for child in await self._resource_pairs(
                await self.pipelines.get_referenced_resource_pipelines(source_run),
                await self.pipelines.get_referenced_resource_pipelines(target_run),
                pair,
            ):
                queue.append(child)

        logger.info(
            "  Pipeline %d → %d: %d linked, %d unlinked across %d run pairs",
            source.id, target.id, len(result.changes), len(result.changes_without_link), len(visited),
        )
        return result

    async def _nested_target_comparable(self, ctx: ComparisonContext, pair: RunPair) -> bool:
        build = await self.pipelines.get_build(pair.project, pair.target_run_id)
        if build is None:
            logger.warning("  Resource pipeline run %d not found — skipped", pair.target_run_id)
            return False
        try:
            ensure_build_comparable(build, ctx.requested_by_build)
        except BuildNotSucceededError as err:
            logger.warning("  %s — resource pipeline %s skipped", err.message, pair.name)
            ctx.warn(err.message)
            return False
        return True

    async def _diff_repositories(
        self,
        ctx: ComparisonContext,
        source_repos: list[ResourceRepository],
        target_repos: list[ResourceRepository],
        pair: RunPair,
        result: PipelineChanges,
    ) -> None:
        by_name = {r.repo_name.lower(): r for r in source_repos}
        for target_repo in target_repos:
            source_repo = by_name.get(target_repo.repo_name.lower())
            if source_repo is None:
                logger.debug("  Repository %s is new in run %d — no baseline", target_repo.repo_name, pair.target_run_id)
                continue
            if source_repo.repo_sha1 == target_repo.repo_sha1:
                logger.debug("  Repository %s unchanged at %s", target_repo.repo_name, target_repo.repo_sha1[:12])
                continue
            repo = GitRepository(
                name=target_repo.repo_name,
                url=remove_user_from_git_repo_url(target_repo.url),
                api_url=target_repo.url,
                project=target_repo.project or pair.project,
            )
            changes = await self.walker.get_commit_range_changes(
                ctx,
                repo,
                source_repo.repo_sha1,
                VersionType.COMMIT.value,
                target_repo.repo_sha1,
                VersionType.COMMIT.value,
            )
            result.extend(changes)

    async def _resource_pairs(
        self,
        source_pipes: list[ResourcePipeline],
        target_pipes: list[ResourcePipeline],
        pair: RunPair,
    ) -> list[RunPair]:
        by_definition = {p.definition_id: p for p in source_pipes}
        by_name = {p.name.lower(): p for p in source_pipes}
        pairs: list[RunPair] = []

        for target_pipe in target_pipes:
            if target_pipe.provider.lower() != SUPPORTED_RESOURCE_PROVIDER:
                logger.debug(
                    "  Resource pipeline %s uses unsupported provider %s — skipped",
                    target_pipe.name, target_pipe.provider,
                )
                continue

            project = target_pipe.project or pair.project
            source_pipe = by_definition.get(target_pipe.definition_id) or by_name.get(target_pipe.name.lower())
            if source_pipe is not None:
                if source_pipe.run_id == target_pipe.run_id:
                    logger.debug("  Resource pipeline %s unchanged (run %d)", target_pipe.name, target_pipe.run_id)
                    continue
                source_run_id = source_pipe.run_id
            else:
                previous = await self.pipelines.find_previous_successful_build(
                    project, target_pipe.definition_id, target_pipe.run_id
                )
                if previous is None:
                    logger.debug("  Resource pipeline %s is new and has no earlier run", target_pipe.name)
                    continue
                logger.info(
                    "  Resource pipeline %s added; comparing with its previous run %d",
                    target_pipe.name, previous.id,
                )
                source_run_id = previous.id

            pairs.append(
                RunPair(
                    definition_id=target_pipe.definition_id,
                    source_run_id=source_run_id,
                    target_run_id=target_pipe.run_id,
                    project=project,
                    name=target_pipe.name,
                )
            )
        return pairs
