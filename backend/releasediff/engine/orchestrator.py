"""
ReleaseDiff — Change Aggregator.

Runs one change-set request as a state machine:

  RECEIVED → RANGE_RESOLVED → CHANGES_COLLECTED
  → SERVICES_RESOLVED → DELIVERED

Each step is timed, logged, and recorded in the ComparisonResult.
All per-request state lives in a fresh ComparisonContext; only the
injected ComparisonCache is shared between requests.
"""

from __future__ import annotations

import time
import uuid

from releasediff.core.config import settings
from releasediff.engine.cache import ComparisonCache
from releasediff.engine.commits import ArtifactGraphWalker
from releasediff.engine.context import ComparisonContext
from releasediff.engine.pipelines import PipelineComparisonEngine
from releasediff.engine.ranges import RangeResolver
from releasediff.engine.releases import ReleaseArtifactMatcher
from releasediff.engine.services import ServicesManifestResolver
from releasediff.errors import ReleaseDiffError, RepositoryNotFoundError
from releasediff.models.changes import ArtifactChangesGroup, ArtifactDescriptor
from releasediff.models.job import ComparisonResult, ComparisonState, StepTiming
from releasediff.models.request import ChangesRequest, RangeType, ResolvedRange
from releasediff.providers.base import Providers
from releasediff.utils.logging import logger


class ChangeAggregator:
    """
    State-machine orchestrator for one change-set request.

    Tracks every step's timing and status and produces a complete
    ComparisonResult.
    """

    def __init__(self, request: ChangesRequest, providers: Providers, cache: ComparisonCache):
        self.job_id = uuid.uuid4().hex[:12]
        self.request = request
        self.providers = providers
        self.state = ComparisonState.RECEIVED
        self.timings: list[StepTiming] = []
        self.ctx = ComparisonContext.create(
            project=request.team_project,
            cache=cache,
            max_changes=request.max_changes or settings.engine.max_changes,
            link_type_filter=list(request.link_type_filter),
            include_pull_requests=request.include_pull_requests,
            requested_by_build=request.requested_by_build,
            unique_work_items=request.unique_work_items,
        )

        self.resolver = RangeResolver(providers.source_control, providers.pipelines, providers.releases)
        self.walker = ArtifactGraphWalker(providers.source_control, providers.work_items)
        self.pipeline_engine = PipelineComparisonEngine(providers.pipelines, self.walker, self.resolver)
        self.matcher = ReleaseArtifactMatcher(
            providers.source_control,
            providers.artifact_repository,
            self.walker,
            self.pipeline_engine,
            self.resolver,
        )
        self.services = ServicesManifestResolver(providers.source_control, providers.releases, self.walker)

    def _record_step(self, name: str, start: float, status: str = "ok", detail: str = ""):
        ms = int((time.perf_counter() - start) * 1000)
        self.timings.append(StepTiming(step=name, duration_ms=ms, status=status, detail=detail))
        symbol = "✓" if status == "ok" else ("⊘" if status == "skipped" else "✗")
        logger.info("  %s %s — %dms %s", symbol, name, ms, detail)

    async def run(self) -> ComparisonResult:
        """Execute the comparison. Returns a complete ComparisonResult."""
        logger.info("=" * 60)
        logger.info(
            "[%s] Comparison starting (%s, project=%s)",
            self.job_id, self.request.range_type.value, self.request.team_project,
        )
        logger.info("=" * 60)
        started = time.perf_counter()

        try:
            resolved = await self._step_resolve_range()
            groups = await self._step_collect_changes(resolved)
            groups.extend(await self._step_resolve_services(resolved))
            self.state = ComparisonState.DELIVERED
        except ReleaseDiffError as exc:
            self.state = ComparisonState.FAILED
            logger.warning("[%s] Comparison failed: %s", self.job_id, exc.code)
            raise
        except Exception:
            self.state = ComparisonState.FAILED
            raise

        total = sum(g.total for g in groups)
        logger.info("=" * 60)
        logger.info(
            "[%s] Comparison complete — %d groups, %d changes, %dms",
            self.job_id, len(groups), total, int((time.perf_counter() - started) * 1000),
        )
        logger.info("=" * 60)

        return ComparisonResult(
            job_id=self.job_id,
            range_type=self.request.range_type,
            groups=groups,
            total_changes=total,
            included_work_item_ids=sorted(self.ctx.included_work_item_ids),
            timings=self.timings,
            warnings=self.ctx.warnings,
        )

    async def _step_resolve_range(self) -> ResolvedRange:
        t = time.perf_counter()
        try:
            resolved = await self.resolver.resolve(
                self.ctx,
                self.request.range_type,
                self.request.from_value,
                self.request.to_value,
                repo_id=self.request.repo_id,
                branch_name=self.request.branch_name,
            )
        except ReleaseDiffError as exc:
            self._record_step("resolve_range", t, "failed", exc.code)
            raise
        self.state = ComparisonState.RANGE_RESOLVED
        self._record_step("resolve_range", t, detail=f"{resolved.from_version} → {resolved.to_version}")
        return resolved

    async def _step_collect_changes(self, resolved: ResolvedRange) -> list[ArtifactChangesGroup]:
        t = time.perf_counter()
        try:
            if resolved.range_type == RangeType.PIPELINE:
                groups = await self._collect_pipeline(resolved)
            elif resolved.range_type == RangeType.RELEASE:
                groups = await self.matcher.compare_releases(
                    self.ctx, resolved.from_release, resolved.to_release
                )
            else:
                groups = await self._collect_repository(resolved)
        except ReleaseDiffError as exc:
            self._record_step("collect_changes", t, "failed", exc.code)
            raise
        self.state = ComparisonState.CHANGES_COLLECTED
        self._record_step(
            "collect_changes", t,
            detail=f"{len(groups)} groups, {self.ctx.budget.used} changes",
        )
        return groups

    async def _collect_repository(self, resolved: ResolvedRange) -> list[ArtifactChangesGroup]:
        repo_id = self.request.repo_id or ""
        repo = await self.providers.source_control.get_repo_by_id(self.ctx.project, repo_id)
        if repo is None:
            raise RepositoryNotFoundError(repo_id or "(none)", self.ctx.project)
        if resolved.range_type == RangeType.DATE and not resolved.commits:
            logger.info("  No commits in the date window")
            return []

        changes = await self.walker.get_commit_range_changes(
            self.ctx,
            repo,
            resolved.from_version,
            resolved.from_version_type.value,
            resolved.to_version,
            resolved.to_version_type.value,
            commits=resolved.commits,
        )
        group = ArtifactChangesGroup(
            artifact=ArtifactDescriptor(name=repo.name),
            changes=changes.linked,
            non_linked_commits=changes.unlinked,
        )
        return [group] if group.total else []

    async def _collect_pipeline(self, resolved: ResolvedRange) -> list[ArtifactChangesGroup]:
        if resolved.from_build is None:
            logger.info("  No baseline build for %d — nothing to compare", resolved.to_build.id)
            return []
        target = resolved.to_build
        changes = await self.pipeline_engine.compare_builds(self.ctx, resolved.from_build, target)
        group = ArtifactChangesGroup(
            artifact=ArtifactDescriptor(name=target.repository.name or target.definition_name),
            changes=changes.changes,
            non_linked_commits=changes.changes_without_link,
        )
        return [group] if group.total else []

    async def _step_resolve_services(self, resolved: ResolvedRange) -> list[ArtifactChangesGroup]:
        t = time.perf_counter()
        if resolved.range_type != RangeType.RELEASE or not self.request.include_services:
            reason = "disabled" if resolved.range_type == RangeType.RELEASE else "not a release comparison"
            self.state = ComparisonState.SERVICES_RESOLVED
            self._record_step("resolve_services", t, "skipped", reason)
            return []

        groups = await self.services.compare_services(self.ctx, resolved.from_release, resolved.to_release)
        self.state = ComparisonState.SERVICES_RESOLVED
        self._record_step("resolve_services", t, detail=f"{len(groups)} service groups")
        return groups
