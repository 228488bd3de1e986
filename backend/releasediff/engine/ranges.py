"""
ReleaseDiff — Range resolution.

Maps one of the five range-selection modes onto provider-level version
descriptors. Every failure here is fatal: an unresolvable reference
means there is nothing meaningful to compare.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from releasediff.engine.context import ComparisonContext
from releasediff.errors import BuildNotSucceededError, RangeResolutionError
from releasediff.models.azure import Build, Release
from releasediff.models.request import RangeType, RefSpec, ResolvedRange, VersionType
from releasediff.providers.base import PipelineProvider, ReleaseProvider, SourceControlProvider
from releasediff.utils.logging import logger
from releasediff.utils.refs import ceil_to_minute_end, floor_to_minute, short_ref_name


def ensure_build_comparable(build: Build, requested_by_build: bool) -> None:
    """
    A target build must have succeeded. When the comparison was requested
    by the build itself it is still running, so only a canceled build is
    rejected.
    """
    if requested_by_build:
        if build.canceled:
            raise BuildNotSucceededError(build.id, build.result or build.status)
        return
    if not build.succeeded:
        raise BuildNotSucceededError(build.id, build.result or build.status)


def _as_int(range_type: RangeType, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise RangeResolutionError(range_type.value, value, "expected a numeric id")


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise RangeResolutionError(RangeType.DATE.value, value, "expected an ISO-8601 timestamp")


def _as_refspec(value: Any) -> RefSpec:
    if isinstance(value, RefSpec):
        return value
    if isinstance(value, dict):
        return RefSpec(**value)
    if isinstance(value, str) and value:
        return RefSpec(ref=value)
    raise RangeResolutionError(RangeType.RANGE.value, value, "expected {ref, type}")


class RangeResolver:
    def __init__(
        self,
        source_control: SourceControlProvider,
        pipelines: PipelineProvider,
        releases: ReleaseProvider,
    ):
        self.source_control = source_control
        self.pipelines = pipelines
        self.releases = releases

    async def resolve(
        self,
        ctx: ComparisonContext,
        range_type: RangeType,
        from_value: Any,
        to_value: Any,
        repo_id: str | None = None,
        branch_name: str | None = None,
    ) -> ResolvedRange:
        logger.info("  Resolving %s range: %s → %s", range_type.value, from_value, to_value)

        if range_type == RangeType.COMMIT_SHA:
            if not from_value or not to_value:
                raise RangeResolutionError(range_type.value, from_value or to_value, "both commit ids are required")
            return ResolvedRange(
                range_type=range_type,
                from_version=str(from_value),
                to_version=str(to_value),
                from_version_type=VersionType.COMMIT,
                to_version_type=VersionType.COMMIT,
            )

        if range_type == RangeType.RANGE:
            src = _as_refspec(from_value)
            dst = _as_refspec(to_value)
            return ResolvedRange(
                range_type=range_type,
                from_version=short_ref_name(src.ref),
                to_version=short_ref_name(dst.ref),
                from_version_type=src.type,
                to_version_type=dst.type,
            )

        if range_type == RangeType.DATE:
            return await self._resolve_dates(ctx, from_value, to_value, repo_id, branch_name)

        if range_type == RangeType.PIPELINE:
            from_id = _as_int(range_type, from_value) if from_value else None
            source, target = await self.resolve_builds(ctx, _as_int(range_type, to_value), from_id)
            return ResolvedRange(
                range_type=range_type,
                from_version=str(source.id) if source else "",
                to_version=str(target.id),
                from_version_type=VersionType.COMMIT,
                to_version_type=VersionType.COMMIT,
                from_build=source,
                to_build=target,
            )

        if range_type == RangeType.RELEASE:
            from_release = await self.get_release(ctx, _as_int(range_type, from_value))
            to_release = await self.get_release(ctx, _as_int(range_type, to_value))
            return ResolvedRange(
                range_type=range_type,
                from_version=str(from_release.id),
                to_version=str(to_release.id),
                from_version_type=VersionType.COMMIT,
                to_version_type=VersionType.COMMIT,
                from_release=from_release,
                to_release=to_release,
            )

        raise RangeResolutionError(str(range_type), from_value, "unknown range type")

    async def _resolve_dates(
        self,
        ctx: ComparisonContext,
        from_value: Any,
        to_value: Any,
        repo_id: str | None,
        branch_name: str | None,
    ) -> ResolvedRange:
        if not repo_id:
            raise RangeResolutionError(RangeType.DATE.value, to_value, "a repository is required")
        if not branch_name:
            raise RangeResolutionError(RangeType.DATE.value, to_value, "a target branch is required")

        start = floor_to_minute(_as_datetime(from_value))
        end = ceil_to_minute_end(_as_datetime(to_value))
        commits = await self.source_control.get_commits_in_date_range(
            ctx.project, repo_id, start.isoformat(), end.isoformat(), short_ref_name(branch_name)
        )
        logger.info("  %d commits on %s between %s and %s", len(commits), branch_name, start, end)

        if commits:
            dated = [c for c in commits if c.committer.date is not None]
            ordered = sorted(dated, key=lambda c: c.committer.date) if dated else commits
            oldest = ordered[0]
            # Submodule diffs run from the oldest commit's parent so its own bump is seen
            from_version = oldest.parents[0] if oldest.parents else oldest.commit_id
            to_version = ordered[-1].commit_id
        else:
            from_version, to_version = start.isoformat(), end.isoformat()

        return ResolvedRange(
            range_type=RangeType.DATE,
            from_version=from_version,
            to_version=to_version,
            from_version_type=VersionType.COMMIT if commits else VersionType.DATE,
            to_version_type=VersionType.COMMIT if commits else VersionType.DATE,
            commits=commits,
        )

    async def resolve_builds(
        self,
        ctx: ComparisonContext,
        to_build_id: int,
        from_build_id: int | None = None,
    ) -> tuple[Build | None, Build]:
        """
        Fetch the target build (which must be comparable) and the source
        build. Without a source id, the nearest previous successful build
        of the same definition is used; None when there is none.
        """
        target = await self.pipelines.get_build(ctx.project, to_build_id)
        if target is None:
            raise RangeResolutionError(RangeType.PIPELINE.value, to_build_id, "build not found")
        ensure_build_comparable(target, ctx.requested_by_build)

        if from_build_id:
            source = await self.pipelines.get_build(ctx.project, from_build_id)
            if source is None:
                raise RangeResolutionError(RangeType.PIPELINE.value, from_build_id, "build not found")
        else:
            source = await self.pipelines.find_previous_successful_build(
                ctx.project, target.definition_id, target.id
            )
            if source is None:
                logger.info("  No previous successful build before %d", target.id)
            else:
                logger.info("  Previous successful build of %d is %d", target.id, source.id)
        return source, target

    async def get_release(self, ctx: ComparisonContext, release_id: int) -> Release:
        release = await self.releases.get_release(ctx.project, release_id)
        if release is None:
            raise RangeResolutionError(RangeType.RELEASE.value, release_id, "release not found")
        logger.info("  Release %d (%s): %d artifacts", release.id, release.name, len(release.artifacts))
        return release
