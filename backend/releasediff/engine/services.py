"""
ReleaseDiff — Services manifest resolution.

A release can point at a services.json file (via its ``servicesJson*``
variables) listing the services it ships and where each one lives in
git. For every (service, path) the resolver picks a tag range, or a
branch range when the tags are missing, and collects the path-filtered
changes between the two releases.

Each collected commit is attributed to the first release in the
definition's history whose ref contains it, so a multi-release span
reads as a changelog.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, ValidationError

from releasediff.core.config import settings
from releasediff.engine.commits import ArtifactGraphWalker
from releasediff.engine.context import ComparisonContext
from releasediff.errors import ChangeLimitExceededError, ServicesManifestError
from releasediff.models.azure import GitRepository, Release
from releasediff.models.changes import (
    ArtifactChangesGroup,
    ArtifactDescriptor,
    CamelModel,
    ChangeEntry,
    NonLinkedCommit,
)
from releasediff.models.request import VersionType
from releasediff.providers.base import ReleaseProvider, SourceControlProvider
from releasediff.utils.logging import logger, step_timer
from releasediff.utils.refs import parse_git_url, split_paths

SERVICES_JSON = "servicesJson"
SERVICES_JSON_VERSION = "servicesJsonVersion"
SERVICES_JSON_VERSION_TYPE = "servicesJsonVersionType"
SERVICES_JSON_TAG_PREFIX = "servicesJsonTagPrefix"
SERVICES_JSON_BRANCH_PREFIX = "servicesJsonBranchPrefix"


class ServiceLocation(CamelModel):
    git_repo_url: str = Field(min_length=1)
    path_in_git: str | list[str] = ""


class ServiceEntry(CamelModel):
    service_name: str = Field(min_length=1)
    service_location: ServiceLocation


class ServicesManifest(CamelModel):
    services: list[ServiceEntry] = Field(default_factory=list)


class ServiceRange(CamelModel):
    """The refs one service path is compared between."""

    from_ref: str
    to_ref: str
    version_type: VersionType


class ServicesManifestResolver:
    def __init__(
        self,
        source_control: SourceControlProvider,
        releases: ReleaseProvider,
        walker: ArtifactGraphWalker,
    ):
        self.source_control = source_control
        self.releases = releases
        self.walker = walker

    async def compare_services(
        self, ctx: ComparisonContext, from_release: Release, to_release: Release
    ) -> list[ArtifactChangesGroup]:
        variables = to_release.variables
        if not variables.get(SERVICES_JSON):
            logger.debug("  Release %s has no services manifest", to_release.name)
            return []

        try:
            manifest = await self.load_manifest(ctx, variables)
        except ServicesManifestError as err:
            logger.warning("  %s — services skipped", err.message)
            ctx.warn(err.message)
            return []

        tag_prefix = variables.get(SERVICES_JSON_TAG_PREFIX, "")
        branch_prefix = variables.get(SERVICES_JSON_BRANCH_PREFIX) or settings.engine.services_branch_prefix
        timeline = await self._release_timeline(ctx, from_release, to_release)
        services_ctx = ctx.with_fresh_dedup()

        groups: list[ArtifactChangesGroup] = []
        for service in manifest.services:
            try:
                with step_timer(f"service {service.service_name}"):
                    groups.extend(
                        await self._compare_service(
                            services_ctx, service, from_release, timeline, tag_prefix, branch_prefix
                        )
                    )
            except ChangeLimitExceededError:
                raise
            except Exception as exc:
                logger.error("  Service %s failed: %s — skipped", service.service_name, exc)
                ctx.warn(f"service {service.service_name}: {exc}")

        logger.info("  Services: %d groups from %d services", len(groups), len(manifest.services))
        return groups

    async def load_manifest(self, ctx: ComparisonContext, variables: dict[str, str]) -> ServicesManifest:
        url = variables[SERVICES_JSON]
        try:
            location = parse_git_url(url)
        except ValueError as exc:
            raise ServicesManifestError(url, str(exc))
        if not location.path:
            raise ServicesManifestError(url, "no ?path= to the manifest file")

        version = variables.get(SERVICES_JSON_VERSION, "")
        version_type = variables.get(SERVICES_JSON_VERSION_TYPE, VersionType.BRANCH.value)
        content = await self.source_control.get_file_contents(
            location.project or ctx.project, location.repo_name, location.path, version, version_type
        )
        if not content:
            raise ServicesManifestError(url, f"file not found at {version_type} '{version}'")
        try:
            return ServicesManifest.model_validate_json(content)
        except ValidationError as exc:
            raise ServicesManifestError(url, f"{exc.error_count()} validation errors")

    async def _compare_service(
        self,
        ctx: ComparisonContext,
        service: ServiceEntry,
        from_release: Release,
        timeline: list[Release],
        tag_prefix: str,
        branch_prefix: str,
    ) -> list[ArtifactChangesGroup]:
        to_release = timeline[-1]
        location = parse_git_url(service.service_location.git_repo_url)
        repo = await self.source_control.get_repo_by_name(location.project or ctx.project, location.repo_name)
        if repo is None:
            logger.warning("  Service %s: repository %s not found — skipped", service.service_name, location.repo_name)
            ctx.warn(f"service {service.service_name}: repository {location.repo_name} not found")
            return []

        service_range = await self.select_range(
            repo, from_release.name, to_release.name, tag_prefix, branch_prefix
        )
        if service_range is None:
            logger.debug("  Service %s: no branches available for fallback", service.service_name)
            return []

        paths = split_paths(service.service_location.path_in_git) or [""]
        groups: list[ArtifactChangesGroup] = []
        for path in paths:
            if path and not await self._path_exists(repo, path, service_range):
                logger.debug("  Service %s: path %s missing at one end — skipped", service.service_name, path)
                continue

            changes = await self.walker.get_commit_range_changes(
                ctx,
                repo,
                service_range.from_ref,
                service_range.version_type.value,
                service_range.to_ref,
                service_range.version_type.value,
                path_filter=path or None,
            )
            owners = await self._attribute_commits(
                repo, path, from_release, timeline, service_range.version_type, tag_prefix, branch_prefix
            )
            order = {r.id: i for i, r in enumerate(timeline)}

            def release_for(commit_id: str | None) -> Release:
                return owners.get(commit_id or "", to_release)

            linked = sorted(
                (_stamp(e, release_for(e.commit_id)) for e in changes.linked),
                key=lambda e: order.get(release_for(e.commit_id).id, len(order)),
            )
            unlinked = sorted(
                (_stamp(c, release_for(c.commit_id)) for c in changes.unlinked),
                key=lambda c: order.get(release_for(c.commit_id).id, len(order)),
            )

            name = service.service_name if len(paths) == 1 else f"{service.service_name} ({path})"
            group = ArtifactChangesGroup(
                artifact=ArtifactDescriptor(name=name), changes=linked, non_linked_commits=unlinked
            )
            if group.total:
                groups.append(group)
        return groups

    async def select_range(
        self,
        repo: GitRepository,
        from_name: str,
        to_name: str,
        tag_prefix: str,
        branch_prefix: str,
    ) -> ServiceRange | None:
        """Tag range when both release tags exist, else branch range, else None."""
        api_url = repo.api_url or repo.url
        from_tag, to_tag = f"{tag_prefix}{from_name}", f"{tag_prefix}{to_name}"
        if await self.source_control.get_tag_ref(api_url, from_tag) and await self.source_control.get_tag_ref(
            api_url, to_tag
        ):
            return ServiceRange(from_ref=from_tag, to_ref=to_tag, version_type=VersionType.TAG)

        from_branch, to_branch = f"{branch_prefix}{from_name}", f"{branch_prefix}{to_name}"
        if await self.source_control.get_branch_ref(
            api_url, from_branch
        ) and await self.source_control.get_branch_ref(api_url, to_branch):
            logger.debug("  %s: tags %s/%s missing, using branches", repo.name, from_tag, to_tag)
            return ServiceRange(from_ref=from_branch, to_ref=to_branch, version_type=VersionType.BRANCH)
        return None

    async def _path_exists(self, repo: GitRepository, path: str, service_range: ServiceRange) -> bool:
        api_url = repo.api_url or repo.url
        version_type = service_range.version_type.value
        for ref in (service_range.from_ref, service_range.to_ref):
            if not await self.source_control.check_path_exists(api_url, path, ref, version_type):
                return False
        return True

    async def _release_timeline(
        self, ctx: ComparisonContext, from_release: Release, to_release: Release
    ) -> list[Release]:
        """Releases after ``from_release`` up to and including ``to_release``, oldest first."""
        if to_release.release_definition_id is None or from_release.created_on is None or to_release.created_on is None:
            return [to_release]

        history = await self.releases.get_release_history(ctx.project, to_release.release_definition_id)
        between = [
            r for r in history
            if r.created_on is not None
            and from_release.created_on < r.created_on <= to_release.created_on
            and r.id != to_release.id
        ]
        between.sort(key=lambda r: r.created_on)
        return between + [to_release]

    async def _attribute_commits(
        self,
        repo: GitRepository,
        path: str,
        from_release: Release,
        timeline: list[Release],
        version_type: VersionType,
        tag_prefix: str,
        branch_prefix: str,
    ) -> dict[str, Release]:
        """Map commit id → the earliest release in ``timeline`` whose ref introduced it."""
        if len(timeline) < 2:
            return {}

        prefix = tag_prefix if version_type == VersionType.TAG else branch_prefix
        lookup = self.source_control.get_tag_ref if version_type == VersionType.TAG else self.source_control.get_branch_ref
        api_url = repo.api_url or repo.url

        owners: dict[str, Release] = {}
        previous_ref = f"{prefix}{from_release.name}"
        for release in timeline:
            ref = f"{prefix}{release.name}"
            if not await lookup(api_url, ref):
                # Commits of a release without a ref roll into the next one
                continue
            batch = await self.source_control.get_commit_batch(
                api_url, previous_ref, version_type.value, ref, version_type.value, path or None
            )
            for commit in batch:
                owners.setdefault(commit.commit_id, release)
            previous_ref = ref
        return owners


def _stamp(item: ChangeEntry | NonLinkedCommit, release: Release):
    run_date: datetime | None = release.created_on
    return item.model_copy(update={"release_version": release.name, "release_run_date": run_date})
