"""
ReleaseDiff — Commit range walker.

Given a repository and a (from, to) version pair, fetches the commit
batch, resolves each commit's work items, and follows submodule pointer
moves into the submodules' own repositories.

Submodules are walked with an explicit FIFO worklist and a visited set
of (repository, from, to) keys, so a submodule graph that points back
at itself terminates and output order is: the repository's own
entries, then each submodule in discovery order.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

from releasediff.engine.cache import make_compare_key
from releasediff.engine.context import ComparisonContext
from releasediff.errors import CommitFetchError, ReleaseDiffError
from releasediff.models.azure import Commit, GitRepository
from releasediff.models.changes import (
    ChangeEntry,
    CommitRangeChanges,
    NonLinkedCommit,
    TargetRepoInfo,
)
from releasediff.models.request import VersionType
from releasediff.providers.base import SourceControlProvider, WorkItemProvider
from releasediff.utils.logging import logger
from releasediff.utils.refs import remove_user_from_git_repo_url

GIT_ARTIFACT = "Git"


@dataclass
class _WalkItem:
    repo: GitRepository
    from_version: str
    from_type: str
    to_version: str
    to_type: str
    submodule_name: str | None = None
    path_filter: str | None = None
    commits: list[Commit] | None = None

    @property
    def visit_key(self) -> tuple[str, str, str]:
        return (self.repo.key, self.from_version, self.to_version)

    @property
    def label(self) -> str:
        return f"submodule {self.submodule_name}" if self.submodule_name else self.repo.name


class ArtifactGraphWalker:
    def __init__(self, source_control: SourceControlProvider, work_items: WorkItemProvider):
        self.source_control = source_control
        self.work_items = work_items

    async def get_commit_range_changes(
        self,
        ctx: ComparisonContext,
        repo: GitRepository,
        from_version: str,
        from_type: str,
        to_version: str,
        to_type: str,
        submodule_name: str | None = None,
        path_filter: str | None = None,
        commits: list[Commit] | None = None,
    ) -> CommitRangeChanges:
        """
        Changes between two versions of ``repo`` and of every submodule
        whose pointer moved in between.

        A failure fetching ``repo``'s own commits is fatal. A failing
        submodule is logged and contributes nothing; its siblings are
        still walked. ``commits`` short-circuits the batch fetch for
        callers that already hold the commit list (date windows).
        """
        root = _WalkItem(
            repo=repo,
            from_version=str(from_version),
            from_type=str(from_type),
            to_version=str(to_version),
            to_type=str(to_type),
            submodule_name=submodule_name,
            path_filter=path_filter,
            commits=commits,
        )
        queue: deque[_WalkItem] = deque([root])
        visited: set[tuple[str, str, str]] = set()
        linked: list[ChangeEntry] = []
        unlinked: list[NonLinkedCommit] = []

        while queue:
            item = queue.popleft()
            if item.visit_key in visited:
                logger.warning(
                    "  Submodule cycle at %s (%s..%s) — skipped",
                    item.label, item.from_version[:12], item.to_version[:12],
                )
                continue
            visited.add(item.visit_key)

            try:
                raw = await self.compare_range(ctx, item)
            except ReleaseDiffError:
                raise
            except Exception as exc:
                if item is root:
                    raise CommitFetchError(repo.name, item.from_version, item.to_version, str(exc)) from exc
                logger.error("  Failed diffing %s: %s — skipped", item.label, exc)
                ctx.warn(f"{item.label}: diff failed ({exc})")
                continue

            item_linked, item_unlinked = self._emit(ctx, raw, item)
            linked.extend(item_linked)
            unlinked.extend(item_unlinked)
            logger.info(
                "  %s: %d linked, %d unlinked (%s..%s)",
                item.label, len(item_linked), len(item_unlinked),
                item.from_version[:12], item.to_version[:12],
            )

            if item.path_filter:
                continue
            for child in await self._submodule_items(ctx, item):
                queue.append(child)

        return CommitRangeChanges(linked=linked, unlinked=unlinked)

    async def compare_range(self, ctx: ComparisonContext, item: _WalkItem) -> CommitRangeChanges:
        """
        Raw linked/unlinked split of one range.

        Only a SHA..SHA batch is memoised across requests. A branch or tag
        can move between requests, and a date window depends on the commit
        list fetched for it, so those are memoised for this request only.
        """
        artifact_key = (
            f"{item.repo.key}:{item.path_filter or '/'}:pr={int(ctx.include_pull_requests)}"
        )
        if item.commits is not None:
            # A prefetched window includes its oldest commit; a ranged batch does not
            artifact_key += ":window"
        key = make_compare_key(GIT_ARTIFACT, ctx.project, item.from_version, item.to_version, artifact_key)

        async def compute() -> CommitRangeChanges:
            if item.commits is not None:
                batch = item.commits
            else:
                batch = await self.source_control.get_commit_batch(
                    item.repo.api_url or item.repo.url,
                    item.from_version,
                    item.from_type,
                    item.to_version,
                    item.to_type,
                    item.path_filter,
                )
            return await self._resolve_work_items(ctx, item.repo, batch)

        pinned = (
            item.commits is None
            and item.from_type == VersionType.COMMIT.value
            and item.to_type == VersionType.COMMIT.value
        )
        cache = ctx.cache if pinned else ctx.request_cache
        return await cache.get_or_compute(key, compute)

    async def _resolve_work_items(
        self, ctx: ComparisonContext, repo: GitRepository, batch: list[Commit]
    ) -> CommitRangeChanges:
        project = repo.project or ctx.project
        linked: list[ChangeEntry] = []
        unlinked: list[NonLinkedCommit] = []

        for commit in batch:
            work_items = await self.work_items.get_work_items_for_commit(project, repo, commit)
            if not work_items:
                unlinked.append(NonLinkedCommit.from_commit(commit))
                continue
            for work_item in work_items:
                linked.append(
                    ChangeEntry(commit=commit, work_item=work_item, linked_items=work_item.relations)
                )

        if ctx.include_pull_requests and batch:
            pull_requests = await self.source_control.get_pull_requests_for_commits(project, repo, batch)
            linked.extend(ChangeEntry(pull_request=pr) for pr in pull_requests)

        return CommitRangeChanges(linked=linked, unlinked=unlinked)

    def _emit(
        self, ctx: ComparisonContext, raw: CommitRangeChanges, item: _WalkItem
    ) -> tuple[list[ChangeEntry], list[NonLinkedCommit]]:
        """Apply request-scoped dedup and annotations to a (shared) cached result."""
        repo_key = f"{item.repo.project or ctx.project}/{item.repo.name}".lower()
        target = TargetRepoInfo(
            repo_name=item.repo.name,
            git_sub_module_name=item.submodule_name,
            url=remove_user_from_git_repo_url(item.repo.url),
            project_id=item.repo.project,
        )
        linked = [
            entry.model_copy(
                update={
                    "target_repo": target,
                    "linked_items": ctx.filter_links(entry.linked_items),
                    "repo_key": repo_key,
                }
            )
            for entry in raw.linked
        ]
        linked = [entry for entry in linked if ctx.dedup.claim(entry)]
        unlinked = [commit.model_copy(update={"repo_key": repo_key}) for commit in raw.unlinked]
        unlinked = [commit for commit in unlinked if ctx.dedup.claim_unlinked(commit)]
        ctx.count_changes(len(linked) + len(unlinked))
        return linked, unlinked

    async def _submodule_items(self, ctx: ComparisonContext, item: _WalkItem) -> list[_WalkItem]:
        try:
            changes = await self.source_control.get_submodule_changes(
                ctx.project, item.repo, item.from_version, item.from_type, item.to_version, item.to_type
            )
        except ReleaseDiffError:
            raise
        except Exception as exc:
            logger.error("  Could not read submodules of %s: %s", item.label, exc)
            ctx.warn(f"{item.label}: submodule lookup failed ({exc})")
            return []

        children: list[_WalkItem] = []
        for change in changes:
            if change.source_sha == change.target_sha:
                continue
            name = f"{item.submodule_name}/{change.name}" if item.submodule_name else change.name
            children.append(
                _WalkItem(
                    repo=change.repository,
                    from_version=change.source_sha,
                    from_type=VersionType.COMMIT.value,
                    to_version=change.target_sha,
                    to_type=VersionType.COMMIT.value,
                    submodule_name=name,
                )
            )
        return children
