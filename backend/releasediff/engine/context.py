"""
ReleaseDiff — Per-request comparison context.

Created once per top-level request and passed explicitly through every
engine call. Nothing here is stored at module scope; only the
ComparisonCache in ``cache`` outlives the request. ``request_cache``
holds ranges whose ends are movable refs (branches, tags, date
windows) and is dropped with the context.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field

from releasediff.engine.cache import ComparisonCache
from releasediff.engine.dedup import DedupTracker
from releasediff.errors import ChangeLimitExceededError
from releasediff.models.changes import ArtifactChangesGroup, LinkedItemRelation

REQUEST_CACHE_ENTRIES = 256


@dataclass
class ChangeBudget:
    """Running count of emitted changes against the request maximum."""
    limit: int
    used: int = 0

    def spend(self, count: int) -> None:
        self.used += count
        if self.used > self.limit:
            raise ChangeLimitExceededError(self.used, self.limit)


@dataclass
class ComparisonContext:
    project: str
    cache: ComparisonCache
    budget: ChangeBudget
    included_work_item_ids: set[int] = field(default_factory=set)
    dedup: DedupTracker | None = None
    link_type_filter: list[str] = field(default_factory=list)
    include_pull_requests: bool = False
    requested_by_build: bool = False
    unique_work_items: bool = False
    visited_release_pairs: set[tuple[int, int]] = field(default_factory=set)
    warnings: list[str] = field(default_factory=list)
    request_cache: ComparisonCache = field(default_factory=lambda: ComparisonCache(REQUEST_CACHE_ENTRIES))

    def __post_init__(self):
        if self.dedup is None:
            self.dedup = DedupTracker(self.included_work_item_ids, self.unique_work_items)

    @classmethod
    def create(
        cls,
        project: str,
        cache: ComparisonCache,
        max_changes: int,
        **options,
    ) -> ComparisonContext:
        return cls(project=project, cache=cache, budget=ChangeBudget(limit=max_changes), **options)

    def with_fresh_dedup(self) -> ComparisonContext:
        """Child context with its own dedup scope; budget and work-item set are shared."""
        return dataclasses.replace(
            self,
            dedup=DedupTracker(self.included_work_item_ids, self.unique_work_items),
        )

    def isolated(self) -> ComparisonContext:
        """
        Child context for one branch of a concurrent fan-out.

        Dedup, included ids and budget start from a private copy, so the
        branch can run in any order against its siblings. Its groups are
        then replayed into this context with ``admit`` in a fixed order.
        Caches, warnings and the release cycle guard stay shared.
        """
        ids = set(self.included_work_item_ids)
        return dataclasses.replace(
            self,
            budget=ChangeBudget(limit=self.budget.limit, used=self.budget.used),
            included_work_item_ids=ids,
            dedup=DedupTracker(ids, self.unique_work_items),
        )

    def admit(self, group: ArtifactChangesGroup) -> ArtifactChangesGroup:
        """Apply this context's dedup and budget to a group built in an isolated child."""
        changes = [entry for entry in group.changes if self.dedup.claim(entry)]
        unlinked = [commit for commit in group.non_linked_commits if self.dedup.claim_unlinked(commit)]
        self.count_changes(len(changes) + len(unlinked))
        return group.model_copy(update={"changes": changes, "non_linked_commits": unlinked})

    def count_changes(self, count: int) -> None:
        if count:
            self.budget.spend(count)

    def filter_links(self, relations: list[LinkedItemRelation]) -> list[LinkedItemRelation]:
        if not self.link_type_filter:
            return list(relations)
        wanted = {t.lower() for t in self.link_type_filter}
        return [r for r in relations if r.relation_type.lower() in wanted]

    def warn(self, message: str) -> None:
        self.warnings.append(message)
