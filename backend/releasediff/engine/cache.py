"""
ReleaseDiff — Pairwise comparison cache.

Memoises the raw result of comparing two versions of one artifact.
The cache is pure memoisation: entries may be evicted at any time and
are never a source of truth. It lives for the whole process and is
shared by every request, so values are stored before any
request-scoped filtering (dedup, link-type filters) is applied.

Concurrency: all access happens on one event loop, so dict reads and
writes are atomic. Two branches racing on the same key both compute
it; the last write wins and both values are identical.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable
from urllib.parse import quote

from releasediff.models.changes import CommitRangeChanges
from releasediff.utils.logging import logger


@dataclass(frozen=True)
class CompareCacheKey:
    artifact_type: str
    project: str
    from_version: str
    to_version: str
    artifact_key: str

    def __str__(self) -> str:
        # Each part is percent-encoded so '|' inside a ref cannot collide
        parts = (self.artifact_type, self.project, self.from_version, self.to_version, self.artifact_key)
        return "|".join(quote(p, safe="") for p in parts)


def make_compare_key(
    artifact_type: str,
    project: str,
    from_version: str,
    to_version: str,
    artifact_key: str,
) -> CompareCacheKey:
    """
    Build the composite cache key for one pairwise comparison.

    ``artifact_type`` keeps Git ranges and pipeline pairs with equal
    version strings apart; ``artifact_key`` identifies the artifact
    within its type (repository + path filter for Git).
    Project and artifact key are case-insensitive in Azure DevOps.
    """
    return CompareCacheKey(
        artifact_type=artifact_type,
        project=project.lower(),
        from_version=str(from_version),
        to_version=str(to_version),
        artifact_key=artifact_key.lower(),
    )


class ComparisonCache:
    """Bounded FIFO map of CompareCacheKey → CommitRangeChanges."""

    def __init__(self, max_entries: int = 2048):
        self.max_entries = max_entries
        self._entries: dict[CompareCacheKey, CommitRangeChanges] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CompareCacheKey) -> bool:
        return key in self._entries

    def get(self, key: CompareCacheKey) -> CommitRangeChanges | None:
        return self._entries.get(key)

    def put(self, key: CompareCacheKey, value: CommitRangeChanges) -> None:
        self._entries[key] = value
        while len(self._entries) > self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]

    async def get_or_compute(
        self,
        key: CompareCacheKey,
        compute: Callable[[], Awaitable[CommitRangeChanges]],
    ) -> CommitRangeChanges:
        """Return the cached entry (by reference) or compute and store it."""
        cached = self._entries.get(key)
        if cached is not None:
            self.hits += 1
            logger.debug("  cache hit %s", key)
            return cached
        self.misses += 1
        value = await compute()
        self.put(key, value)
        return value

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0
