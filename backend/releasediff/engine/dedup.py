"""
ReleaseDiff — Duplicate suppression across traversal paths.

The same commit can be reached twice in one request (a repository
listed directly and again as another repository's submodule, or two
services sharing a path). A (repository, commit, work item) triple is
emitted once; distinct work items of one commit are independent facts
and all kept. The same SHA in two different repositories (a fork or a
mirror) is two facts.
"""

from __future__ import annotations

from releasediff.models.changes import ChangeEntry, NonLinkedCommit

PairKey = tuple[str, str, str, int | None]


class DedupTracker:
    """
    Remembers which change entries and unlinked commits were emitted.

    Entries are scoped by their ``repo_key``, stamped by the walker.
    ``included_ids`` is the request's included-work-item set; it is
    shared by reference so every tracker of one request fills the same set.
    With ``unique_work_items`` a work item is emitted at most once even
    when several commits resolve to it.
    """

    def __init__(self, included_ids: set[int] | None = None, unique_work_items: bool = False):
        self.included_ids: set[int] = included_ids if included_ids is not None else set()
        self.unique_work_items = unique_work_items
        self._pairs: set[PairKey] = set()
        self._unlinked: set[tuple[str, str]] = set()

    @staticmethod
    def pair_key(entry: ChangeEntry) -> PairKey:
        wi_id = entry.work_item_id
        if entry.commit is not None:
            return ("commit", entry.repo_key, entry.commit.commit_id, wi_id)
        if entry.pull_request is not None:
            return ("pr", entry.repo_key, str(entry.pull_request.pull_request_id), wi_id)
        return ("wi", "", "", wi_id)

    def claim(self, entry: ChangeEntry) -> bool:
        """Record ``entry``; False when it was already emitted."""
        key = self.pair_key(entry)
        if key in self._pairs:
            return False
        wi_id = entry.work_item_id
        if self.unique_work_items and wi_id is not None and wi_id in self.included_ids:
            return False
        self._pairs.add(key)
        if wi_id is not None:
            self.included_ids.add(wi_id)
        return True

    def claim_unlinked(self, commit: NonLinkedCommit) -> bool:
        key = (commit.repo_key, commit.commit_id)
        if key in self._unlinked:
            return False
        self._unlinked.add(key)
        return True

    def __len__(self) -> int:
        return len(self._pairs) + len(self._unlinked)
