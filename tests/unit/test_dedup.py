"""Unit tests for change deduplication and the change budget."""

import pytest
from releasediff.engine.context import ChangeBudget
from releasediff.engine.dedup import DedupTracker
from releasediff.errors import ChangeLimitExceededError
from releasediff.models import ArtifactChangesGroup, ArtifactDescriptor, ChangeEntry, NonLinkedCommit, PullRequestInfo
from fakes import make_commit, make_work_item


class TestDedupTracker:
    def test_same_pair_claimed_once(self):
        tracker = DedupTracker()
        entry = ChangeEntry(commit=make_commit("a"), work_item=make_work_item(1))
        assert tracker.claim(entry)
        assert not tracker.claim(entry.model_copy())

    def test_distinct_work_items_of_one_commit_kept(self):
        tracker = DedupTracker()
        commit = make_commit("a")
        assert tracker.claim(ChangeEntry(commit=commit, work_item=make_work_item(1)))
        assert tracker.claim(ChangeEntry(commit=commit, work_item=make_work_item(2)))
        assert tracker.included_ids == {1, 2}

    def test_work_item_reached_by_two_commits(self):
        tracker = DedupTracker()
        assert tracker.claim(ChangeEntry(commit=make_commit("a"), work_item=make_work_item(1)))
        assert tracker.claim(ChangeEntry(commit=make_commit("b"), work_item=make_work_item(1)))

    def test_unique_work_items_mode(self):
        tracker = DedupTracker(unique_work_items=True)
        assert tracker.claim(ChangeEntry(commit=make_commit("a"), work_item=make_work_item(1)))
        assert not tracker.claim(ChangeEntry(commit=make_commit("b"), work_item=make_work_item(1)))

    def test_pull_request_key(self):
        tracker = DedupTracker()
        pr = ChangeEntry(pull_request=PullRequestInfo(pull_request_id=9), repo_key="proj/app")
        assert tracker.pair_key(pr) == ("pr", "proj/app", "9", None)
        assert tracker.claim(pr)
        assert not tracker.claim(pr)

    def test_unlinked(self):
        tracker = DedupTracker()
        assert tracker.claim_unlinked(NonLinkedCommit(commit_id="a"))
        assert not tracker.claim_unlinked(NonLinkedCommit(commit_id="a"))
        assert len(tracker) == 1

    def test_same_sha_in_two_repositories(self):
        tracker = DedupTracker()
        wi = make_work_item(1)
        assert tracker.claim(ChangeEntry(commit=make_commit("a"), work_item=wi, repo_key="proj/app"))
        assert tracker.claim(ChangeEntry(commit=make_commit("a"), work_item=wi, repo_key="proj/fork"))
        assert tracker.claim_unlinked(NonLinkedCommit(commit_id="b", repo_key="proj/app"))
        assert tracker.claim_unlinked(NonLinkedCommit(commit_id="b", repo_key="proj/fork"))

    def test_repo_key_not_serialised(self):
        entry = NonLinkedCommit(commit_id="a", repo_key="proj/app")
        assert "repoKey" not in entry.model_dump(by_alias=True)
        assert "repo_key" not in entry.model_dump()

    def test_shared_included_set(self):
        shared: set[int] = set()
        first, second = DedupTracker(shared), DedupTracker(shared)
        first.claim(ChangeEntry(commit=make_commit("a"), work_item=make_work_item(1)))
        second.claim(ChangeEntry(commit=make_commit("b"), work_item=make_work_item(2)))
        assert shared == {1, 2}


class TestChangeBudget:
    def test_within_limit(self):
        budget = ChangeBudget(limit=3)
        budget.spend(3)
        assert budget.used == 3

    def test_exceeding_limit(self):
        budget = ChangeBudget(limit=3)
        budget.spend(2)
        with pytest.raises(ChangeLimitExceededError) as err:
            budget.spend(2)
        assert err.value.detail == {"count": 4, "limit": 3}


class TestComparisonContext:
    def test_fresh_dedup_shares_budget_and_ids(self, make_ctx):
        ctx = make_ctx(max_changes=10)
        child = ctx.with_fresh_dedup()
        assert child.dedup is not ctx.dedup
        assert child.budget is ctx.budget
        assert child.included_work_item_ids is ctx.included_work_item_ids
        assert child.warnings is ctx.warnings

    def test_filter_links(self, make_ctx):
        ctx = make_ctx(link_type_filter=["Parent"])
        wi = make_work_item(1, relations=[(2, "parent"), (3, "Related")])
        assert [r.id for r in ctx.filter_links(wi.relations)] == [2]

    def test_no_filter_keeps_all_links(self, ctx):
        wi = make_work_item(1, relations=[(2, "parent"), (3, "Related")])
        assert len(ctx.filter_links(wi.relations)) == 2

    def test_isolated_child_does_not_touch_parent(self, make_ctx):
        ctx = make_ctx(max_changes=10)
        child = ctx.isolated()
        child.dedup.claim(ChangeEntry(commit=make_commit("a"), work_item=make_work_item(1)))
        child.count_changes(1)
        assert ctx.included_work_item_ids == set()
        assert ctx.budget.used == 0
        assert child.cache is ctx.cache
        assert child.request_cache is ctx.request_cache
        assert child.warnings is ctx.warnings

    def test_admit_replays_dedup_and_budget(self, make_ctx):
        ctx = make_ctx(max_changes=10)
        entry = ChangeEntry(commit=make_commit("a"), work_item=make_work_item(1), repo_key="proj/app")
        group = ArtifactChangesGroup(
            artifact=ArtifactDescriptor(name="app"),
            changes=[entry],
            non_linked_commits=[NonLinkedCommit(commit_id="b", repo_key="proj/app")],
        )
        first = ctx.admit(group)
        second = ctx.admit(group)
        assert first.total == 2
        assert second.total == 0
        assert ctx.budget.used == 2
        assert ctx.included_work_item_ids == {1}
