"""
ReleaseDiff — Typed change-set data model.

Every engine produces and consumes these models; no raw dicts leak
across boundaries. Fields serialise with camelCase aliases so the
document-skin adapters keep their field names.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CommitIdentity(CamelModel):
    name: str = ""
    email: str = ""
    date: datetime | None = None


class CommitInfo(CamelModel):
    commit_id: str = Field(min_length=1)
    committer: CommitIdentity = Field(default_factory=CommitIdentity)
    author: CommitIdentity = Field(default_factory=CommitIdentity)
    comment: str = ""
    remote_url: str = ""
    parents: list[str] = Field(default_factory=list)


class PullRequestInfo(CamelModel):
    pull_request_id: int
    title: str = ""
    description: str = ""
    url: str = ""
    created_by: str = ""
    creation_date: datetime | None = None
    closed_date: datetime | None = None


class LinkedItemRelation(CamelModel):
    id: int | None = None
    title: str = ""
    wi_type: str = ""
    url: str = ""
    relation_type: str = ""


class WorkItemInfo(CamelModel):
    id: int
    title: str = ""
    work_item_type: str = ""
    state: str = ""
    url: str = ""
    field_values: dict[str, Any] = Field(default_factory=dict, alias="fields")
    relations: list[LinkedItemRelation] = Field(default_factory=list)


class TargetRepoInfo(CamelModel):
    """Which repository (or submodule) produced a change entry."""

    repo_name: str = ""
    git_sub_module_name: str | None = None
    url: str = ""
    project_id: str = ""


class ChangeEntry(CamelModel):
    """
    A change tied to a work item or pull request.

    When ``work_item`` is set, ``commit`` or ``pull_request`` usually is too:
    the entry records that the commit resolved to that work item.
    """

    commit: CommitInfo | None = None
    pull_request: PullRequestInfo | None = None
    work_item: WorkItemInfo | None = None
    linked_items: list[LinkedItemRelation] = Field(default_factory=list)
    target_repo: TargetRepoInfo | None = None
    build: str | None = None
    release_version: str | None = None
    release_run_date: datetime | None = None
    # project/repository the entry was emitted for; dedup scope, not serialised
    repo_key: str = Field(default="", exclude=True)

    @property
    def commit_id(self) -> str | None:
        return self.commit.commit_id if self.commit else None

    @property
    def work_item_id(self) -> int | None:
        return self.work_item.id if self.work_item else None


class NonLinkedCommit(CamelModel):
    commit_id: str
    commit_date: datetime | None = None
    committer: str = ""
    comment: str = ""
    url: str = ""
    release_version: str | None = None
    release_run_date: datetime | None = None
    repo_key: str = Field(default="", exclude=True)

    @classmethod
    def from_commit(cls, commit: CommitInfo) -> NonLinkedCommit:
        return cls(
            commit_id=commit.commit_id,
            commit_date=commit.committer.date,
            committer=commit.committer.name,
            comment=commit.comment,
            url=commit.remote_url,
        )


class ArtifactDescriptor(CamelModel):
    name: str


class ArtifactChangesGroup(CamelModel):
    """All changes attributed to one artifact (repository, service, pipeline)."""

    artifact: ArtifactDescriptor
    changes: list[ChangeEntry] = Field(default_factory=list)
    non_linked_commits: list[NonLinkedCommit] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.changes) + len(self.non_linked_commits)


class CommitRangeChanges(CamelModel):
    """Linked and unlinked changes of one commit range. Cached; never mutated."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    linked: list[ChangeEntry] = Field(default_factory=list)
    unlinked: list[NonLinkedCommit] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.linked) + len(self.unlinked)


class PipelineChanges(CamelModel):
    changes: list[ChangeEntry] = Field(default_factory=list)
    changes_without_link: list[NonLinkedCommit] = Field(default_factory=list)

    def extend(self, other: CommitRangeChanges) -> None:
        self.changes.extend(other.linked)
        self.changes_without_link.extend(other.unlinked)
