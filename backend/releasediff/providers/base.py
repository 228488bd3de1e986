"""
ReleaseDiff — Provider contracts.

The engines never talk to Azure DevOps or JFrog directly. A deployment
supplies objects satisfying these protocols; retries and backoff are the
provider's business. Every method is a suspension point.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from releasediff.models.azure import (
    Build,
    Commit,
    GitRepository,
    PipelineRun,
    Release,
    ResourcePipeline,
    ResourceRepository,
    SubmoduleChange,
)
from releasediff.models.changes import PullRequestInfo, WorkItemInfo


class SourceControlProvider(Protocol):
    async def get_repo_by_id(self, project: str, repo_id: str) -> GitRepository | None: ...

    async def get_repo_by_name(self, project: str, repo_name: str) -> GitRepository | None: ...

    async def get_commit_batch(
        self,
        repo_api_url: str,
        from_version: str,
        from_type: str,
        to_version: str,
        to_type: str,
        path_filter: str | None = None,
    ) -> list[Commit]:
        """Commits reachable from ``to`` but not from ``from``, in provider order."""
        ...

    async def get_commits_in_date_range(
        self, project: str, repo_id: str, from_date: str, to_date: str, branch: str
    ) -> list[Commit]: ...

    async def get_pull_requests_for_commits(
        self, project: str, repo: GitRepository, commits: list[Commit]
    ) -> list[PullRequestInfo]: ...

    async def get_submodule_changes(
        self,
        project: str,
        repo: GitRepository,
        from_version: str,
        from_type: str,
        to_version: str,
        to_type: str,
    ) -> list[SubmoduleChange]: ...

    async def check_path_exists(
        self, repo_api_url: str, path: str, version: str, version_type: str
    ) -> bool: ...

    async def get_tag_ref(self, repo_api_url: str, tag: str) -> str | None: ...

    async def get_branch_ref(self, repo_api_url: str, branch: str) -> str | None: ...

    async def get_file_contents(
        self, project: str, repo_name: str, path: str, version: str, version_type: str
    ) -> str | None: ...


class WorkItemProvider(Protocol):
    async def get_work_items_for_commit(
        self, project: str, repo: GitRepository, commit: Commit
    ) -> list[WorkItemInfo]: ...


class PipelineProvider(Protocol):
    async def get_build(self, project: str, build_id: int) -> Build | None: ...

    async def find_previous_successful_build(
        self, project: str, definition_id: int, before_build_id: int
    ) -> Build | None: ...

    async def get_pipeline_run_details(
        self, project: str, definition_id: int, run_id: int
    ) -> PipelineRun: ...

    async def get_referenced_repositories(self, run: PipelineRun) -> list[ResourceRepository]: ...

    async def get_referenced_resource_pipelines(self, run: PipelineRun) -> list[ResourcePipeline]: ...


class ReleaseProvider(Protocol):
    async def get_release(self, project: str, release_id: int) -> Release | None: ...

    async def get_release_history(self, project: str, definition_id: int) -> list[Release]: ...


class ArtifactRepositoryProvider(Protocol):
    async def get_service_connection_url(self, project: str, connection_id: str) -> str: ...

    async def resolve_ci_url_for_build(
        self, connection_url: str, build_name: str, build_version: str
    ) -> str:
        """CI build URL recorded in the build info, or '' when there is none."""
        ...


@dataclass(frozen=True)
class Providers:
    """Everything the engines need from the outside world."""
    source_control: SourceControlProvider
    work_items: WorkItemProvider
    pipelines: PipelineProvider
    releases: ReleaseProvider
    artifact_repository: ArtifactRepositoryProvider
