"""
ReleaseDiff — Records returned by the Azure DevOps / JFrog providers.

These model only the payload fields the engines need.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from releasediff.models.changes import CamelModel, CommitInfo

# A commit as returned by the source control provider.
Commit = CommitInfo

SUCCEEDED = "succeeded"
CANCELED = "canceled"


class GitRepository(CamelModel):
    id: str = ""
    name: str = Field(min_length=1)
    url: str = ""
    api_url: str = ""
    project: str = ""

    @property
    def key(self) -> str:
        return (self.id or self.api_url or self.name).lower()


class SubmoduleChange(CamelModel):
    """A submodule whose pointer moved between two superproject versions."""

    name: str
    repository: GitRepository
    source_sha: str
    target_sha: str


class BuildRepository(CamelModel):
    id: str = ""
    name: str = ""
    type: str = ""


class Build(CamelModel):
    id: int
    build_number: str = ""
    status: str = ""
    result: str = ""
    definition_id: int
    definition_name: str = ""
    project: str = ""
    repository: BuildRepository = Field(default_factory=BuildRepository)
    finish_time: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.result.lower() == SUCCEEDED

    @property
    def canceled(self) -> bool:
        return CANCELED in (self.result.lower(), self.status.lower())


class PipelineRun(CamelModel):
    id: int
    definition_id: int
    name: str = ""
    project: str = ""
    resources: dict[str, Any] = Field(default_factory=dict)


class ResourceRepository(CamelModel):
    """A repository checked out by a pipeline run, pinned at ``repo_sha1``."""

    repo_name: str
    url: str
    repo_sha1: str
    project: str = ""


class ResourcePipeline(CamelModel):
    """An upstream pipeline run consumed as a resource by another run."""

    name: str
    definition_id: int
    run_id: int
    project: str = ""
    provider: str = "TfsGit"
    build_number: str = ""


class ReleaseArtifact(CamelModel):
    type: str
    alias: str
    version_id: str = ""
    version_name: str = ""
    definition_id: str = ""
    definition_name: str = ""
    project: str = ""
    repository_provider: str = ""
    connection_id: str = ""


class Release(CamelModel):
    id: int
    name: str = ""
    release_definition_id: int | None = None
    created_on: datetime | None = None
    artifacts: list[ReleaseArtifact] = Field(default_factory=list)
    variables: dict[str, str] = Field(default_factory=dict)
