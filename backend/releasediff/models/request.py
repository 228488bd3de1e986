"""
ReleaseDiff — Comparison request contract.

A request names two reference points and how to interpret them.
The RangeResolver turns it into provider-level version descriptors.
"""

from __future__ import annotations

import enum
from datetime import datetime

from pydantic import BaseModel, Field

from releasediff.models.azure import Build, Commit, Release


class RangeType(str, enum.Enum):
    COMMIT_SHA = "commitSha"
    RANGE = "range"
    DATE = "date"
    PIPELINE = "pipeline"
    RELEASE = "release"


class VersionType(str, enum.Enum):
    COMMIT = "commit"
    BRANCH = "branch"
    TAG = "tag"
    DATE = "date"


class RefSpec(BaseModel):
    ref: str = Field(min_length=1)
    type: VersionType = VersionType.COMMIT


RangeValue = int | datetime | RefSpec | str


class ChangesRequest(BaseModel):
    """Body of a change-set request."""

    team_project: str = Field(min_length=1)
    range_type: RangeType
    from_value: RangeValue | None = Field(default=None, alias="from")
    to_value: RangeValue = Field(alias="to")
    repo_id: str | None = None
    branch_name: str | None = None
    include_pull_requests: bool = False
    include_services: bool = True
    link_type_filter: list[str] = Field(default_factory=list)
    requested_by_build: bool = False
    unique_work_items: bool = False
    max_changes: int | None = Field(default=None, gt=0)

    model_config = {"populate_by_name": True}


class ResolvedRange(BaseModel):
    """Provider-level versions for one request, plus whatever the mode fetched."""

    range_type: RangeType
    from_version: str
    to_version: str
    from_version_type: VersionType
    to_version_type: VersionType
    commits: list[Commit] | None = None
    from_build: Build | None = None
    to_build: Build | None = None
    from_release: Release | None = None
    to_release: Release | None = None
