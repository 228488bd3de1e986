"""ReleaseDiff data models — typed contracts for the entire engine."""

from releasediff.models.changes import (
    ArtifactChangesGroup,
    ArtifactDescriptor,
    ChangeEntry,
    CommitIdentity,
    CommitInfo,
    CommitRangeChanges,
    LinkedItemRelation,
    NonLinkedCommit,
    PipelineChanges,
    PullRequestInfo,
    TargetRepoInfo,
    WorkItemInfo,
)
from releasediff.models.azure import (
    Build,
    BuildRepository,
    Commit,
    GitRepository,
    PipelineRun,
    Release,
    ReleaseArtifact,
    ResourcePipeline,
    ResourceRepository,
    SubmoduleChange,
)
from releasediff.models.request import (
    ChangesRequest,
    RangeType,
    RefSpec,
    ResolvedRange,
    VersionType,
)
from releasediff.models.job import (
    ComparisonResult,
    ComparisonState,
    StepTiming,
)

__all__ = [
    "ArtifactChangesGroup",
    "ArtifactDescriptor",
    "ChangeEntry",
    "CommitIdentity",
    "CommitInfo",
    "CommitRangeChanges",
    "LinkedItemRelation",
    "NonLinkedCommit",
    "PipelineChanges",
    "PullRequestInfo",
    "TargetRepoInfo",
    "WorkItemInfo",
    "Build",
    "BuildRepository",
    "Commit",
    "GitRepository",
    "PipelineRun",
    "Release",
    "ReleaseArtifact",
    "ResourcePipeline",
    "ResourceRepository",
    "SubmoduleChange",
    "ChangesRequest",
    "RangeType",
    "RefSpec",
    "ResolvedRange",
    "VersionType",
    "ComparisonResult",
    "ComparisonState",
    "StepTiming",
]
