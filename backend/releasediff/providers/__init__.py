"""Provider protocols consumed by the change engines."""

from releasediff.providers.base import (
    ArtifactRepositoryProvider,
    PipelineProvider,
    Providers,
    ReleaseProvider,
    SourceControlProvider,
    WorkItemProvider,
)

__all__ = [
    "ArtifactRepositoryProvider",
    "PipelineProvider",
    "Providers",
    "ReleaseProvider",
    "SourceControlProvider",
    "WorkItemProvider",
]
