"""
ReleaseDiff — Structured error catalog.

Every error has a code, human message, and suggested fix.
Fatal errors abort the whole comparison request; recoverable ones are
caught at the smallest enclosing scope and logged.
"""

from __future__ import annotations

from typing import Any


class ReleaseDiffError(Exception):
    """Base error with structured code + suggestion."""

    fatal = True

    def __init__(self, code: str, message: str, suggestion: str = "", detail: Any = None):
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "error_code": self.code,
            "message": self.message,
        }
        if self.suggestion:
            d["suggestion"] = self.suggestion
        if self.detail:
            d["detail"] = self.detail
        return d


class RangeResolutionError(ReleaseDiffError):
    def __init__(self, range_type: str, reference: Any, reason: str):
        super().__init__(
            code="UNRESOLVED_RANGE",
            message=f"Could not resolve {range_type} reference '{reference}': {reason}",
            suggestion="Check that the from/to values exist in the team project.",
            detail={"range_type": range_type, "reference": str(reference)},
        )


class RepositoryNotFoundError(ReleaseDiffError):
    def __init__(self, repo: str, project: str = ""):
        where = f" in project {project}" if project else ""
        super().__init__(
            code="REPOSITORY_NOT_FOUND",
            message=f"Repository not found: {repo}{where}",
            suggestion="Check the repository id or name and the caller's permissions.",
        )


class BuildNotSucceededError(ReleaseDiffError):
    def __init__(self, build_id: int, result: str):
        super().__init__(
            code="BUILD_NOT_SUCCEEDED",
            message=f"Build {build_id} cannot be compared (result: {result or 'unknown'})",
            suggestion="Pick a target build that completed successfully.",
            detail={"build_id": build_id, "result": result},
        )


class ChangeLimitExceededError(ReleaseDiffError):
    def __init__(self, count: int, limit: int):
        super().__init__(
            code="CHANGE_LIMIT_EXCEEDED",
            message=f"Comparison produced {count} changes, exceeding the maximum of {limit}",
            suggestion="Narrow the range or split the document into smaller windows.",
            detail={"count": count, "limit": limit},
        )


class CommitFetchError(ReleaseDiffError):
    def __init__(self, repo: str, from_version: str, to_version: str, cause: str):
        super().__init__(
            code="COMMIT_FETCH_FAILED",
            message=f"Failed fetching commits of {repo} between {from_version} and {to_version}: {cause}",
            suggestion="Check that both versions exist in the repository.",
            detail={"repo": repo, "from": from_version, "to": to_version},
        )


class ProvidersNotConfiguredError(ReleaseDiffError):
    def __init__(self):
        super().__init__(
            code="PROVIDERS_NOT_CONFIGURED",
            message="No Azure DevOps providers are attached to this service",
            suggestion="Call configure_providers(app, providers) at startup.",
        )


class ServicesManifestError(ReleaseDiffError):
    fatal = False

    def __init__(self, location: str, reason: str):
        super().__init__(
            code="SERVICES_MANIFEST_INVALID",
            message=f"Services manifest {location} is unusable: {reason}",
            suggestion="Check the servicesJson release variables and the file contents.",
        )
