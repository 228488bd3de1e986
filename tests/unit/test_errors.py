"""Unit tests for the structured error catalog."""

import pytest
from releasediff.errors import (
    ReleaseDiffError, RangeResolutionError, RepositoryNotFoundError,
    BuildNotSucceededError, ChangeLimitExceededError, CommitFetchError,
    ProvidersNotConfiguredError, ServicesManifestError,
)


class TestErrorCatalog:
    """Verify every error type has the right code, fatality, and serialization."""

    def test_base_error(self):
        e = ReleaseDiffError(code="TEST", message="test msg", suggestion="try this")
        d = e.to_dict()
        assert d["error_code"] == "TEST"
        assert d["message"] == "test msg"
        assert d["suggestion"] == "try this"
        assert "detail" not in d

    def test_range_resolution(self):
        e = RangeResolutionError("pipeline", 42, "build not found")
        assert e.code == "UNRESOLVED_RANGE"
        assert "42" in e.message
        assert e.to_dict()["detail"] == {"range_type": "pipeline", "reference": "42"}

    def test_repository_not_found(self):
        e = RepositoryNotFoundError("repo-x", "Proj")
        assert e.code == "REPOSITORY_NOT_FOUND"
        assert "repo-x" in e.message
        assert "Proj" in e.message

    def test_build_not_succeeded(self):
        e = BuildNotSucceededError(7, "failed")
        assert e.code == "BUILD_NOT_SUCCEEDED"
        assert e.message == "Build 7 cannot be compared (result: failed)"

    def test_change_limit(self):
        e = ChangeLimitExceededError(501, 500)
        assert e.code == "CHANGE_LIMIT_EXCEEDED"
        assert "501" in e.message and "500" in e.message
        assert e.to_dict()["detail"] == {"count": 501, "limit": 500}

    def test_commit_fetch(self):
        e = CommitFetchError("app", "a1", "b2", "boom")
        assert e.code == "COMMIT_FETCH_FAILED"
        assert "boom" in e.message

    def test_providers_not_configured(self):
        e = ProvidersNotConfiguredError()
        assert e.code == "PROVIDERS_NOT_CONFIGURED"
        assert e.suggestion

    def test_manifest_error_is_recoverable(self):
        e = ServicesManifestError("https://x/_git/s?path=/services.json", "bad json")
        assert e.code == "SERVICES_MANIFEST_INVALID"
        assert e.fatal is False

    @pytest.mark.parametrize("error", [
        RangeResolutionError("date", "x", "y"),
        RepositoryNotFoundError("r"),
        BuildNotSucceededError(1, "canceled"),
        ChangeLimitExceededError(2, 1),
        CommitFetchError("r", "a", "b", "c"),
    ])
    def test_fatal_errors(self, error):
        assert error.fatal is True
        assert isinstance(error, ReleaseDiffError)

    def test_is_exception(self):
        with pytest.raises(ReleaseDiffError):
            raise RepositoryNotFoundError("repo")
