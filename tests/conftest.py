"""Shared test configuration and fixtures for the ReleaseDiff test suite."""

import sys
from pathlib import Path

import pytest

# Add backend (and this directory, for the fakes module) to the Python path
backend_dir = str(Path(__file__).parent.parent / "backend")
if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)
tests_dir = str(Path(__file__).parent)
if tests_dir not in sys.path:
    sys.path.insert(0, tests_dir)

from fakes import (  # noqa: E402
    FakeArtifactRepository,
    FakePipelines,
    FakeReleases,
    FakeSourceControl,
    FakeWorkItems,
)
from releasediff.engine.cache import ComparisonCache  # noqa: E402
from releasediff.engine.context import ComparisonContext  # noqa: E402
from releasediff.providers.base import Providers  # noqa: E402


@pytest.fixture
def source_control():
    return FakeSourceControl()


@pytest.fixture
def work_items():
    return FakeWorkItems()


@pytest.fixture
def pipelines():
    return FakePipelines()


@pytest.fixture
def releases():
    return FakeReleases()


@pytest.fixture
def artifact_repository():
    return FakeArtifactRepository()


@pytest.fixture
def providers(source_control, work_items, pipelines, releases, artifact_repository):
    return Providers(
        source_control=source_control,
        work_items=work_items,
        pipelines=pipelines,
        releases=releases,
        artifact_repository=artifact_repository,
    )


@pytest.fixture
def cache():
    return ComparisonCache(max_entries=64)


@pytest.fixture
def make_ctx(cache):
    def _make(max_changes: int = 500, **options) -> ComparisonContext:
        return ComparisonContext.create(project="Proj", cache=cache, max_changes=max_changes, **options)
    return _make


@pytest.fixture
def ctx(make_ctx):
    return make_ctx()
