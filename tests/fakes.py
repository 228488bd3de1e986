"""In-memory providers for engine tests. Every call is recorded in ``calls``."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

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
from releasediff.models.changes import CommitIdentity, LinkedItemRelation, PullRequestInfo, WorkItemInfo

BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_commit(sha: str, minutes: int = 0, comment: str = "") -> Commit:
    when = BASE_TIME + timedelta(minutes=minutes)
    return Commit(
        commit_id=sha,
        committer=CommitIdentity(name="dev", email="dev@example.com", date=when),
        author=CommitIdentity(name="dev", email="dev@example.com", date=when),
        comment=comment or f"commit {sha}",
        remote_url=f"https://dev.azure.com/org/Proj/_git/repo/commit/{sha}",
    )


def make_work_item(wi_id: int, relations: list[tuple[int, str]] | None = None) -> WorkItemInfo:
    return WorkItemInfo(
        id=wi_id,
        title=f"Work item {wi_id}",
        work_item_type="Bug",
        state="Done",
        relations=[
            LinkedItemRelation(id=rid, title=f"Linked {rid}", relation_type=rtype)
            for rid, rtype in (relations or [])
        ],
    )


def make_repo(name: str, repo_id: str = "", project: str = "Proj") -> GitRepository:
    return GitRepository(
        id=repo_id or f"id-{name}",
        name=name,
        url=f"https://user@dev.azure.com/org/{project}/_git/{name}",
        api_url=f"https://dev.azure.com/org/{project}/_apis/git/repositories/{name}",
        project=project,
    )


def make_build(build_id: int, definition_id: int = 1, result: str = "succeeded", status: str = "completed",
               repo_name: str = "app", definition_name: str = "app-ci") -> Build:
    return Build(
        id=build_id,
        build_number=f"2024.{build_id}",
        status=status,
        result=result,
        definition_id=definition_id,
        definition_name=definition_name,
        project="Proj",
        repository={"id": f"id-{repo_name}", "name": repo_name, "type": "TfsGit"},
    )


class FakeSourceControl:
    def __init__(self):
        self.repos: dict[str, GitRepository] = {}
        self.batches: dict[tuple, list[Commit]] = {}
        self.failing: set[str] = set()
        self.date_commits: dict[str, list[Commit]] = {}
        self.pull_requests: dict[str, list[PullRequestInfo]] = {}
        self.submodules: dict[tuple, list[SubmoduleChange]] = {}
        self.missing_paths: set[tuple[str, str]] = set()
        self.tags: set[tuple[str, str]] = set()
        self.branches: set[tuple[str, str]] = set()
        self.files: dict[tuple[str, str, str], str] = {}
        # seconds to wait before answering, by repository id or api url
        self.delays: dict[str, float] = {}
        self.calls: list[tuple] = []

    def add_repo(self, repo: GitRepository) -> GitRepository:
        self.repos[repo.id] = repo
        return repo

    def set_batch(self, repo: GitRepository, from_version: str, to_version: str,
                  commits: list[Commit], path: str | None = None) -> None:
        self.batches[(repo.api_url, from_version, to_version, path)] = commits

    def add_submodule(self, parent: GitRepository, from_version: str, to_version: str,
                      name: str, child: GitRepository, child_from: str, child_to: str) -> None:
        self.submodules.setdefault((parent.key, from_version, to_version), []).append(
            SubmoduleChange(name=name, repository=child, source_sha=child_from, target_sha=child_to)
        )

    async def get_repo_by_id(self, project, repo_id):
        self.calls.append(("get_repo_by_id", repo_id))
        await asyncio.sleep(self.delays.get(repo_id, 0))
        return self.repos.get(repo_id)

    async def get_repo_by_name(self, project, repo_name):
        self.calls.append(("get_repo_by_name", repo_name))
        for repo in self.repos.values():
            if repo.name.lower() == repo_name.lower():
                return repo
        return None

    async def get_commit_batch(self, repo_api_url, from_version, from_type, to_version, to_type, path_filter=None):
        self.calls.append(("get_commit_batch", repo_api_url, from_version, to_version, path_filter))
        await asyncio.sleep(self.delays.get(repo_api_url, 0))
        if repo_api_url in self.failing:
            raise RuntimeError(f"TF401175: version not found in {repo_api_url}")
        return list(self.batches.get((repo_api_url, from_version, to_version, path_filter), []))

    async def get_commits_in_date_range(self, project, repo_id, from_date, to_date, branch):
        self.calls.append(("get_commits_in_date_range", repo_id, from_date, to_date, branch))
        return list(self.date_commits.get(repo_id, []))

    async def get_pull_requests_for_commits(self, project, repo, commits):
        self.calls.append(("get_pull_requests_for_commits", repo.name, len(commits)))
        return list(self.pull_requests.get(repo.name, []))

    async def get_submodule_changes(self, project, repo, from_version, from_type, to_version, to_type):
        self.calls.append(("get_submodule_changes", repo.name, from_version, to_version))
        return list(self.submodules.get((repo.key, from_version, to_version), []))

    async def check_path_exists(self, repo_api_url, path, version, version_type):
        return (path, version) not in self.missing_paths

    async def get_tag_ref(self, repo_api_url, tag):
        return f"refs/tags/{tag}" if (repo_api_url, tag) in self.tags else None

    async def get_branch_ref(self, repo_api_url, branch):
        return f"refs/heads/{branch}" if (repo_api_url, branch) in self.branches else None

    async def get_file_contents(self, project, repo_name, path, version, version_type):
        self.calls.append(("get_file_contents", repo_name, path, version))
        return self.files.get((repo_name, path, version))

    def count(self, name: str) -> int:
        return sum(1 for c in self.calls if c[0] == name)


class FakeWorkItems:
    def __init__(self):
        self.by_commit: dict[str, list[WorkItemInfo]] = {}

    def link(self, sha: str, *items: WorkItemInfo) -> None:
        self.by_commit.setdefault(sha, []).extend(items)

    async def get_work_items_for_commit(self, project, repo, commit):
        return list(self.by_commit.get(commit.commit_id, []))


class FakePipelines:
    def __init__(self):
        self.builds: dict[int, Build] = {}
        self.repositories: dict[tuple[int, int], list[ResourceRepository]] = {}
        self.resource_pipelines: dict[tuple[int, int], list[ResourcePipeline]] = {}
        self.calls: list[tuple] = []

    def add_build(self, build: Build) -> Build:
        self.builds[build.id] = build
        return build

    def set_run(self, definition_id: int, run_id: int,
                repositories: list[ResourceRepository] | None = None,
                resource_pipelines: list[ResourcePipeline] | None = None) -> None:
        self.repositories[(definition_id, run_id)] = repositories or []
        self.resource_pipelines[(definition_id, run_id)] = resource_pipelines or []

    async def get_build(self, project, build_id):
        self.calls.append(("get_build", build_id))
        return self.builds.get(build_id)

    async def find_previous_successful_build(self, project, definition_id, before_build_id):
        self.calls.append(("find_previous_successful_build", definition_id, before_build_id))
        earlier = [
            b for b in self.builds.values()
            if b.definition_id == definition_id and b.id < before_build_id and b.succeeded
        ]
        return max(earlier, key=lambda b: b.id) if earlier else None

    async def get_pipeline_run_details(self, project, definition_id, run_id):
        self.calls.append(("get_pipeline_run_details", definition_id, run_id))
        return PipelineRun(id=run_id, definition_id=definition_id, project=project)

    async def get_referenced_repositories(self, run):
        return list(self.repositories.get((run.definition_id, run.id), []))

    async def get_referenced_resource_pipelines(self, run):
        return list(self.resource_pipelines.get((run.definition_id, run.id), []))

    def count(self, name: str) -> int:
        return sum(1 for c in self.calls if c[0] == name)


class FakeReleases:
    def __init__(self):
        self.releases: dict[int, Release] = {}
        self.history: dict[int, list[Release]] = {}

    def add(self, release: Release) -> Release:
        self.releases[release.id] = release
        if release.release_definition_id is not None:
            self.history.setdefault(release.release_definition_id, []).append(release)
        return release

    async def get_release(self, project, release_id):
        return self.releases.get(release_id)

    async def get_release_history(self, project, definition_id):
        return list(self.history.get(definition_id, []))


class FakeArtifactRepository:
    def __init__(self):
        self.connections: dict[str, str] = {}
        self.ci_urls: dict[tuple[str, str], str] = {}

    async def get_service_connection_url(self, project, connection_id):
        return self.connections.get(connection_id, "")

    async def resolve_ci_url_for_build(self, connection_url, build_name, build_version):
        return self.ci_urls.get((build_name, build_version), "")
