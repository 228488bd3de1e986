"""Unit tests for ref and URL helpers."""

from datetime import datetime

import pytest
from releasediff.utils.refs import (
    CiRun, ceil_to_minute_end, extract_ci_run, floor_to_minute, parse_git_url,
    remove_user_from_git_repo_url, short_ref_name, split_paths,
)


class TestShortRefName:
    @pytest.mark.parametrize("ref,expected", [
        ("refs/heads/main", "main"),
        ("refs/tags/v1.2", "v1.2"),
        ("main", "main"),
        ("refs/heads/release/", "release"),
    ])
    def test_last_segment(self, ref, expected):
        assert short_ref_name(ref) == expected


class TestRemoveUser:
    def test_strips_user(self):
        assert remove_user_from_git_repo_url("https://org@dev.azure.com/org/p/_git/r") == \
            "https://dev.azure.com/org/p/_git/r"

    def test_leaves_plain_url(self):
        url = "https://dev.azure.com/org/p/_git/r"
        assert remove_user_from_git_repo_url(url) == url

    def test_leaves_ssh_url(self):
        url = "git@ssh.dev.azure.com:v3/org/p/r"
        assert remove_user_from_git_repo_url(url) == url


class TestParseGitUrl:
    def test_full_url(self):
        loc = parse_git_url("https://dev.azure.com/org/Proj/_git/services?path=/services.json")
        assert loc.project == "Proj"
        assert loc.repo_name == "services"
        assert loc.path == "/services.json"

    def test_short_url_defaults_project_to_repo(self):
        loc = parse_git_url("https://repo/_git/services?path=services.json")
        assert loc.project == "services"
        assert loc.repo_name == "services"

    def test_encoded_segments(self):
        loc = parse_git_url("https://dev.azure.com/org/My%20Proj/_git/svc")
        assert loc.project == "My Proj"
        assert loc.path == ""

    def test_not_a_git_url(self):
        with pytest.raises(ValueError):
            parse_git_url("https://example.com/repo")


class TestExtractCiRun:
    def test_build_query(self):
        url = "https://dev.azure.com/org/Proj/_build/results?buildId=1234&view=results"
        assert extract_ci_run(url) == CiRun(kind="build", run_id=1234)

    def test_release_query(self):
        url = "https://dev.azure.com/org/Proj/_releaseProgress?releaseId=77"
        assert extract_ci_run(url) == CiRun(kind="release", run_id=77)

    def test_path_form(self):
        assert extract_ci_run("https://ci.example.com/builds/55") == CiRun(kind="build", run_id=55)

    def test_empty(self):
        assert extract_ci_run("") is None
        assert extract_ci_run("https://example.com/nothing") is None


class TestTimeWindow:
    def test_floor_and_ceil(self):
        t = datetime(2024, 3, 1, 12, 30, 45, 123456)
        assert floor_to_minute(t) == datetime(2024, 3, 1, 12, 30, 0)
        assert ceil_to_minute_end(t) == datetime(2024, 3, 1, 12, 30, 59)


class TestSplitPaths:
    def test_string(self):
        assert split_paths("/a, /b ,,") == ["/a", "/b"]

    def test_list(self):
        assert split_paths(["/a", " ", "/b "]) == ["/a", "/b"]
