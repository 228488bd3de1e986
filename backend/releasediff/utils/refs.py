"""
ReleaseDiff — Ref and URL helpers shared by the engines.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import NamedTuple
from urllib.parse import parse_qs, unquote, urlsplit, urlunsplit


class GitLocation(NamedTuple):
    project: str
    repo_name: str
    path: str


class CiRun(NamedTuple):
    kind: str  # build | release
    run_id: int


_CI_ID_PARAMS = (("buildId", "build"), ("releaseId", "release"))


def short_ref_name(ref: str) -> str:
    """Strip everything up to the last '/' ('refs/heads/main' → 'main')."""
    return ref.rstrip("/").rsplit("/", 1)[-1]


def remove_user_from_git_repo_url(url: str) -> str:
    """Drop 'user@' credentials from an https clone URL; other URLs are untouched."""
    if not url.startswith("https://"):
        return url
    parts = urlsplit(url)
    if "@" not in parts.netloc:
        return url
    host = parts.netloc.rsplit("@", 1)[1]
    return urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))


def parse_git_url(url: str) -> GitLocation:
    """
    Split an Azure DevOps git URL into project, repository and file path.

    Handles ``https://host/org/project/_git/repo?path=/file.json`` and the
    shorter ``https://host/org/_git/repo`` form (project defaults to the repo).
    """
    parts = urlsplit(remove_user_from_git_repo_url(url))
    segments = [unquote(s) for s in parts.path.split("/") if s]
    if "_git" not in segments:
        raise ValueError(f"Not an Azure DevOps git URL: {url}")
    idx = segments.index("_git")
    if idx + 1 >= len(segments):
        raise ValueError(f"Git URL has no repository segment: {url}")
    repo_name = segments[idx + 1]
    project = segments[idx - 1] if idx >= 2 else repo_name
    path = parse_qs(parts.query).get("path", [""])[0]
    return GitLocation(project=project, repo_name=repo_name, path=path)


def extract_ci_run(url: str) -> CiRun | None:
    """Find the build or release id a CI URL points at."""
    if not url:
        return None
    query = parse_qs(urlsplit(url).query)
    for param, kind in _CI_ID_PARAMS:
        values = query.get(param)
        if values and values[0].isdigit():
            return CiRun(kind=kind, run_id=int(values[0]))
    # Older build-info records embed the id in the path
    match = re.search(r"/(build|release)s?/(\d+)(?:$|[/?#])", url, re.IGNORECASE)
    if match:
        return CiRun(kind=match.group(1).lower(), run_id=int(match.group(2)))
    return None


def floor_to_minute(value: datetime) -> datetime:
    return value.replace(second=0, microsecond=0)


def ceil_to_minute_end(value: datetime) -> datetime:
    return value.replace(second=59, microsecond=0)


def split_paths(value: str | list[str]) -> list[str]:
    """Normalise a comma separated path list (or a list) into clean paths."""
    items = value if isinstance(value, list) else value.split(",")
    return [p.strip() for p in items if p and p.strip()]
