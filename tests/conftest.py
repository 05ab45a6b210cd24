"""Shared test fixtures."""

import base64
from typing import Any, Dict, List, Optional

import httpx
import pytest

from gitinsight_mcp.cache import CacheStore
from gitinsight_mcp.config import GitInsightSettings
from gitinsight_mcp.fetcher import GitHubFetcher
from gitinsight_mcp.github_client import GitHubClient
from gitinsight_mcp.models import CommitRecord, DeveloperProfile, RepositoryRecord

USERNAME = "octocat"


def make_raw_repo(
    name: str,
    stars: int = 0,
    forks: int = 0,
    language: Optional[str] = "Python",
    topics: Optional[List[str]] = None,
    updated_at: str = "2024-01-01T00:00:00Z",
    created_at: str = "2023-01-01T00:00:00Z",
    description: Optional[str] = None,
    open_issues: int = 0,
) -> Dict[str, Any]:
    """A repository object shaped like the GitHub REST API returns it."""
    return {
        "id": abs(hash(name)) % 100000,
        "name": name,
        "full_name": f"{USERNAME}/{name}",
        "description": description,
        "html_url": f"https://github.com/{USERNAME}/{name}",
        "stargazers_count": stars,
        "forks_count": forks,
        "watchers_count": stars,
        "language": language,
        "topics": topics or [],
        "created_at": created_at,
        "updated_at": updated_at,
        "pushed_at": updated_at,
        "size": 120,
        "open_issues_count": open_issues,
        "homepage": None,
        "default_branch": "main",
        "visibility": "public",
        "archived": False,
        "fork": False,
        "is_template": False,
    }


def make_raw_commit(sha: str, date: str, message: str = "Update", author: str = "The Octocat") -> Dict[str, Any]:
    return {
        "sha": sha,
        "html_url": f"https://github.com/{USERNAME}/repo/commit/{sha}",
        "commit": {
            "message": message,
            "author": {"name": author, "email": "octocat@example.com", "date": date},
        },
    }


def make_repo(name: str, **kwargs) -> RepositoryRecord:
    return RepositoryRecord.from_api(make_raw_repo(name, **kwargs))


def make_commit(date: str, repository: str = "repo", sha: str = "abc") -> CommitRecord:
    return CommitRecord(
        sha=sha,
        message="Update",
        author="The Octocat",
        date=date,
        url="",
        repository=repository,
    )


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGitHub:
    """
    In-memory GitHub API served through httpx.MockTransport.

    Every request is recorded in ``requests`` so tests can count calls.
    """

    def __init__(self, repos: Optional[List[Dict[str, Any]]] = None):
        self.repos: List[Dict[str, Any]] = repos or []
        self.commits: Dict[str, List[Dict[str, Any]]] = {}
        self.readmes: Dict[str, str] = {}
        self.topics: Dict[str, List[str]] = {}
        self.failing_topics: set = set()
        self.failing_commits: set = set()
        self.forced_error: Optional[httpx.Response] = None
        self.requests: List[httpx.Request] = []

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.forced_error is not None:
            return self.forced_error

        parts = request.url.path.strip("/").split("/")
        params = request.url.params

        if parts[0] == "rate_limit":
            return httpx.Response(200, json={
                "rate": {"limit": 5000, "remaining": 4990, "used": 10, "reset": 1700000000},
            })

        if parts[0] == "users" and parts[2] == "repos":
            per_page = int(params.get("per_page", 30))
            page = int(params.get("page", 1))
            start = (page - 1) * per_page
            return httpx.Response(200, json=self.repos[start:start + per_page])

        if parts[0] == "repos":
            repo_name = parts[2]
            repo = next((r for r in self.repos if r["name"] == repo_name), None)
            if repo is None:
                return httpx.Response(404, json={"message": "Not Found"})
            if len(parts) == 3:
                return httpx.Response(200, json=repo)
            if parts[3] == "topics":
                if repo_name in self.failing_topics:
                    return httpx.Response(500, json={"message": "Server Error"})
                return httpx.Response(200, json={"names": self.topics.get(repo_name, [])})
            if parts[3] == "readme":
                if repo_name not in self.readmes:
                    return httpx.Response(404, json={"message": "Not Found"})
                encoded = base64.b64encode(self.readmes[repo_name].encode("utf-8")).decode("ascii")
                return httpx.Response(200, json={"content": encoded, "encoding": "base64"})
            if parts[3] == "commits":
                if repo_name in self.failing_commits:
                    return httpx.Response(409, json={"message": "Git Repository is empty."})
                per_page = int(params.get("per_page", 30))
                return httpx.Response(200, json=self.commits.get(repo_name, [])[:per_page])

        return httpx.Response(404, json={"message": "Not Found"})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return CacheStore(default_ttl=60, check_period=30, clock=clock)


@pytest.fixture
def github():
    return FakeGitHub()


@pytest.fixture
def client(github):
    return GitHubClient(token="test-token", base_url="https://api.github.test", transport=github.transport())


@pytest.fixture
def fetcher(client, cache):
    return GitHubFetcher(client=client, cache=cache, username=USERNAME)


@pytest.fixture
def settings():
    return GitInsightSettings(
        github_token="test-token",
        github_username=USERNAME,
        github_api_base_url="https://api.github.test",
        cache_ttl_seconds=60,
        cache_check_period_seconds=30,
        profile_name="Mona Octocat",
        pinned_projects="flagship",
    )


@pytest.fixture
def profile():
    return DeveloperProfile(
        username=USERNAME,
        name="Mona Octocat",
        title="Backend Engineer",
        github_url=f"https://github.com/{USERNAME}",
    )
