"""Tests for the REST bridge."""

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import make_raw_repo
from gitinsight_mcp.api import create_app
from gitinsight_mcp.server import GitInsightRuntime, create_server


@pytest.fixture
def http(settings, github, cache):
    github.repos.extend([
        make_raw_repo("flagship", stars=2, language="Go"),
        make_raw_repo("notes", stars=5, language="Python"),
    ])
    runtime = GitInsightRuntime(settings, transport=github.transport(), cache=cache)
    return TestClient(create_app(runtime, create_server(runtime)))


def test_health(http):
    body = http.get("/health").json()
    assert body["status"] == "ok"
    assert body["github_user"] == "octocat"
    assert body["cache"]["keys"] == 0


def test_tool_listing(http):
    assert "get_skills_matrix" in http.get("/api/tools").json()["tools"]


def test_repositories_sorted(http):
    response = http.get("/api/repositories", params={"sort_by": "stars"})
    assert response.status_code == 200
    assert [repo["name"] for repo in response.json()["data"]] == ["notes", "flagship"]


def test_generic_tool_endpoint(http):
    response = http.post("/api/tools/search_projects_by_tech", json={"language": "go"})
    assert [repo["name"] for repo in response.json()["data"]] == ["flagship"]


def test_unknown_tool_is_404(http):
    assert http.post("/api/tools/nope", json={}).status_code == 404


def test_not_found_maps_to_404(http):
    response = http.get("/api/repositories/ghost")
    assert response.status_code == 404
    assert response.json()["error"]["error"] == "GET_REPOSITORY_DETAILS_ERROR"


def test_rate_limit_maps_to_429(http, github):
    github.forced_error = httpx.Response(429, json={"message": "slow down"})
    response = http.get("/api/stats")
    assert response.status_code == 429
    assert response.json()["error"]["details"]["category"] == "rate_limit"
