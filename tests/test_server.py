"""Tests for the MCP server surface and the shared runtime."""

import json

import pytest

from conftest import make_raw_commit, make_raw_repo
from gitinsight_mcp.server import GitInsightRuntime, build_profile, create_server


@pytest.fixture
def runtime(settings, github, cache):
    github.repos.extend([
        make_raw_repo("flagship", stars=2, language="Go"),
        make_raw_repo("notes", stars=0, language="Python"),
    ])
    github.commits["flagship"] = [make_raw_commit("f1", "2024-05-03T09:00:00Z")]
    return GitInsightRuntime(settings, transport=github.transport(), cache=cache)


@pytest.fixture
def mcp(runtime):
    return create_server(runtime)


def test_build_profile_comes_from_settings(settings):
    profile = build_profile(settings)
    assert profile.display_name == "Mona Octocat"
    assert profile.github_url == "https://github.com/octocat"
    assert profile.pinned_projects == ["flagship"]


@pytest.mark.asyncio
async def test_tools_are_listed(mcp, runtime):
    tools = await mcp.list_tools()
    assert sorted(tool.name for tool in tools) == sorted(runtime.dispatcher.tool_names)

    details = next(tool for tool in tools if tool.name == "get_repository_details")
    assert details.inputSchema["required"] == ["repository_name"]


@pytest.mark.asyncio
async def test_resources_are_listed(mcp):
    resources = await mcp.list_resources()
    templates = await mcp.list_resource_templates()

    assert {str(resource.uri) for resource in resources} == {
        "gitinsight://profile",
        "gitinsight://repositories",
        "gitinsight://stats",
        "gitinsight://activity",
        "gitinsight://skills",
        "gitinsight://rate-limit",
    }
    assert [template.uriTemplate for template in templates] == ["gitinsight://repositories/{name}"]


@pytest.mark.asyncio
async def test_prompts_are_listed(mcp):
    prompts = await mcp.list_prompts()
    assert {prompt.name for prompt in prompts} == {
        "portfolio_review",
        "tech_stack_analysis",
        "project_deep_dive",
        "activity_report",
    }


@pytest.mark.asyncio
async def test_reading_a_resource_returns_an_envelope(mcp):
    contents = list(await mcp.read_resource("gitinsight://stats"))
    envelope = json.loads(contents[0].content)
    assert envelope["success"] is True
    assert envelope["data"]["total_repositories"] == 2


@pytest.mark.asyncio
async def test_repository_template_resource(mcp):
    contents = list(await mcp.read_resource("gitinsight://repositories/flagship"))
    envelope = json.loads(contents[0].content)
    assert envelope["data"]["repository"]["name"] == "flagship"


@pytest.mark.asyncio
async def test_profile_resource_needs_no_github_call(mcp, github):
    contents = list(await mcp.read_resource("gitinsight://profile"))
    assert json.loads(contents[0].content)["name"] == "Mona Octocat"
    assert github.requests == []


@pytest.mark.asyncio
async def test_project_deep_dive_prompt_names_the_repository(mcp):
    result = await mcp.get_prompt("project_deep_dive", {"repository_name": "flagship"})
    text = result.messages[0].content.text
    assert "octocat/flagship" in text
    assert "include_readme=true" in text


@pytest.mark.asyncio
async def test_call_tool_drops_unset_arguments(runtime):
    payload = json.loads(await runtime.call_tool(
        "get_recent_commits", {"repository_name": None, "limit": 10, "use_cache": True}
    ))
    assert payload["success"] is True
    assert [commit["sha"] for commit in payload["data"]] == ["f1"]


@pytest.mark.asyncio
async def test_portfolio_features_pinned_projects(runtime):
    payload = json.loads(await runtime.call_tool("generate_portfolio_summary", {}))
    assert payload["data"]["featured_projects"][0]["name"] == "flagship"


@pytest.mark.asyncio
async def test_sessions_share_one_sweeper(runtime, github):
    async with runtime.session():
        assert runtime.cache.sweeper_running
        async with runtime.session():
            assert runtime.cache.sweeper_running
        assert runtime.cache.sweeper_running
    assert not runtime.cache.sweeper_running
    # the quota is logged once, when the first session opens
    assert github.paths().count("/rate_limit") == 1
    await runtime.aclose()
