"""
MCP Server – Exposes a GitHub profile as MCP Tools, Resources and Prompts.

Tools (callable actions, all return a JSON result envelope):
    list_repositories           – every public repository, optionally sorted
    get_repository_details      – one repository, optionally with its README
    get_recent_commits          – recent commits for one or several repositories
    get_repository_stats        – aggregate stars, forks, languages
    search_projects_by_tech     – filter by language, topic, minimum stars
    get_contribution_activity   – streak and most active day from recent commits
    get_skills_matrix           – languages, domains and topics with proficiency tiers
    generate_portfolio_summary  – recruiter-friendly portfolio overview
    get_rate_limit              – live GitHub API quota
    clear_cache                 – drop every cached response

Resources (read-only context for LLMs):
    gitinsight://profile
    gitinsight://repositories
    gitinsight://repositories/{name}
    gitinsight://stats
    gitinsight://activity
    gitinsight://skills
    gitinsight://rate-limit

Prompts:
    portfolio_review, tech_stack_analysis, project_deep_dive, activity_report
"""
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Literal, Optional

import httpx
from mcp.server.fastmcp import FastMCP

from .cache import CacheStore
from .config import GitInsightSettings
from .errors import GitHubAPIError
from .fetcher import GitHubFetcher
from .github_client import GitHubClient
from .models import DeveloperProfile
from .tools import ToolDispatcher

logger = logging.getLogger(__name__)

SERVER_NAME = "gitinsight-mcp"


def build_profile(settings: GitInsightSettings) -> DeveloperProfile:
    return DeveloperProfile(
        username=settings.github_username,
        name=settings.profile_name,
        title=settings.profile_title,
        location=settings.profile_location,
        email=settings.profile_email,
        portfolio_url=settings.profile_portfolio_url,
        github_url=settings.github_profile_url,
        pinned_projects=settings.pinned_project_names,
    )


def to_json(payload: Any) -> str:
    return json.dumps(payload, indent=2, default=str)


class GitInsightRuntime:
    """
    The collaborators shared by every transport: cache, GitHub client,
    fetcher and tool dispatcher. Built once per process.
    """

    def __init__(
        self,
        settings: GitInsightSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[CacheStore] = None,
    ):
        self.settings = settings
        self.cache = cache or CacheStore(
            default_ttl=settings.cache_ttl_seconds,
            check_period=settings.cache_check_period_seconds,
        )
        self.client = GitHubClient(
            token=settings.github_token,
            base_url=settings.github_api_base_url,
            transport=transport,
        )
        self.fetcher = GitHubFetcher.from_settings(settings, self.client, self.cache)
        self.profile = build_profile(settings)
        self.dispatcher = ToolDispatcher(self.fetcher, self.profile)
        self._active_sessions = 0

    async def log_rate_limit(self) -> None:
        try:
            status = await self.fetcher.get_rate_limit()
        except GitHubAPIError as exc:
            logger.warning(f"Could not fetch GitHub rate limit: {exc.message}")
            return
        logger.info(f"GitHub API Rate Limit: {status.remaining}/{status.limit}")
        logger.info(f"Rate limit resets at: {status.reset_at}")

    @asynccontextmanager
    async def session(self) -> AsyncIterator["GitInsightRuntime"]:
        """
        Scope of one client connection. The cache sweeper runs while at
        least one session is open.
        """
        if self._active_sessions == 0:
            self.cache.start_sweeper()
            await self.log_rate_limit()
        self._active_sessions += 1
        try:
            yield self
        finally:
            self._active_sessions -= 1
            if self._active_sessions == 0:
                self.cache.stop_sweeper()

    async def aclose(self) -> None:
        self.cache.stop_sweeper()
        await self.client.aclose()

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> str:
        # Arguments left unset by the client are dropped so tool defaults apply
        args = {key: value for key, value in arguments.items() if value is not None}
        return to_json(await self.dispatcher.dispatch(name, args))


def create_server(runtime: GitInsightRuntime) -> FastMCP:
    """Build the FastMCP server bound to ``runtime``."""
    username = runtime.settings.github_username

    @asynccontextmanager
    async def lifespan(server: FastMCP) -> AsyncIterator[Dict[str, Any]]:
        async with runtime.session():
            yield {"runtime": runtime}

    mcp = FastMCP(
        "GitInsight MCP Server",
        instructions=(
            f"MCP server exposing the GitHub profile of {username}: repositories, "
            "recent commits, aggregate statistics, skills and a portfolio summary. "
            "Responses are cached; pass use_cache=false to force fresh data."
        ),
        lifespan=lifespan,
    )

    _register_tools(mcp, runtime)
    _register_resources(mcp, runtime)
    _register_prompts(mcp, runtime)
    return mcp


# ═══════════════════════════════════════════════════════════════════════════
#  TOOLS  –  callable actions
# ═══════════════════════════════════════════════════════════════════════════


def _register_tools(mcp: FastMCP, runtime: GitInsightRuntime) -> None:
    username = runtime.settings.github_username

    @mcp.tool(description=(
        f"Lists all public repositories for GitHub user {username}, with name, description, "
        "stars, forks, language, topics and last update date. Supports sorting by stars, forks, "
        "updated date or name, and limiting the number of results."
    ))
    async def list_repositories(
        use_cache: bool = True,
        sort_by: Optional[Literal["stars", "forks", "updated", "name"]] = None,
        limit: Optional[int] = None,
    ) -> str:
        return await runtime.call_tool(
            "list_repositories", {"use_cache": use_cache, "sort_by": sort_by, "limit": limit}
        )

    @mcp.tool()
    async def get_repository_details(
        repository_name: str,
        use_cache: bool = True,
        include_readme: bool = False,
    ) -> str:
        """
        Get full metadata for one repository: topics, open issues, creation date,
        homepage and, optionally, the README content.

        Args:
            repository_name: Name of the repository (e.g. "GitInsight-MCP").
            use_cache: Whether to use cached data (default true).
            include_readme: Include README content in the response (default false).
        """
        return await runtime.call_tool("get_repository_details", {
            "repository_name": repository_name,
            "use_cache": use_cache,
            "include_readme": include_readme,
        })

    @mcp.tool()
    async def get_recent_commits(
        repository_name: Optional[str] = None,
        limit: int = 50,
        use_cache: bool = True,
    ) -> str:
        """
        Fetch recent commits for one repository, or across the most recently
        updated repositories when no name is given.

        Args:
            repository_name: Optional repository name.
            limit: Maximum number of commits to return (default 50).
            use_cache: Whether to use cached data (default true).
        """
        return await runtime.call_tool("get_recent_commits", {
            "repository_name": repository_name,
            "limit": limit,
            "use_cache": use_cache,
        })

    @mcp.tool()
    async def get_repository_stats(use_cache: bool = True) -> str:
        """
        Aggregate statistics across all repositories: totals, language breakdown
        with percentages, most starred/forked and recently updated repositories.
        """
        return await runtime.call_tool("get_repository_stats", {"use_cache": use_cache})

    @mcp.tool()
    async def search_projects_by_tech(
        language: Optional[str] = None,
        topic: Optional[str] = None,
        min_stars: Optional[int] = None,
        sort_by: Optional[Literal["stars", "forks", "updated", "created", "name"]] = None,
        order: Literal["asc", "desc"] = "desc",
        use_cache: bool = True,
    ) -> str:
        """
        Search repositories by language (exact, case-insensitive), topic
        (substring, case-insensitive) and minimum stars, with optional sorting.

        Args:
            language: e.g. "Python", "TypeScript".
            topic: e.g. "devops", "machine-learning".
            min_stars: Minimum number of stars (inclusive).
            sort_by: Sort field.
            order: "asc" or "desc" (default "desc").
            use_cache: Whether to use cached data (default true).
        """
        return await runtime.call_tool("search_projects_by_tech", {
            "language": language,
            "topic": topic,
            "min_stars": min_stars,
            "sort_by": sort_by,
            "order": order,
            "use_cache": use_cache,
        })

    @mcp.tool()
    async def get_contribution_activity(use_cache: bool = True) -> str:
        """
        Contribution metrics estimated from recent commits: total commits,
        repositories contributed to, most active day and current streak.
        """
        return await runtime.call_tool("get_contribution_activity", {"use_cache": use_cache})

    @mcp.tool()
    async def get_skills_matrix(use_cache: bool = True) -> str:
        """Skills matrix: languages, domains and topics with proficiency tiers."""
        return await runtime.call_tool("get_skills_matrix", {"use_cache": use_cache})

    @mcp.tool()
    async def generate_portfolio_summary(use_cache: bool = True) -> str:
        """Recruiter-friendly portfolio summary with featured projects and GitHub metrics."""
        return await runtime.call_tool("generate_portfolio_summary", {"use_cache": use_cache})

    @mcp.tool()
    async def get_rate_limit() -> str:
        """Current GitHub API rate limit status (never cached)."""
        return await runtime.call_tool("get_rate_limit", {})

    @mcp.tool()
    async def clear_cache() -> str:
        """Drop every cached GitHub response."""
        return await runtime.call_tool("clear_cache", {})


# ═══════════════════════════════════════════════════════════════════════════
#  RESOURCES  –  read-only data exposed as context to LLMs / clients
# ═══════════════════════════════════════════════════════════════════════════


def _register_resources(mcp: FastMCP, runtime: GitInsightRuntime) -> None:

    @mcp.resource("gitinsight://profile", mime_type="application/json")
    def resource_profile() -> str:
        """Who this server describes."""
        profile = runtime.profile
        return to_json({
            "username": profile.username,
            "name": profile.display_name,
            "title": profile.title,
            "location": profile.location,
            "github_url": profile.github_url,
            "portfolio_url": profile.portfolio_url,
            "pinned_projects": profile.pinned_projects,
        })

    @mcp.resource("gitinsight://repositories", mime_type="application/json")
    async def resource_repositories() -> str:
        """All public repositories."""
        return await runtime.call_tool("list_repositories", {})

    @mcp.resource("gitinsight://repositories/{name}", mime_type="application/json")
    async def resource_repository(name: str) -> str:
        """One repository's full metadata."""
        return await runtime.call_tool("get_repository_details", {"repository_name": name})

    @mcp.resource("gitinsight://stats", mime_type="application/json")
    async def resource_stats() -> str:
        """Aggregate repository statistics."""
        return await runtime.call_tool("get_repository_stats", {})

    @mcp.resource("gitinsight://activity", mime_type="application/json")
    async def resource_activity() -> str:
        """Contribution activity estimated from recent commits."""
        return await runtime.call_tool("get_contribution_activity", {})

    @mcp.resource("gitinsight://skills", mime_type="application/json")
    async def resource_skills() -> str:
        """Skills matrix."""
        return await runtime.call_tool("get_skills_matrix", {})

    @mcp.resource("gitinsight://rate-limit", mime_type="application/json")
    async def resource_rate_limit() -> str:
        """Live GitHub API quota."""
        return await runtime.call_tool("get_rate_limit", {})


# ═══════════════════════════════════════════════════════════════════════════
#  PROMPTS  –  pre-built prompt templates
# ═══════════════════════════════════════════════════════════════════════════


def _register_prompts(mcp: FastMCP, runtime: GitInsightRuntime) -> None:
    username = runtime.settings.github_username

    @mcp.prompt()
    def portfolio_review() -> str:
        """Review the developer's GitHub portfolio as a technical recruiter would."""
        return (
            f"You are reviewing the GitHub portfolio of {username}.\n"
            "1. Call generate_portfolio_summary and get_repository_stats.\n"
            "2. Summarize the developer's strengths in 3-5 bullet points.\n"
            "3. Point out the two or three projects a recruiter should open first, and why.\n"
            "4. Suggest concrete improvements (documentation, topics, project descriptions)."
        )

    @mcp.prompt()
    def tech_stack_analysis() -> str:
        """Analyze which languages and domains the developer works in."""
        return (
            f"Analyze the technology stack of GitHub user {username}.\n"
            "Use get_skills_matrix for languages, domains and proficiency tiers, and "
            "search_projects_by_tech to look at individual languages or topics.\n"
            "Describe the primary stack, secondary skills, and any gaps worth filling."
        )

    @mcp.prompt()
    def project_deep_dive(repository_name: str) -> str:
        """Explain one repository in depth."""
        return (
            f"Give a deep dive into the repository {username}/{repository_name}.\n"
            f"Call get_repository_details with repository_name=\"{repository_name}\" and "
            "include_readme=true, then get_recent_commits for the same repository.\n"
            "Explain what the project does, how it is built, how actively it is maintained, "
            "and what stands out technically."
        )

    @mcp.prompt()
    def activity_report() -> str:
        """Summarize recent development activity."""
        return (
            f"Write a short activity report for GitHub user {username}.\n"
            "Call get_contribution_activity and get_recent_commits (limit 20).\n"
            "Report the current streak, the most active day, the repositories that "
            "received commits, and the main themes of the recent commit messages."
        )
