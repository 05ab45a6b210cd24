"""
Cache-aware access to the profile's GitHub data.

Every operation checks the cache first (unless ``use_cache=False``),
calls the GitHub client on a miss, normalizes the response into records
and stores the result. Cache keys are scoped to the profile's username.
"""
import asyncio
import base64
from typing import List, Optional

from . import analytics
from .cache import CacheStore
from .config import GitInsightSettings
from .errors import AuthenticationError, GitHubAPIError, GitHubTransportError, RateLimitError
from .filters import SearchFilters, apply_filters
from .github_client import GitHubClient
from .logger import get_logger
from .models import (
    ActivitySnapshot,
    CommitRecord,
    RateLimitStatus,
    RepositoryDetail,
    RepositoryRecord,
    StatsSnapshot,
)

logger = get_logger(__name__)

PAGE_SIZE = 100
DEFAULT_COMMIT_LIMIT = 50
ACTIVITY_SAMPLE_SIZE = 100
DEFAULT_FANOUT_REPOSITORIES = 10
DEFAULT_COMMITS_PER_REPOSITORY = 5


class GitHubFetcher:
    """Fetches and caches repositories, commits and derived statistics for one user."""

    def __init__(
        self,
        client: GitHubClient,
        cache: CacheStore,
        username: str,
        fanout_repositories: int = DEFAULT_FANOUT_REPOSITORIES,
        commits_per_repository: int = DEFAULT_COMMITS_PER_REPOSITORY,
    ):
        self.client = client
        self.cache = cache
        self.username = username
        self.fanout_repositories = fanout_repositories
        self.commits_per_repository = commits_per_repository
        logger.info(f"Fetcher initialized for user: {username}")

    @classmethod
    def from_settings(cls, settings: GitInsightSettings, client: GitHubClient, cache: CacheStore) -> "GitHubFetcher":
        return cls(
            client=client,
            cache=cache,
            username=settings.github_username,
            fanout_repositories=settings.commit_fanout_repositories,
            commits_per_repository=settings.commits_per_repository,
        )

    def _cached(self, key: str, use_cache: bool):
        if not use_cache:
            return None
        return self.cache.get(key)

    # ── Repositories ──────────────────────────────────────────────────────

    async def list_repositories(self, use_cache: bool = True) -> List[RepositoryRecord]:
        """All public repositories, most recently updated first."""
        cache_key = f"repos:{self.username}:all"
        cached = self._cached(cache_key, use_cache)
        if cached is not None:
            return cached

        logger.info(f"Fetching repositories for {self.username}...")
        raw_repos = []
        page = 1
        while True:
            batch = await self.client.list_user_repos(self.username, page=page, per_page=PAGE_SIZE)
            raw_repos.extend(batch)
            if len(batch) < PAGE_SIZE:
                break
            page += 1

        repos = [RepositoryRecord.from_api(raw) for raw in raw_repos]
        logger.info(f"Fetched {len(repos)} repositories in {page} page(s)")

        self.cache.set(cache_key, repos)
        return repos

    async def get_repository_details(self, repo_name: str, use_cache: bool = True) -> RepositoryDetail:
        cache_key = f"repo:{self.username}:{repo_name}"
        cached = self._cached(cache_key, use_cache)
        if cached is not None:
            return cached

        logger.info(f"Fetching details for {self.username}/{repo_name}...")
        raw = await self.client.get_repo(self.username, repo_name)

        # Topics are best effort: the repository is still returned without them
        try:
            topics = await self.client.get_repo_topics(self.username, repo_name)
        except GitHubAPIError as exc:
            logger.warning(f"Could not fetch topics for {repo_name}: {exc.message}")
            topics = []

        detail = RepositoryDetail.from_api(raw, topics=topics)
        self.cache.set(cache_key, detail)
        return detail

    async def get_repository_readme(self, repo_name: str, use_cache: bool = True) -> str:
        """Decoded README text. A missing or unreadable README yields ""."""
        cache_key = f"readme:{self.username}:{repo_name}"
        cached = self._cached(cache_key, use_cache)
        if cached is not None:
            return cached

        logger.info(f"Fetching README for {self.username}/{repo_name}...")
        try:
            raw = await self.client.get_readme(self.username, repo_name)
            content = base64.b64decode(raw.get("content") or "").decode("utf-8", errors="replace")
        except (GitHubAPIError, ValueError) as exc:
            logger.warning(f"No README for {repo_name}: {exc}")
            return ""

        self.cache.set(cache_key, content)
        return content

    # ── Commits ───────────────────────────────────────────────────────────

    async def _commits_for(self, repo_name: str, per_page: int) -> List[CommitRecord]:
        raw = await self.client.list_commits(self.username, repo_name, author=self.username, per_page=per_page)
        return [CommitRecord.from_api(c, repository=repo_name) for c in raw]

    async def _commits_or_empty(self, repo_name: str) -> List[CommitRecord]:
        """
        Commits for one repository of the fan-out. A repository-level failure
        (empty repository, 404, 409) contributes nothing; quota, credential and
        network failures propagate so a partial sample is never cached.
        """
        try:
            return await self._commits_for(repo_name, self.commits_per_repository)
        except (RateLimitError, AuthenticationError, GitHubTransportError):
            raise
        except GitHubAPIError as exc:
            logger.warning(f"Skipping commits for {repo_name}: {exc.message}")
            return []

    async def get_recent_commits(
        self,
        repo_name: Optional[str] = None,
        limit: int = DEFAULT_COMMIT_LIMIT,
        use_cache: bool = True,
    ) -> List[CommitRecord]:
        """
        Recent commits authored by the profile owner.

        With ``repo_name``, up to ``limit`` commits from that repository.
        Without it, a few commits from each of the first
        ``fanout_repositories`` repositories (in listing order), newest
        first, truncated to ``limit``. Activity in the remaining
        repositories is not inspected.
        """
        cache_key = f"commits:{self.username}:{repo_name or 'all'}:{limit}"
        cached = self._cached(cache_key, use_cache)
        if cached is not None:
            return cached

        if repo_name:
            logger.info(f"Fetching commits for {self.username}/{repo_name}...")
            commits = await self._commits_for(repo_name, limit)
        else:
            logger.info("Fetching recent commits across repositories...")
            repos = await self.list_repositories(use_cache)
            batches = await asyncio.gather(
                *(self._commits_or_empty(repo.name) for repo in repos[:self.fanout_repositories])
            )
            merged = [commit for batch in batches for commit in batch]
            merged.sort(key=lambda c: analytics.timestamp_key(c.date), reverse=True)
            commits = merged[:limit]

        self.cache.set(cache_key, commits)
        return commits

    # ── Derived data ──────────────────────────────────────────────────────

    async def get_repository_stats(self, use_cache: bool = True) -> StatsSnapshot:
        cache_key = f"stats:{self.username}"
        cached = self._cached(cache_key, use_cache)
        if cached is not None:
            return cached

        logger.info("Calculating repository statistics...")
        stats = analytics.build_stats(await self.list_repositories(use_cache))
        self.cache.set(cache_key, stats)
        return stats

    async def search_projects(self, filters: SearchFilters, use_cache: bool = True) -> List[RepositoryRecord]:
        cache_key = f"search:{self.username}:{filters.cache_token()}"
        cached = self._cached(cache_key, use_cache)
        if cached is not None:
            return cached

        logger.info(f"Searching repositories with filters: {filters}")
        repos = apply_filters(await self.list_repositories(use_cache), filters)
        self.cache.set(cache_key, repos)
        return repos

    async def get_contribution_activity(self, use_cache: bool = True) -> ActivitySnapshot:
        cache_key = f"activity:{self.username}"
        cached = self._cached(cache_key, use_cache)
        if cached is not None:
            return cached

        logger.info(f"Fetching contribution activity for {self.username}...")
        commits = await self.get_recent_commits(None, ACTIVITY_SAMPLE_SIZE, use_cache)
        activity = analytics.build_activity(commits)
        self.cache.set(cache_key, activity)
        return activity

    async def get_rate_limit(self) -> RateLimitStatus:
        """Live rate-limit status. Never cached."""
        return RateLimitStatus.from_api(await self.client.get_rate_limit())

    def clear_cache(self) -> int:
        count = len(self.cache.keys())
        self.cache.clear()
        return count
