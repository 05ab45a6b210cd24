"""
Tool dispatch: maps a tool name and its argument object to the fetcher and
analytics layers, and wraps every outcome in a uniform envelope.

Success::

    {"success": true, "data": ..., "cached": true, "timestamp": "..."}

Failure::

    {"success": false,
     "error": {"error": "LIST_REPOSITORIES_ERROR", "message": "...",
               "details": {"category": "rate_limit", ...}, "timestamp": "..."},
     "timestamp": "..."}

No exception escapes ``ToolDispatcher.dispatch``.
"""
import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from . import analytics
from .errors import GitInsightError, ToolValidationError
from .fetcher import DEFAULT_COMMIT_LIMIT, GitHubFetcher
from .filters import DEFAULT_ORDERS, SearchFilters, sort_repositories
from .logger import get_logger, log_tool_result
from .models import DeveloperProfile

logger = get_logger(__name__)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def success_envelope(data: Any, cached: bool) -> Dict[str, Any]:
    return {"success": True, "data": data, "cached": cached, "timestamp": utc_timestamp()}


def error_envelope(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    timestamp = utc_timestamp()
    error: Dict[str, Any] = {"error": code, "message": message, "timestamp": timestamp}
    if details:
        error["details"] = details
    return {"success": False, "error": error, "timestamp": timestamp}


# ── Argument helpers ──────────────────────────────────────────────────────


def _get_bool(args: Mapping[str, Any], name: str, default: bool) -> bool:
    value = args.get(name)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise ToolValidationError(f"{name} must be a boolean")


def _get_int(args: Mapping[str, Any], name: str, default: Optional[int] = None) -> Optional[int]:
    value = args.get(name)
    if value is None:
        return default
    if isinstance(value, bool):
        raise ToolValidationError(f"{name} must be a number")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, int):
        return value
    raise ToolValidationError(f"{name} must be a number")


def _get_str(args: Mapping[str, Any], name: str, required: bool = False) -> Optional[str]:
    value = args.get(name)
    if value is None or value == "":
        if required:
            raise ToolValidationError(f"{name} is required")
        return None
    if not isinstance(value, str):
        raise ToolValidationError(f"{name} must be a string")
    return value


# ── Dispatcher ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ToolSpec:
    name: str
    error_code: str
    failure_prefix: str
    handler: Callable[[Mapping[str, Any]], Awaitable[Any]]
    cacheable: bool = True


class ToolDispatcher:
    """Runs named tools against a fetcher and returns result envelopes."""

    def __init__(self, fetcher: GitHubFetcher, profile: DeveloperProfile):
        self.fetcher = fetcher
        self.profile = profile
        self._tools: Dict[str, ToolSpec] = {}
        self._register("list_repositories", "LIST_REPOSITORIES_ERROR",
                       "Failed to list repositories", self._list_repositories)
        self._register("get_repository_details", "GET_REPOSITORY_DETAILS_ERROR",
                       "Failed to get repository details", self._get_repository_details)
        self._register("get_recent_commits", "GET_RECENT_COMMITS_ERROR",
                       "Failed to get recent commits", self._get_recent_commits)
        self._register("get_repository_stats", "GET_REPOSITORY_STATS_ERROR",
                       "Failed to get repository stats", self._get_repository_stats)
        self._register("search_projects_by_tech", "SEARCH_PROJECTS_ERROR",
                       "Failed to search projects", self._search_projects_by_tech)
        self._register("get_contribution_activity", "GET_CONTRIBUTION_ACTIVITY_ERROR",
                       "Failed to get contribution activity", self._get_contribution_activity)
        self._register("get_skills_matrix", "GET_SKILLS_MATRIX_ERROR",
                       "Failed to generate skills matrix", self._get_skills_matrix)
        self._register("generate_portfolio_summary", "GENERATE_PORTFOLIO_ERROR",
                       "Failed to generate portfolio", self._generate_portfolio_summary)
        self._register("get_rate_limit", "GET_RATE_LIMIT_ERROR",
                       "Failed to get rate limit", self._get_rate_limit, cacheable=False)
        self._register("clear_cache", "CLEAR_CACHE_ERROR",
                       "Failed to clear cache", self._clear_cache, cacheable=False)

    def _register(self, name, error_code, failure_prefix, handler, cacheable=True) -> None:
        self._tools[name] = ToolSpec(name, error_code, failure_prefix, handler, cacheable)

    @property
    def tool_names(self) -> List[str]:
        return list(self._tools)

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    async def dispatch(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        args = arguments or {}
        spec = self._tools.get(name)
        if spec is None:
            logger.warning(f"Unknown tool requested: {name}")
            return error_envelope("UNKNOWN_TOOL", f"Unknown tool: {name}", {"category": "validation"})

        logger.info(f"{name} called with: {dict(args)}")
        started = time.perf_counter()
        try:
            use_cache = _get_bool(args, "use_cache", True)
            data = await spec.handler(args)
        except GitInsightError as exc:
            logger.error(f"Error in {name}: {exc.message}")
            envelope = error_envelope(spec.error_code, f"{spec.failure_prefix}: {exc.message}", exc.to_details())
        except ValueError as exc:
            logger.error(f"Invalid arguments for {name}: {exc}")
            envelope = error_envelope(spec.error_code, f"{spec.failure_prefix}: {exc}", {"category": "validation"})
        except Exception as exc:
            logger.exception(f"Unexpected error in {name}")
            envelope = error_envelope(spec.error_code, f"{spec.failure_prefix}: {exc}", {"category": "internal"})
        else:
            envelope = success_envelope(data, cached=use_cache and spec.cacheable)

        log_tool_result(logger, name, started, envelope["success"])
        return envelope

    # ── Handlers ─────────────────────────────────────────────────────────

    async def _list_repositories(self, args: Mapping[str, Any]) -> List[Dict[str, Any]]:
        use_cache = _get_bool(args, "use_cache", True)
        sort_by = _get_str(args, "sort_by")
        limit = _get_int(args, "limit")

        repos = await self.fetcher.list_repositories(use_cache)
        if sort_by:
            if sort_by not in DEFAULT_ORDERS:
                raise ToolValidationError(f"sort_by must be one of {', '.join(DEFAULT_ORDERS)}")
            repos = sort_repositories(repos, sort_by, DEFAULT_ORDERS[sort_by])
        if limit and limit > 0:
            repos = repos[:limit]

        logger.info(f"Returning {len(repos)} repositories")
        return [repo.to_dict() for repo in repos]

    async def _get_repository_details(self, args: Mapping[str, Any]) -> Dict[str, Any]:
        repo_name = _get_str(args, "repository_name", required=True)
        use_cache = _get_bool(args, "use_cache", True)
        include_readme = _get_bool(args, "include_readme", False)

        detail = await self.fetcher.get_repository_details(repo_name, use_cache)
        response: Dict[str, Any] = {"repository": detail.to_dict()}
        if include_readme:
            response["readme"] = await self.fetcher.get_repository_readme(repo_name, use_cache)
        return response

    async def _get_recent_commits(self, args: Mapping[str, Any]) -> List[Dict[str, Any]]:
        repo_name = _get_str(args, "repository_name")
        limit = _get_int(args, "limit", DEFAULT_COMMIT_LIMIT)
        if limit is None or limit <= 0:
            raise ToolValidationError("limit must be a positive number")

        commits = await self.fetcher.get_recent_commits(repo_name, limit, _get_bool(args, "use_cache", True))
        logger.info(f"Returning {len(commits)} commits")
        return [commit.to_dict() for commit in commits]

    async def _get_repository_stats(self, args: Mapping[str, Any]) -> Dict[str, Any]:
        stats = await self.fetcher.get_repository_stats(_get_bool(args, "use_cache", True))
        return stats.to_dict()

    async def _search_projects_by_tech(self, args: Mapping[str, Any]) -> List[Dict[str, Any]]:
        filters = SearchFilters(
            language=_get_str(args, "language"),
            topic=_get_str(args, "topic"),
            min_stars=_get_int(args, "min_stars"),
            sort_by=_get_str(args, "sort_by"),
            order=_get_str(args, "order") or "desc",
        )
        repos = await self.fetcher.search_projects(filters, _get_bool(args, "use_cache", True))
        logger.info(f"Found {len(repos)} matching repositories")
        return [repo.to_dict() for repo in repos]

    async def _get_contribution_activity(self, args: Mapping[str, Any]) -> Dict[str, Any]:
        activity = await self.fetcher.get_contribution_activity(_get_bool(args, "use_cache", True))
        return activity.to_dict()

    async def _get_skills_matrix(self, args: Mapping[str, Any]) -> Dict[str, Any]:
        use_cache = _get_bool(args, "use_cache", True)
        repos, stats = await asyncio.gather(
            self.fetcher.list_repositories(use_cache),
            self.fetcher.get_repository_stats(use_cache),
        )
        return analytics.build_skills_matrix(repos, stats, self.profile)

    async def _generate_portfolio_summary(self, args: Mapping[str, Any]) -> Dict[str, Any]:
        use_cache = _get_bool(args, "use_cache", True)
        repos, stats, activity = await asyncio.gather(
            self.fetcher.list_repositories(use_cache),
            self.fetcher.get_repository_stats(use_cache),
            self.fetcher.get_contribution_activity(use_cache),
        )
        return analytics.build_portfolio_summary(repos, stats, activity, self.profile)

    async def _get_rate_limit(self, args: Mapping[str, Any]) -> Dict[str, Any]:
        status = await self.fetcher.get_rate_limit()
        return status.to_dict()

    async def _clear_cache(self, args: Mapping[str, Any]) -> Dict[str, Any]:
        return {"cleared_entries": self.fetcher.clear_cache()}
