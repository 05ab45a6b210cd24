"""
GitHub REST API client.

Handles HTTP, auth headers and error classification. Returns raw JSON;
normalization into records and caching live in ``fetcher``.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .errors import (
    AuthenticationError,
    GitHubAPIError,
    GitHubTransportError,
    NotFoundError,
    RateLimitError,
)
from .models import RateLimitStatus

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"
USER_AGENT = "GitInsight-MCP/1.0.0"


# ── Error classification ──────────────────────────────────────────────────


def _error_message(response: httpx.Response) -> str:
    """The ``message`` field of an error body, or the start of the raw text."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or "")
    return response.text[:200]


def _is_rate_limited(response: httpx.Response) -> bool:
    if response.status_code == 429:
        return True
    if response.status_code != 403:
        return False
    return (
        response.headers.get("x-ratelimit-remaining") == "0"
        or "retry-after" in response.headers
        # proxies and some GHE setups strip the rate-limit headers
        or "rate limit" in _error_message(response).lower()
    )


def _reset_at(response: httpx.Response) -> Optional[str]:
    reset = response.headers.get("x-ratelimit-reset")
    if not reset or not reset.isdigit():
        return None
    return RateLimitStatus(limit=0, remaining=0, used=0, reset=int(reset)).reset_at


def classify_response(response: httpx.Response) -> GitHubAPIError:
    """Map a failed response to the matching typed error."""
    status = response.status_code
    if status == 401:
        return AuthenticationError(status_code=status)
    if _is_rate_limited(response):
        return RateLimitError(status_code=status, reset_at=_reset_at(response))
    if status == 404:
        return NotFoundError(resource=response.request.url.path, status_code=status)
    return GitHubAPIError(f"GitHub API error {status}: {_error_message(response)}", status_code=status)


# ── Client ────────────────────────────────────────────────────────────────


class GitHubClient:
    """Async GitHub REST client. One instance per server process."""

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
            "User-Agent": USER_AGENT,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ── Core fetch helper ──────────────────────────────────────────────

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _send(self, path: str, params: Optional[Dict[str, Any]]) -> httpx.Response:
        return await self._client.get(path, params=params)

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Perform a GET request and return parsed JSON."""
        try:
            response = await self._send(path, params)
        except httpx.TransportError as exc:
            raise GitHubTransportError(f"Could not reach GitHub API: {exc}") from exc

        if response.is_error:
            raise classify_response(response)
        return response.json()

    # ── Endpoints ──────────────────────────────────────────────────────

    async def list_user_repos(self, username: str, page: int = 1, per_page: int = 100) -> List[Dict[str, Any]]:
        return await self._get(
            f"/users/{username}/repos",
            params={"per_page": per_page, "page": page, "sort": "updated", "direction": "desc"},
        )

    async def get_repo(self, owner: str, repo: str) -> Dict[str, Any]:
        return await self._get(f"/repos/{owner}/{repo}")

    async def get_repo_topics(self, owner: str, repo: str) -> List[str]:
        data = await self._get(f"/repos/{owner}/{repo}/topics")
        return data.get("names", [])

    async def get_readme(self, owner: str, repo: str) -> Dict[str, Any]:
        """README metadata; the body is base64 in the ``content`` field."""
        return await self._get(f"/repos/{owner}/{repo}/readme")

    async def list_commits(
        self,
        owner: str,
        repo: str,
        author: Optional[str] = None,
        per_page: int = 30,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"per_page": per_page}
        if author:
            params["author"] = author
        return await self._get(f"/repos/{owner}/{repo}/commits", params=params)

    async def get_rate_limit(self) -> Dict[str, Any]:
        return await self._get("/rate_limit")
