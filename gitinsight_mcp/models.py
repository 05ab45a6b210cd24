"""
Normalized records built from GitHub API responses, and the derived
snapshots computed from them.

Records are frozen: they are shared by reference between concurrent tool
calls and the cache, and are replaced wholesale on refetch.
"""
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple


def _unique_topics(topics: Optional[Iterable[str]]) -> Tuple[str, ...]:
    """Drop duplicate topics (case-sensitive), keeping first occurrence order."""
    seen = []
    for topic in topics or ():
        if topic not in seen:
            seen.append(topic)
    return tuple(seen)


@dataclass(frozen=True)
class RepositoryRecord:
    """Repository metadata as returned by list operations."""

    name: str
    full_name: str
    description: Optional[str]
    url: str
    stars: int
    forks: int
    language: Optional[str]
    topics: Tuple[str, ...]
    last_updated: str
    created_at: str
    open_issues: int
    homepage: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "topics", _unique_topics(self.topics))

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "RepositoryRecord":
        return cls(**_record_fields(raw))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["topics"] = list(self.topics)
        return data


@dataclass(frozen=True)
class RepositoryDetail(RepositoryRecord):
    """Full repository metadata from the single-repository endpoint."""

    id: Optional[int] = None
    default_branch: str = ""
    size_kb: int = 0
    watchers: int = 0
    pushed_at: Optional[str] = None
    visibility: str = ""
    archived: bool = False
    fork: bool = False
    is_template: bool = False

    @classmethod
    def from_api(cls, raw: Dict[str, Any], topics: Optional[Iterable[str]] = None) -> "RepositoryDetail":
        fields = _record_fields(raw)
        if topics is not None:
            fields["topics"] = tuple(topics)
        return cls(
            **fields,
            id=raw.get("id"),
            default_branch=raw.get("default_branch") or "",
            size_kb=raw.get("size") or 0,
            watchers=raw.get("watchers_count") or 0,
            pushed_at=raw.get("pushed_at"),
            visibility=raw.get("visibility") or "",
            archived=bool(raw.get("archived", False)),
            fork=bool(raw.get("fork", False)),
            is_template=bool(raw.get("is_template", False)),
        )


def _record_fields(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "name": raw.get("name", ""),
        "full_name": raw.get("full_name", ""),
        "description": raw.get("description"),
        "url": raw.get("html_url", ""),
        "stars": raw.get("stargazers_count") or 0,
        "forks": raw.get("forks_count") or 0,
        "language": raw.get("language"),
        "topics": tuple(raw.get("topics") or ()),
        "last_updated": raw.get("updated_at") or "",
        "created_at": raw.get("created_at") or "",
        "open_issues": raw.get("open_issues_count") or 0,
        "homepage": raw.get("homepage") or None,
    }


@dataclass(frozen=True)
class CommitRecord:
    """A single commit. Unique by sha within its repository."""

    sha: str
    message: str
    author: str
    date: str
    url: str
    repository: str

    @classmethod
    def from_api(cls, raw: Dict[str, Any], repository: str) -> "CommitRecord":
        commit_info = raw.get("commit") or {}
        author_info = commit_info.get("author") or {}
        return cls(
            sha=raw.get("sha", ""),
            message=commit_info.get("message", ""),
            author=author_info.get("name") or "Unknown",
            date=author_info.get("date") or "",
            url=raw.get("html_url", ""),
            repository=repository,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class LanguageStats:
    language: str
    count: int
    repositories: Tuple[str, ...]
    percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "language": self.language,
            "count": self.count,
            "repositories": list(self.repositories),
            "percentage": self.percentage,
        }


@dataclass(frozen=True)
class StatsSnapshot:
    """Aggregate statistics over the profile's repositories."""

    total_repositories: int
    total_stars: int
    total_forks: int
    languages: Tuple[LanguageStats, ...]
    most_starred_repo: Optional[RepositoryRecord]
    most_forked_repo: Optional[RepositoryRecord]
    recently_updated: Tuple[RepositoryRecord, ...]
    total_open_issues: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_repositories": self.total_repositories,
            "total_stars": self.total_stars,
            "total_forks": self.total_forks,
            "languages": [lang.to_dict() for lang in self.languages],
            "most_starred_repo": self.most_starred_repo.to_dict() if self.most_starred_repo else None,
            "most_forked_repo": self.most_forked_repo.to_dict() if self.most_forked_repo else None,
            "recently_updated": [repo.to_dict() for repo in self.recently_updated],
            "total_open_issues": self.total_open_issues,
        }


@dataclass(frozen=True)
class ActivitySnapshot:
    """
    Activity derived from a bounded commit sample. This is an estimate,
    not the lifetime contribution graph.
    """

    total_commits: int
    repositories_contributed_to: int
    most_active_day: str
    contribution_streak: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RateLimitStatus:
    limit: int
    remaining: int
    used: int
    reset: int

    @property
    def reset_at(self) -> str:
        return datetime.fromtimestamp(self.reset, tz=timezone.utc).isoformat()

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "RateLimitStatus":
        rate = raw.get("rate") or (raw.get("resources") or {}).get("core") or {}
        return cls(
            limit=rate.get("limit", 0),
            remaining=rate.get("remaining", 0),
            used=rate.get("used", 0),
            reset=rate.get("reset", 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["reset_at"] = self.reset_at
        return data


@dataclass
class FeaturedProject:
    name: str
    description: str
    technologies: List[str]
    highlights: List[str]
    github_url: str
    stars: int


@dataclass
class DeveloperProfile:
    """Who the profile belongs to. Filled from settings, never hardcoded."""

    username: str
    name: str = ""
    title: str = "Software Developer"
    location: str = ""
    email: str = ""
    portfolio_url: str = ""
    github_url: str = ""
    pinned_projects: List[str] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name or self.username
