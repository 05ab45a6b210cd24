"""
Filtering and sorting shared by the list and search tools.

Name ordering uses case-insensitive code-point collation (``str.casefold``),
with the raw name as a tie-break so the order is fully deterministic:
["Zeta", "alpha", "Mu"] sorts ascending to ["alpha", "Mu", "Zeta"].
"""
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from .analytics import timestamp_key
from .models import RepositoryRecord

SORT_FIELDS = ("stars", "forks", "updated", "created", "name")
SORT_ORDERS = ("asc", "desc")

_SORT_KEYS: Dict[str, Callable[[RepositoryRecord], Any]] = {
    "stars": lambda repo: repo.stars,
    "forks": lambda repo: repo.forks,
    "updated": lambda repo: timestamp_key(repo.last_updated),
    "created": lambda repo: timestamp_key(repo.created_at),
    "name": lambda repo: (repo.name.casefold(), repo.name),
}

# Direction used by list_repositories for each field
DEFAULT_ORDERS = {
    "stars": "desc",
    "forks": "desc",
    "updated": "desc",
    "created": "desc",
    "name": "asc",
}


@dataclass(frozen=True)
class SearchFilters:
    language: Optional[str] = None
    topic: Optional[str] = None
    min_stars: Optional[int] = None
    sort_by: Optional[str] = None
    order: str = "desc"

    def __post_init__(self):
        if self.sort_by is not None and self.sort_by not in SORT_FIELDS:
            raise ValueError(f"sort_by must be one of {', '.join(SORT_FIELDS)}; got {self.sort_by!r}")
        if self.order not in SORT_ORDERS:
            raise ValueError(f"order must be 'asc' or 'desc'; got {self.order!r}")

    def cache_token(self) -> str:
        """Stable text form used in cache keys."""
        return "|".join(f"{key}={value}" for key, value in sorted(asdict(self).items()))

    def matches(self, repo: RepositoryRecord) -> bool:
        if self.language and (repo.language or "").lower() != self.language.lower():
            return False
        if self.topic:
            needle = self.topic.lower()
            if not any(needle in topic.lower() for topic in repo.topics):
                return False
        if self.min_stars is not None and repo.stars < self.min_stars:
            return False
        return True


def filter_repositories(repos: Sequence[RepositoryRecord], filters: SearchFilters) -> List[RepositoryRecord]:
    return [repo for repo in repos if filters.matches(repo)]


def sort_repositories(
    repos: Sequence[RepositoryRecord],
    sort_by: Optional[str],
    order: str = "desc",
) -> List[RepositoryRecord]:
    """Sorted copy of ``repos``. ``sort_by=None`` keeps the fetch order."""
    if sort_by is None:
        return list(repos)
    if sort_by not in _SORT_KEYS:
        raise ValueError(f"sort_by must be one of {', '.join(SORT_FIELDS)}; got {sort_by!r}")
    if order not in SORT_ORDERS:
        raise ValueError(f"order must be 'asc' or 'desc'; got {order!r}")
    return sorted(repos, key=_SORT_KEYS[sort_by], reverse=(order == "desc"))


def apply_filters(repos: Sequence[RepositoryRecord], filters: SearchFilters) -> List[RepositoryRecord]:
    return sort_repositories(filter_repositories(repos, filters), filters.sort_by, filters.order)
