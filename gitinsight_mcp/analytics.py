"""
Analytics derived from normalized repository and commit records.

Everything here is a pure function of its inputs: no I/O, no cache access.
Language percentages are taken over repositories that have a primary
language, not over all repositories, so they sum to 100.
"""
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

from .models import (
    ActivitySnapshot,
    CommitRecord,
    DeveloperProfile,
    FeaturedProject,
    LanguageStats,
    RepositoryRecord,
    StatsSnapshot,
)

NOT_APPLICABLE = "N/A"
RECENTLY_UPDATED_COUNT = 5
FEATURED_PROJECT_COUNT = 4
TOP_LANGUAGE_COUNT = 5


# ── Helpers ────────────────────────────────────────────────────────────────


def parse_timestamp(value: str) -> datetime:
    """Parse a GitHub ISO-8601 timestamp ("2024-01-15T10:30:00Z") to an aware UTC datetime."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def timestamp_key(value: Optional[str]) -> float:
    """Sort key for timestamps; missing or malformed values sort as oldest."""
    if not value:
        return float("-inf")
    try:
        return parse_timestamp(value).timestamp()
    except ValueError:
        return float("-inf")


def calculate_percentage(value: int, total: int) -> float:
    if total == 0:
        return 0.0
    return round(value / total * 100, 2)


def commit_day(commit: CommitRecord) -> Optional[date]:
    """Calendar day (UTC) of a commit, or None when its timestamp is unusable."""
    if not commit.date:
        return None
    try:
        return parse_timestamp(commit.date).date()
    except ValueError:
        return None


def _as_date(value: Union[date, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_timestamp(value).date() if "T" in value else date.fromisoformat(value)


# ── Repository statistics ─────────────────────────────────────────────────


def language_breakdown(repos: Sequence[RepositoryRecord]) -> List[LanguageStats]:
    """
    Group repositories by primary language.

    Percentages are relative to the repositories that have a language, so
    they sum to 100 (within two-decimal rounding). Sorted by count
    descending; languages with equal counts keep first-seen order.
    """
    by_language: Dict[str, List[str]] = {}
    for repo in repos:
        if repo.language:
            by_language.setdefault(repo.language, []).append(repo.name)

    total = sum(len(names) for names in by_language.values())
    breakdown = [
        LanguageStats(
            language=language,
            count=len(names),
            repositories=tuple(names),
            percentage=calculate_percentage(len(names), total),
        )
        for language, names in by_language.items()
    ]
    breakdown.sort(key=lambda stats: stats.count, reverse=True)
    return breakdown


def most_starred(repos: Sequence[RepositoryRecord]) -> Optional[RepositoryRecord]:
    """Repository with the most stars; the first one seen wins ties."""
    best = None
    for repo in repos:
        if best is None or repo.stars > best.stars:
            best = repo
    return best


def most_forked(repos: Sequence[RepositoryRecord]) -> Optional[RepositoryRecord]:
    """Repository with the most forks; the first one seen wins ties."""
    best = None
    for repo in repos:
        if best is None or repo.forks > best.forks:
            best = repo
    return best


def recently_updated(repos: Sequence[RepositoryRecord], count: int = RECENTLY_UPDATED_COUNT) -> List[RepositoryRecord]:
    return sorted(repos, key=lambda repo: timestamp_key(repo.last_updated), reverse=True)[:count]


def build_stats(repos: Sequence[RepositoryRecord]) -> StatsSnapshot:
    return StatsSnapshot(
        total_repositories=len(repos),
        total_stars=sum(repo.stars for repo in repos),
        total_forks=sum(repo.forks for repo in repos),
        languages=tuple(language_breakdown(repos)),
        most_starred_repo=most_starred(repos),
        most_forked_repo=most_forked(repos),
        recently_updated=tuple(recently_updated(repos)),
        total_open_issues=sum(repo.open_issues for repo in repos),
    )


# ── Contribution activity ─────────────────────────────────────────────────


def most_active_day(commits: Iterable[CommitRecord]) -> str:
    """
    Date (YYYY-MM-DD, UTC) with the most commits in the sample.

    Ties go to the earliest date. Returns "N/A" for an empty sample.
    """
    counts = Counter(day for day in (commit_day(c) for c in commits) if day is not None)
    if not counts:
        return NOT_APPLICABLE
    best_day = min(counts, key=lambda day: (-counts[day], day))
    return best_day.isoformat()


def contribution_streak(days: Iterable[Union[date, str]]) -> int:
    """
    Length of the run of consecutive days starting at the most recent day.

    The most recent day always counts as 1, whether or not it is today.
    Empty input gives 0.
    """
    distinct = sorted({_as_date(day) for day in days}, reverse=True)
    if not distinct:
        return 0

    streak = 1
    for current, previous in zip(distinct, distinct[1:]):
        if (current - previous).days != 1:
            break
        streak += 1
    return streak


def build_activity(commits: Sequence[CommitRecord]) -> ActivitySnapshot:
    days = [day for day in (commit_day(c) for c in commits) if day is not None]
    return ActivitySnapshot(
        total_commits=len(commits),
        repositories_contributed_to=len({c.repository for c in commits}),
        most_active_day=most_active_day(commits),
        contribution_streak=contribution_streak(days),
    )


# ── Skills ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class DomainRule:
    """
    A repository belongs to the domain when any keyword is a substring of
    its name or description, any topic is in its topic set, or its primary
    language is listed. All comparisons are case-insensitive.
    """

    domain: str
    keywords: FrozenSet[str] = field(default_factory=frozenset)
    topics: FrozenSet[str] = field(default_factory=frozenset)
    languages: FrozenSet[str] = field(default_factory=frozenset)

    def matches(self, repo: RepositoryRecord) -> bool:
        text = f"{repo.name} {repo.description or ''}".lower()
        if any(keyword in text for keyword in self.keywords):
            return True
        if self.topics & {topic.lower() for topic in repo.topics}:
            return True
        return (repo.language or "").lower() in self.languages


DOMAIN_RULES: Tuple[DomainRule, ...] = (
    DomainRule(
        "DevOps & CI/CD",
        keywords=frozenset({"devops", "jenkins", "pipeline"}),
        topics=frozenset({"devops", "ci-cd", "cicd", "jenkins", "github-actions", "ansible"}),
    ),
    DomainRule(
        "Web Development",
        topics=frozenset({"react", "angular", "vue", "nextjs", "web", "frontend", "django", "flask"}),
        languages=frozenset({"javascript", "typescript", "html", "css", "php"}),
    ),
    DomainRule(
        "AI & Machine Learning",
        keywords=frozenset({"machine learning", "machine-learning", "opencv", "neural", "llm"}),
        topics=frozenset({"machine-learning", "ai", "deep-learning", "nlp", "computer-vision", "llm"}),
    ),
    DomainRule(
        "Mobile Development",
        keywords=frozenset({"android", "ios app", "flutter"}),
        topics=frozenset({"mobile", "android", "ios", "flutter", "react-native"}),
        languages=frozenset({"swift", "kotlin", "dart", "objective-c"}),
    ),
    DomainRule(
        "Cloud & Infrastructure",
        keywords=frozenset({"aws", "terraform", "kubernetes", "k8s"}),
        topics=frozenset({"aws", "azure", "gcp", "docker", "kubernetes", "terraform", "cloud"}),
        languages=frozenset({"hcl"}),
    ),
    DomainRule(
        "Microservices",
        keywords=frozenset({"microservice"}),
        topics=frozenset({"microservices", "microservice", "grpc"}),
    ),
    DomainRule(
        "IoT & Embedded",
        keywords=frozenset({"iot", "arduino", "esp32", "raspberry"}),
        topics=frozenset({"iot", "arduino", "embedded", "esp32", "raspberry-pi"}),
    ),
    DomainRule(
        "Data Science",
        keywords=frozenset({"data science", "data analysis", "dataset"}),
        topics=frozenset({"data-science", "data-analysis", "pandas", "jupyter", "data-visualization"}),
        languages=frozenset({"jupyter notebook", "r"}),
    ),
)


def categorize_domains(
    repos: Sequence[RepositoryRecord],
    rules: Sequence[DomainRule] = DOMAIN_RULES,
) -> Dict[str, List[str]]:
    """Map each domain to the names of matching repositories. A repository can match several domains or none."""
    domains: Dict[str, List[str]] = {rule.domain: [] for rule in rules}
    for repo in repos:
        for rule in rules:
            if rule.matches(repo):
                domains[rule.domain].append(repo.name)
    return domains


def proficiency_tier(project_count: int) -> str:
    if project_count >= 10:
        return "Expert"
    if project_count >= 5:
        return "Advanced"
    return "Intermediate"


def topic_usage(repos: Sequence[RepositoryRecord]) -> List[Tuple[str, List[str]]]:
    """Topics ordered by how many repositories use them (first-seen order for ties)."""
    usage: Dict[str, List[str]] = {}
    for repo in repos:
        for topic in repo.topics:
            usage.setdefault(topic.lower(), []).append(repo.name)
    return sorted(usage.items(), key=lambda item: len(item[1]), reverse=True)


def _ranked_domains(domains: Dict[str, List[str]]) -> List[Dict[str, Any]]:
    ranked = [
        {"domain": domain, "projects": names[:5], "count": len(names)}
        for domain, names in domains.items()
        if names
    ]
    ranked.sort(key=lambda entry: entry["count"], reverse=True)
    return ranked


def build_skills_matrix(
    repos: Sequence[RepositoryRecord],
    stats: StatsSnapshot,
    profile: DeveloperProfile,
) -> Dict[str, Any]:
    top_languages = list(stats.languages[:TOP_LANGUAGE_COUNT])
    domains = _ranked_domains(categorize_domains(repos))
    topics = topic_usage(repos)[:8]

    technical_skills = [
        {
            "category": "Programming Languages",
            "skills": [
                {
                    "skill": lang.language,
                    "proficiency": proficiency_tier(lang.count),
                    "projects": list(lang.repositories[:5]),
                }
                for lang in top_languages
            ],
            "total_projects": len(repos),
        },
        {
            "category": "Domains",
            "skills": [
                {
                    "skill": entry["domain"],
                    "proficiency": proficiency_tier(entry["count"]),
                    "projects": entry["projects"],
                }
                for entry in domains
            ],
            "total_projects": len({name for entry in domains for name in entry["projects"]}),
        },
        {
            "category": "Tools & Topics",
            "skills": [
                {
                    "skill": topic,
                    "proficiency": proficiency_tier(len(names)),
                    "projects": names[:3],
                }
                for topic, names in topics
            ],
            "total_projects": len({name for _, names in topics for name in names}),
        },
    ]

    lead = top_languages[0].language if top_languages else "software"
    domain_names = [entry["domain"] for entry in domains[:3]]
    summary = (
        f"{profile.display_name} has {len(repos)} public projects, mostly in {lead}, "
        f"with {stats.total_stars} GitHub stars across the portfolio."
    )
    if domain_names:
        summary += f" Strongest domains: {', '.join(domain_names)}."

    return {
        "developer_profile": {
            "name": profile.display_name,
            "role": profile.title,
            "location": profile.location,
            "total_projects": len(repos),
        },
        "technical_skills": technical_skills,
        "top_languages": [
            {"language": lang.language, "percentage": lang.percentage, "projects": lang.count}
            for lang in top_languages
        ],
        "domains": domains,
        "summary": summary,
    }


# ── Portfolio ─────────────────────────────────────────────────────────────


def _featured_from_repo(repo: RepositoryRecord) -> FeaturedProject:
    if repo.open_issues > 0:
        status = f"Active development ({repo.open_issues} open issues)"
    else:
        status = "No open issues"
    return FeaturedProject(
        name=repo.name,
        description=repo.description or "Software development project",
        technologies=[repo.language or "Multiple", *repo.topics[:2]],
        highlights=[f"{repo.stars} GitHub stars", f"{repo.forks} forks", status],
        github_url=repo.url,
        stars=repo.stars,
    )


def select_featured_projects(
    repos: Sequence[RepositoryRecord],
    pinned: Sequence[str] = (),
    profile_url: str = "",
    count: int = FEATURED_PROJECT_COUNT,
) -> List[FeaturedProject]:
    """
    Pinned repositories first, in the configured order, then the ``count``
    most-starred remaining repositories that have at least one star.
    """
    by_name = {repo.name: repo for repo in repos}
    featured = []
    for name in pinned:
        repo = by_name.get(name)
        if repo is not None:
            featured.append(_featured_from_repo(repo))
        else:
            featured.append(FeaturedProject(
                name=name,
                description="Pinned project",
                technologies=[],
                highlights=[],
                github_url=f"{profile_url.rstrip('/')}/{name}" if profile_url else "",
                stars=0,
            ))

    pinned_names = set(pinned)
    candidates = [repo for repo in repos if repo.stars > 0 and repo.name not in pinned_names]
    candidates.sort(key=lambda repo: repo.stars, reverse=True)
    featured.extend(_featured_from_repo(repo) for repo in candidates[:count])
    return featured


def build_portfolio_summary(
    repos: Sequence[RepositoryRecord],
    stats: StatsSnapshot,
    activity: ActivitySnapshot,
    profile: DeveloperProfile,
) -> Dict[str, Any]:
    languages = [lang.language for lang in stats.languages]
    domains = _ranked_domains(categorize_domains(repos))
    top_three = ", ".join(languages[:3]) or "a range of technologies"

    professional_summary = (
        f"{profile.display_name} maintains {len(repos)} public repositories with "
        f"{stats.total_stars} GitHub stars, building mostly with {top_three}."
    )
    if domains:
        professional_summary += (
            f" Work spans {', '.join(entry['domain'] for entry in domains[:3])}."
        )
    if activity.total_commits:
        professional_summary += (
            f" Recent activity covers {activity.total_commits} commits across "
            f"{activity.repositories_contributed_to} repositories."
        )

    featured = select_featured_projects(
        repos,
        pinned=profile.pinned_projects,
        profile_url=profile.github_url,
    )

    return {
        "candidate_profile": {
            "name": profile.display_name,
            "title": profile.title,
            "location": profile.location,
            "email": profile.email,
            "portfolio_url": profile.portfolio_url,
            "github_url": profile.github_url,
        },
        "professional_summary": professional_summary,
        "key_achievements": [
            f"{len(repos)} Public Repositories on GitHub",
            f"{stats.total_stars} Total GitHub Stars Across Projects",
            f"{activity.repositories_contributed_to} Active Project Contributions",
            f"{activity.contribution_streak}-Day Contribution Streak",
            f"Proficient in {len(languages)} Programming Languages",
        ],
        "featured_projects": [asdict(project) for project in featured],
        "technical_proficiency": {
            "primary_languages": languages[:TOP_LANGUAGE_COUNT],
            "frameworks_tools": [topic for topic, _ in topic_usage(repos)[:10]],
            "specializations": [entry["domain"] for entry in domains],
        },
        "github_metrics": {
            "total_repositories": len(repos),
            "total_stars": stats.total_stars,
            "total_contributions": activity.total_commits,
            "active_streak": activity.contribution_streak,
        },
        "availability": "Open to opportunities",
    }
