"""Tests for repository filtering and sorting."""

import pytest

from conftest import make_repo
from gitinsight_mcp.filters import SearchFilters, apply_filters, filter_repositories, sort_repositories


@pytest.fixture
def repos():
    return [
        make_repo("api", language="Go", stars=5, topics=["microservices"]),
        make_repo("cli", language="Go", stars=0, topics=["command-line"]),
        make_repo("ml", language="Python", stars=10, topics=["machine-learning"]),
    ]


class TestFilterRepositories:
    def test_language_is_case_insensitive_and_exact(self, repos):
        names = [repo.name for repo in filter_repositories(repos, SearchFilters(language="go"))]
        assert names == ["api", "cli"]

    def test_language_and_min_stars_combine(self, repos):
        result = filter_repositories(repos, SearchFilters(language="go", min_stars=1))
        assert [repo.name for repo in result] == ["api"]

    def test_topic_is_a_case_insensitive_substring(self, repos):
        result = filter_repositories(repos, SearchFilters(topic="LEARN"))
        assert [repo.name for repo in result] == ["ml"]

    def test_min_stars_zero_keeps_everything(self, repos):
        assert len(filter_repositories(repos, SearchFilters(min_stars=0))) == 3

    def test_repository_without_language_never_matches_a_language_filter(self):
        repos = [make_repo("docs", language=None)]
        assert filter_repositories(repos, SearchFilters(language="python")) == []

    def test_no_filters_keeps_order(self, repos):
        assert filter_repositories(repos, SearchFilters()) == repos


class TestSortRepositories:
    def test_name_ascending_ignores_case(self):
        repos = [make_repo("Zeta"), make_repo("alpha"), make_repo("Mu")]
        names = [repo.name for repo in sort_repositories(repos, "name", "asc")]
        assert names == ["alpha", "Mu", "Zeta"]

    def test_name_descending(self):
        repos = [make_repo("Zeta"), make_repo("alpha"), make_repo("Mu")]
        names = [repo.name for repo in sort_repositories(repos, "name", "desc")]
        assert names == ["Zeta", "Mu", "alpha"]

    def test_none_preserves_input_order(self, repos):
        result = sort_repositories(repos, None)
        assert result == repos
        assert result is not repos

    def test_stars_descending_keeps_ties_stable(self):
        repos = [make_repo("a", stars=1), make_repo("b", stars=3), make_repo("c", stars=1)]
        names = [repo.name for repo in sort_repositories(repos, "stars", "desc")]
        assert names == ["b", "a", "c"]

    def test_updated_and_created(self):
        repos = [
            make_repo("old", updated_at="2023-01-01T00:00:00Z", created_at="2020-01-01T00:00:00Z"),
            make_repo("new", updated_at="2024-06-01T00:00:00Z", created_at="2019-01-01T00:00:00Z"),
        ]
        assert [r.name for r in sort_repositories(repos, "updated", "desc")] == ["new", "old"]
        assert [r.name for r in sort_repositories(repos, "created", "asc")] == ["new", "old"]

    def test_unknown_field_is_rejected(self, repos):
        with pytest.raises(ValueError):
            sort_repositories(repos, "size")


class TestSearchFilters:
    @pytest.mark.parametrize("kwargs", [{"sort_by": "size"}, {"order": "sideways"}])
    def test_invalid_values_raise(self, kwargs):
        with pytest.raises(ValueError):
            SearchFilters(**kwargs)

    def test_cache_token_is_stable_and_distinguishes_filters(self):
        first = SearchFilters(language="Go", min_stars=1)
        assert first.cache_token() == SearchFilters(min_stars=1, language="Go").cache_token()
        assert first.cache_token() != SearchFilters(language="Go").cache_token()

    def test_apply_filters_sorts_the_filtered_set(self, repos):
        result = apply_filters(repos, SearchFilters(language="go", sort_by="stars", order="asc"))
        assert [repo.name for repo in result] == ["cli", "api"]
