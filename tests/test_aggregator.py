"""Tests for the aggregator module."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from gh_stats.aggregator import (
    AggregateOptions,
    apply_language_filters,
    filter_recently_pushed,
    get_language_stats,
    to_sorted_stats,
)
from gh_stats.errors import GitHubAPIError, IdentityError
from gh_stats.github.client import GitHubClient
from gh_stats.models import CloneAnalysisResult, Identity, RepoSummary, SkippedRepository


def _iso(delta_days: float) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=delta_days)).isoformat()


def _repo(name: str, pushed_days_ago: float | None = 1) -> RepoSummary:
    return RepoSummary(
        name=name,
        full_name=f"org/{name}",
        languages_url=f"https://api.github.com/repos/org/{name}/languages",
        pushed_at=_iso(pushed_days_ago) if pushed_days_ago is not None else None,
    )


@pytest.fixture
def mock_client():
    client = AsyncMock(spec=GitHubClient)
    client.list_repos.return_value = [_repo("repo1"), _repo("repo2", pushed_days_ago=30)]
    client.get_languages.return_value = {"Python": 5000, "JavaScript": 3000, "Markdown": 700}
    client.get_authenticated_identity.return_value = Identity(
        login="octo", emails=("octo@example.com",)
    )
    client.repo_has_recent_author_commit.return_value = True
    return client


def test_apply_language_filters_defaults():
    data = {"Python": 10, "Markdown": 5, "MDX": 1, "JSON": 3, "YAML": 2, "HTML": 4}
    assert apply_language_filters(data) == {"Python": 10}


def test_apply_language_filters_includes():
    data = {"Python": 10, "Markdown": 5, "JSON": 3}
    assert apply_language_filters(data, include_markdown=True) == {"Python": 10, "Markdown": 5}
    assert apply_language_filters(data, include_markup_langs=True) == {"Python": 10, "JSON": 3}
    assert apply_language_filters(data, True, True) == data


def test_to_sorted_stats_orders_and_annotates():
    stats = to_sorted_stats({"Go": 25, "Python": 75})
    assert [s.language for s in stats] == ["Python", "Go"]
    assert stats[0].percentage == 75.0
    assert stats[1].bytes == 25


def test_to_sorted_stats_top_and_empty():
    assert len(to_sorted_stats({"A": 3, "B": 2, "C": 1}, top=2)) == 2
    assert to_sorted_stats({}) == []
    assert to_sorted_stats({"A": 0})[0].percentage == 0.0


def test_filter_recently_pushed():
    since = datetime.now(timezone.utc) - timedelta(days=7)
    repos = [_repo("new", 1), _repo("old", 30), _repo("never", None)]
    assert [r.name for r in filter_recently_pushed(repos, since)] == ["new"]


@pytest.mark.asyncio
async def test_api_source_sums_languages(mock_client):
    report = await get_language_stats(mock_client, "tok", AggregateOptions())

    assert report.repository_count == 2
    assert report.analysis_source == "api"
    assert report.analysis_method == "repo_bytes"
    # Markdown excluded by default
    assert [s.language for s in report.languages] == ["Python", "JavaScript"]
    assert report.languages[0].bytes == 10000
    assert report.total_bytes == 16000
    assert report.window is None
    mock_client.list_repos.assert_awaited_once_with(include_forks=False, include_archived=True)


@pytest.mark.asyncio
async def test_api_source_records_failed_repos(mock_client):
    async def languages(url):
        if "repo2" in url:
            raise GitHubAPIError(500, "server error")
        return {"Python": 10}

    mock_client.get_languages.side_effect = languages
    report = await get_language_stats(mock_client, "tok", AggregateOptions())
    assert report.total_bytes == 10
    assert [s.full_name for s in report.skipped_repositories] == ["org/repo2"]


@pytest.mark.asyncio
async def test_api_past_week_filters_by_push(mock_client):
    report = await get_language_stats(mock_client, "tok", AggregateOptions(past_week=True))
    assert report.repository_count == 1
    assert report.window is not None
    assert report.window.days == 7
    assert report.window.activity_field == "pushed_at"


@pytest.mark.asyncio
async def test_top_limits_languages(mock_client):
    report = await get_language_stats(mock_client, "tok", AggregateOptions(top=1))
    assert len(report.languages) == 1
    assert report.total_bytes == 16000


@pytest.mark.asyncio
@patch("gh_stats.aggregator.analyze_with_clone")
async def test_clone_past_week_uses_identity(mock_analyze, mock_client):
    mock_analyze.return_value = CloneAnalysisResult(
        totals={"TypeScript": 12, "JSON": 4},
        skipped_repositories=[SkippedRepository("org/b", "boom")],
    )
    report = await get_language_stats(
        mock_client, "tok", AggregateOptions(source="clone", past_week=True)
    )

    clone_options = mock_analyze.await_args.args[0]
    assert clone_options.past_week is True
    assert clone_options.token == "tok"
    assert clone_options.author_patterns == ["octo", "octo@example.com"]
    assert [r.name for r in clone_options.repos] == ["repo1"]
    assert clone_options.since_iso == report.window.since

    assert report.analysis_method == "changed_lines"
    assert report.engine == "github-linguist"
    assert report.author_filter == "octo"
    assert report.total_bytes == 12
    assert report.weekly_churn.total_bytes == 12
    assert report.skipped_repositories[0].full_name == "org/b"
    assert report.window.activity_field == "changed_lines"


@pytest.mark.asyncio
@patch("gh_stats.aggregator.analyze_with_clone")
async def test_clone_explicit_author_skips_identity(mock_analyze, mock_client):
    mock_analyze.return_value = CloneAnalysisResult()
    await get_language_stats(
        mock_client, "tok", AggregateOptions(source="clone", past_week=True, author="Jane")
    )
    mock_client.get_authenticated_identity.assert_not_awaited()
    mock_client.repo_has_recent_author_commit.assert_awaited_once()
    assert mock_analyze.await_args.args[0].author_patterns == ["Jane"]


@pytest.mark.asyncio
@patch("gh_stats.aggregator.analyze_with_clone")
async def test_clone_prefilter_drops_repos_without_author_commits(mock_analyze, mock_client):
    mock_client.list_repos.return_value = [_repo("a"), _repo("b")]

    async def has_commit(full_name, since, author):
        return full_name == "org/b" and author == "octo@example.com"

    mock_client.repo_has_recent_author_commit.side_effect = has_commit
    mock_analyze.return_value = CloneAnalysisResult()
    report = await get_language_stats(
        mock_client, "tok", AggregateOptions(source="clone", past_week=True)
    )
    assert [r.name for r in mock_analyze.await_args.args[0].repos] == ["b"]
    assert report.repository_count == 1


@pytest.mark.asyncio
@patch("gh_stats.aggregator.analyze_with_clone")
async def test_clone_all_authors(mock_analyze, mock_client):
    mock_analyze.return_value = CloneAnalysisResult(totals={"Go": 3})
    report = await get_language_stats(
        mock_client, "tok", AggregateOptions(source="clone", past_week=True, all_authors=True)
    )
    mock_client.get_authenticated_identity.assert_not_awaited()
    mock_client.repo_has_recent_author_commit.assert_not_awaited()
    assert mock_analyze.await_args.args[0].author_patterns is None
    assert report.author_filter is None


@pytest.mark.asyncio
@patch("gh_stats.aggregator.analyze_with_clone")
async def test_clone_identity_failure_raises(mock_analyze, mock_client):
    mock_client.get_authenticated_identity.side_effect = GitHubAPIError(401, "Bad credentials")
    with pytest.raises(IdentityError, match="--all-authors"):
        await get_language_stats(
            mock_client, "tok", AggregateOptions(source="clone", past_week=True)
        )
    mock_analyze.assert_not_awaited()


@pytest.mark.asyncio
@patch("gh_stats.aggregator.analyze_with_clone")
async def test_clone_full_snapshot(mock_analyze, mock_client):
    mock_analyze.return_value = CloneAnalysisResult(totals={"Python": 900, "YAML": 100})
    report = await get_language_stats(mock_client, "tok", AggregateOptions(source="clone"))
    assert mock_analyze.await_args.args[0].past_week is False
    assert report.analysis_method == "repo_bytes"
    assert report.total_bytes == 900
    assert report.weekly_churn is None


@pytest.mark.asyncio
@patch("gh_stats.aggregator.analyze_with_clone")
async def test_clone_repo_composition(mock_analyze, mock_client):
    mock_analyze.side_effect = [
        CloneAnalysisResult(totals={"Python": 10}),
        CloneAnalysisResult(totals={"Python": 800, "Go": 200, "Markdown": 50}),
    ]
    report = await get_language_stats(
        mock_client,
        "tok",
        AggregateOptions(source="clone", past_week=True, all_authors=True, include_repo_composition=True),
    )
    assert mock_analyze.await_count == 2
    assert mock_analyze.await_args_list[1].args[0].past_week is False
    assert report.repo_composition.total_bytes == 1000
    assert [s.language for s in report.repo_composition.languages] == ["Python", "Go"]
