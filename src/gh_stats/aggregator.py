"""Collect language totals from the API or clone analysis and shape the report."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

from .clone import CloneAnalyzeOptions, LinguistEngine, analyze_with_clone
from .clone.analyzer import DEFAULT_WINDOW_DAYS, merge_language_bytes
from .clone.history import parse_iso
from .config import DEFAULT_LINGUIST_IMAGE
from .errors import GitHubAPIError, IdentityError, redact_token
from .github.client import GitHubClient
from .models import (
    CompositionStats,
    LanguageBytes,
    LanguageReport,
    LanguageStats,
    RepoSummary,
    SkippedRepository,
    WindowInfo,
)

logger = logging.getLogger(__name__)

MARKDOWN_LANGUAGES = frozenset({"Markdown", "MDX"})
MARKUP_LANGUAGES = frozenset({"HTML", "XML", "YAML", "JSON", "TOML", "INI", "reStructuredText"})

API_CONCURRENCY = 5
AUTHOR_CHECK_CONCURRENCY = 8


@dataclass
class AggregateOptions:
    include_forks: bool = False
    include_archived: bool = True
    include_markdown: bool = False
    include_markup_langs: bool = False
    past_week: bool = False
    since: str | None = None
    top: int | None = 10
    source: str = "api"
    clone_concurrency: int = 3
    tmp_dir: str | Path | None = None
    linguist_engine: LinguistEngine = LinguistEngine.LOCAL
    linguist_image: str = DEFAULT_LINGUIST_IMAGE
    author: str | None = None
    all_authors: bool = False
    include_repo_composition: bool = False
    cache_dir: str | Path | None = None
    no_cache: bool = False


def apply_language_filters(
    language_bytes: LanguageBytes,
    include_markdown: bool = False,
    include_markup_langs: bool = False,
) -> LanguageBytes:
    excluded: set[str] = set()
    if not include_markdown:
        excluded |= MARKDOWN_LANGUAGES
    if not include_markup_langs:
        excluded |= MARKUP_LANGUAGES
    return {k: v for k, v in language_bytes.items() if k not in excluded}


def to_sorted_stats(language_bytes: LanguageBytes, top: int | None = None) -> list[LanguageStats]:
    total = sum(language_bytes.values())
    stats = [
        LanguageStats(
            language=language,
            bytes=value,
            percentage=round(value / total * 100, 2) if total else 0.0,
        )
        for language, value in language_bytes.items()
    ]
    stats.sort(key=lambda s: (-s.bytes, s.language))
    return stats if top is None else stats[:top]


def filter_recently_pushed(repos: list[RepoSummary], since: datetime) -> list[RepoSummary]:
    kept = []
    for repo in repos:
        pushed = parse_iso(repo.pushed_at or "")
        if pushed is not None and pushed >= since:
            kept.append(repo)
    return kept


async def fetch_all_languages(
    client: GitHubClient, repos: list[RepoSummary]
) -> tuple[LanguageBytes, list[SkippedRepository]]:
    semaphore = asyncio.Semaphore(API_CONCURRENCY)

    async def fetch(repo: RepoSummary) -> LanguageBytes:
        async with semaphore:
            return await client.get_languages(repo.languages_url)

    results = await asyncio.gather(*(fetch(r) for r in repos), return_exceptions=True)
    totals: LanguageBytes = {}
    skipped: list[SkippedRepository] = []
    for repo, result in zip(repos, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            logger.warning("Failed to fetch languages for %s: %s", repo.full_name, result)
            skipped.append(SkippedRepository(repo.full_name, redact_token(str(result))))
            continue
        merge_language_bytes(totals, result)
    return totals, skipped


async def resolve_author_patterns(
    client: GitHubClient, author: str | None
) -> tuple[str, list[str]]:
    """Return the author label and the substrings used to match commits."""
    if author:
        return author, [author]
    try:
        identity = await client.get_authenticated_identity()
    except GitHubAPIError as exc:
        raise IdentityError(
            f"Failed to resolve authenticated GitHub username for author filtering. {exc}. "
            "Use --author <username> or --all-authors to bypass."
        ) from exc
    return identity.login, identity.author_patterns


async def filter_repos_by_author(
    client: GitHubClient,
    repos: list[RepoSummary],
    since_iso: str,
    authors: list[str],
) -> list[RepoSummary]:
    """Keep repositories where any of ``authors`` committed since ``since_iso``."""
    semaphore = asyncio.Semaphore(AUTHOR_CHECK_CONCURRENCY)

    async def has_commit(repo: RepoSummary) -> bool:
        async with semaphore:
            for author in authors:
                if await client.repo_has_recent_author_commit(repo.full_name, since_iso, author):
                    return True
            return False

    flags = await asyncio.gather(*(has_commit(r) for r in repos))
    return [repo for repo, keep in zip(repos, flags) if keep]


async def get_language_stats(
    client: GitHubClient, token: str, options: AggregateOptions
) -> LanguageReport:
    """Build the language report for every repository visible to ``client``."""
    now = datetime.now(timezone.utc)
    repos = await client.list_repos(
        include_forks=options.include_forks, include_archived=options.include_archived
    )

    windowed = options.past_week or options.since is not None
    window: WindowInfo | None = None
    since_iso: str | None = None
    if windowed:
        since_dt = parse_iso(options.since) if options.since else None
        if since_dt is None:
            since_dt = now - timedelta(days=DEFAULT_WINDOW_DAYS)
        since_iso = since_dt.isoformat().replace("+00:00", "Z")
        repos = filter_recently_pushed(repos, since_dt)
        window = WindowInfo(
            days=max(1, (now - since_dt).days),
            since=since_iso,
            until=now.isoformat().replace("+00:00", "Z"),
            activity_field="changed_lines" if options.source == "clone" else "pushed_at",
        )
    logger.info("Analyzing %d repositories (%s source)", len(repos), options.source)

    author_filter: str | None = None
    author_patterns: list[str] | None = None
    skipped: list[SkippedRepository] = []
    composition: CompositionStats | None = None
    weekly_churn: CompositionStats | None = None

    if options.source == "clone":
        if windowed and not options.all_authors:
            author_filter, author_patterns = await resolve_author_patterns(client, options.author)
            repos = await filter_repos_by_author(client, repos, since_iso or "", author_patterns)

        base = dict(
            token=token,
            clone_concurrency=options.clone_concurrency,
            tmp_dir=options.tmp_dir,
            linguist_engine=options.linguist_engine,
            linguist_image=options.linguist_image,
            cache_dir=options.cache_dir,
            disable_cache=options.no_cache,
        )
        result = await analyze_with_clone(
            CloneAnalyzeOptions(
                repos=repos,
                past_week=windowed,
                since_iso=since_iso,
                author_patterns=author_patterns,
                **base,
            )
        )
        totals = result.totals
        skipped = result.skipped_repositories

        if windowed and options.include_repo_composition:
            snapshot = await analyze_with_clone(
                CloneAnalyzeOptions(repos=repos, past_week=False, **base)
            )
            composition_bytes = apply_language_filters(
                snapshot.totals, options.include_markdown, options.include_markup_langs
            )
            composition = CompositionStats(
                total_bytes=sum(composition_bytes.values()),
                languages=to_sorted_stats(composition_bytes),
            )
    else:
        totals, skipped = await fetch_all_languages(client, repos)

    totals = apply_language_filters(totals, options.include_markdown, options.include_markup_langs)
    if options.source == "clone" and windowed:
        weekly_churn = CompositionStats(
            total_bytes=sum(totals.values()), languages=to_sorted_stats(totals)
        )

    return LanguageReport(
        total_bytes=sum(totals.values()),
        languages=to_sorted_stats(totals, options.top),
        generated_at=now.isoformat().replace("+00:00", "Z"),
        repository_count=len(repos),
        included_forks=options.include_forks,
        included_archived=options.include_archived,
        included_markdown=options.include_markdown,
        excluded_markup_languages=not options.include_markup_langs,
        author_filter=author_filter,
        author_patterns=author_patterns,
        analysis_source=options.source,
        analysis_method="changed_lines" if windowed and options.source == "clone" else "repo_bytes",
        engine="github-linguist" if options.source == "clone" else None,
        repo_composition=composition,
        weekly_churn=weekly_churn,
        skipped_repositories=skipped,
        window=window,
    )
