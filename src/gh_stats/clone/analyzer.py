"""Clone-based language analysis across many repositories."""

from __future__ import annotations

import asyncio
import logging
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence

from ..config import DEFAULT_LINGUIST_IMAGE, default_cache_dir
from ..errors import CommandError, DependencyError, redact_token
from ..models import CloneAnalysisResult, LanguageBytes, RepoSummary, SkippedRepository
from .acquire import prepare_repo_directory
from .commands import git, run_command
from .history import ensure_history_for_since
from .linguist import (
    LanguageCache,
    LinguistEngine,
    parse_linguist_json,
    resolve_language_for_file,
    run_linguist_json,
)
from .numstat import COMMIT_MARKER, parse_numstat_output_for_authors

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 7

AnalyzeFullFn = Callable[[RepoSummary, str, Path], Awaitable[LanguageBytes]]
AnalyzePastWeekFn = Callable[
    [RepoSummary, str, Path, str, Optional[Sequence[str]]], Awaitable[LanguageBytes]
]


def merge_language_bytes(target: LanguageBytes, source: LanguageBytes) -> None:
    for language, value in source.items():
        target[language] = target.get(language, 0) + value


def default_since_iso(now: datetime | None = None, days: int = DEFAULT_WINDOW_DAYS) -> str:
    now = now or datetime.now(timezone.utc)
    return (now - timedelta(days=days)).isoformat().replace("+00:00", "Z")


async def ensure_clone_dependencies(engine: LinguistEngine = LinguistEngine.LOCAL) -> None:
    """Check that git and the chosen linguist engine are on PATH."""
    try:
        await run_command("git", ["--version"])
    except CommandError as exc:
        raise DependencyError("Clone mode requires git on PATH.") from exc

    if engine == LinguistEngine.DOCKER:
        try:
            await run_command("docker", ["--version"])
        except CommandError as exc:
            raise DependencyError(
                "Clone mode requires docker on PATH when using docker linguist."
            ) from exc
        return

    try:
        await run_command("github-linguist", ["--version"])
    except CommandError as exc:
        raise DependencyError("Clone mode requires github-linguist on PATH.") from exc


async def analyze_repo_full(
    repo: RepoSummary,
    token: str,
    tmp_root: str | Path,
    engine: LinguistEngine = LinguistEngine.LOCAL,
    cache_root: str | Path | None = None,
    image: str = DEFAULT_LINGUIST_IMAGE,
) -> LanguageBytes:
    """Language bytes of the whole default-branch tree."""
    checkout = await prepare_repo_directory(repo, token, tmp_root, cache_root)
    try:
        output = await run_linguist_json(checkout.path, None, engine, image)
        return parse_linguist_json(output)
    finally:
        await checkout.cleanup()


async def analyze_repo_past_week(
    repo: RepoSummary,
    token: str,
    tmp_root: str | Path,
    since_iso: str,
    engine: LinguistEngine = LinguistEngine.LOCAL,
    author_patterns: Sequence[str] | None = None,
    cache_root: str | Path | None = None,
    image: str = DEFAULT_LINGUIST_IMAGE,
) -> LanguageBytes:
    """Changed lines per language since ``since_iso``, optionally by author.

    Paths whose language stays unknown are left out of the totals.
    """
    checkout = await prepare_repo_directory(repo, token, tmp_root, cache_root)
    try:
        await ensure_history_for_since(checkout.path, since_iso)
        cache = LanguageCache.load(checkout.path)
        output = await git(
            checkout.path,
            "log",
            "--all",
            f"--since={since_iso}",
            "--numstat",
            f"--format={COMMIT_MARKER}%H%x09%an%x09%ae",
        )
        path_churn = parse_numstat_output_for_authors(output, author_patterns)
        logger.debug("churn map for %s: %d files", repo.full_name, len(path_churn))

        totals: LanguageBytes = {}
        for file_path, churn in path_churn.items():
            if churn <= 0:
                continue
            if file_path not in cache:
                language = await resolve_language_for_file(checkout.path, file_path, engine, image)
                cache.set(file_path, language)
            language = cache.get(file_path)
            if not language:
                continue
            totals[language] = totals.get(language, 0) + churn

        cache.save()
        logger.debug("final language churn for %s: %s", repo.full_name, totals)
        return totals
    finally:
        await checkout.cleanup()


@dataclass
class CloneAnalyzeOptions:
    repos: list[RepoSummary]
    token: str
    past_week: bool = False
    clone_concurrency: int = 3
    tmp_dir: str | Path | None = None
    since_iso: str | None = None
    author_patterns: list[str] | None = None
    linguist_engine: LinguistEngine = LinguistEngine.LOCAL
    linguist_image: str = DEFAULT_LINGUIST_IMAGE
    cache_dir: str | Path | None = None
    disable_cache: bool = False
    ensure_dependencies: Optional[Callable[[], Awaitable[None]]] = None
    analyze_repo_full_fn: Optional[AnalyzeFullFn] = None
    analyze_repo_past_week_fn: Optional[AnalyzePastWeekFn] = None


@dataclass(frozen=True)
class _RepoOutcome:
    repo: RepoSummary
    totals: LanguageBytes | None = None
    error: str | None = None


async def analyze_with_clone(options: CloneAnalyzeOptions) -> CloneAnalysisResult:
    """Analyze every repository, merging totals and recording failures.

    Dependency checks run once up front and their failure aborts the batch. A
    failure inside one repository only adds a SkippedRepository entry.
    """
    engine = LinguistEngine(options.linguist_engine)
    ensure_deps = options.ensure_dependencies or (lambda: ensure_clone_dependencies(engine))
    await ensure_deps()

    cache_root: Path | None = None
    if not options.disable_cache:
        cache_root = Path(options.cache_dir) if options.cache_dir else default_cache_dir()
        cache_root.mkdir(parents=True, exist_ok=True)

    tmp_root = Path(options.tmp_dir) if options.tmp_dir else Path(tempfile.gettempdir())
    tmp_root.mkdir(parents=True, exist_ok=True)
    since_iso = options.since_iso or default_since_iso()

    async def full_fn(repo: RepoSummary, token: str, root: Path) -> LanguageBytes:
        return await analyze_repo_full(repo, token, root, engine, cache_root, options.linguist_image)

    async def past_week_fn(
        repo: RepoSummary,
        token: str,
        root: Path,
        since: str,
        patterns: Sequence[str] | None,
    ) -> LanguageBytes:
        return await analyze_repo_past_week(
            repo, token, root, since, engine, patterns, cache_root, options.linguist_image
        )

    analyze_full = options.analyze_repo_full_fn or full_fn
    analyze_past_week = options.analyze_repo_past_week_fn or past_week_fn
    semaphore = asyncio.Semaphore(max(1, options.clone_concurrency))

    async def run_one(repo: RepoSummary) -> _RepoOutcome:
        async with semaphore:
            try:
                if options.past_week:
                    totals = await analyze_past_week(
                        repo, options.token, tmp_root, since_iso, options.author_patterns
                    )
                else:
                    totals = await analyze_full(repo, options.token, tmp_root)
                snapshot = dict(totals)
            except Exception as exc:
                return _RepoOutcome(repo=repo, error=redact_token(str(exc) or type(exc).__name__))
            return _RepoOutcome(repo=repo, totals=snapshot)

    result = CloneAnalysisResult()
    for next_done in asyncio.as_completed([run_one(repo) for repo in options.repos]):
        outcome = await next_done
        if outcome.error is not None:
            logger.warning("skipped %s: %s", outcome.repo.full_name, outcome.error)
            result.skipped_repositories.append(
                SkippedRepository(full_name=outcome.repo.full_name, reason=outcome.error)
            )
            continue
        merge_language_bytes(result.totals, outcome.totals or {})

    # completion order varies between runs; report skips in input order
    position = {repo.full_name: i for i, repo in enumerate(options.repos)}
    result.skipped_repositories.sort(key=lambda s: position.get(s.full_name, len(position)))
    return result
