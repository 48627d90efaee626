"""CLI entry point for gh-stats."""

from __future__ import annotations

import asyncio
import re
import sys
from datetime import datetime, timedelta, timezone

import click

from . import __version__
from .aggregator import AggregateOptions
from .clone.history import parse_iso
from .clone.linguist import LinguistEngine
from .config import Settings
from .errors import GhStatsError
from .log import setup_logging
from .orchestrator import load_report, render, run

_RELATIVE_DATE_RE = re.compile(r"^(\d+)([dwmy])$")


def _parse_relative_date(value: str) -> str | None:
    """Parse relative date like '7d', '2w', '3m', '1y' into YYYY-MM-DD string."""
    match = _RELATIVE_DATE_RE.match(value)
    if not match:
        return None
    amount = int(match.group(1))
    unit = match.group(2)
    days = {"d": 1, "w": 7, "m": 30, "y": 365}[unit] * amount
    return (datetime.now(timezone.utc) - timedelta(days=days)).strftime("%Y-%m-%d")


def _resolve_date(value: str | None) -> str | None:
    """Resolve a date value that may be relative or absolute."""
    if value is None:
        return None
    relative = _parse_relative_date(value)
    return relative if relative is not None else value


@click.command()
@click.option("--token", envvar=["GITHUB_TOKEN", "GH_TOKEN"], help="GitHub access token (or GITHUB_TOKEN / GH_TOKEN).")
@click.option("--in", "input_file", type=click.Path(exists=True, dir_okay=False), help="Render a saved JSON report instead of querying GitHub.")
@click.option("--format", "output_format", type=click.Choice(["table", "json", "csv"]), default="table", show_default=True)
@click.option("--source", type=click.Choice(["api", "clone"]), default="api", show_default=True, help="Byte totals from the API, or local clones analyzed with github-linguist.")
@click.option("--include-forks", is_flag=True, help="Include forked repositories.")
@click.option("--exclude-archived", is_flag=True, help="Exclude archived repositories.")
@click.option("--include-markdown", is_flag=True, help="Include Markdown/MDX.")
@click.option("--include-markup-langs", is_flag=True, help="Include HTML, XML, YAML, JSON, TOML, INI and reStructuredText.")
@click.option("--past-week", is_flag=True, help="Only the last 7 days of activity.")
@click.option("--since", default=None, help="Window start: YYYY-MM-DD or relative (7d, 2w, 3m, 1y). Implies a windowed run.")
@click.option("--top", type=click.IntRange(min=1), default=10, show_default=True, help="Number of languages to show.")
@click.option("--all", "show_all", is_flag=True, help="Show all languages (overrides --top).")
@click.option("--author", default=None, help="Count only commits whose author name/email contains this value.")
@click.option("--all-authors", is_flag=True, help="Count commits from every author.")
@click.option("--clone-concurrency", type=click.IntRange(min=1), default=3, show_default=True)
@click.option("--tmp-dir", type=click.Path(file_okay=False), default=None, help="Scratch directory for uncached clones.")
@click.option("--cache-dir", type=click.Path(file_okay=False), default=None, help="Clone cache directory.")
@click.option("--no-cache", is_flag=True, help="Clone into scratch directories and delete them afterwards.")
@click.option("--linguist-engine", type=click.Choice([e.value for e in LinguistEngine]), default=LinguistEngine.LOCAL.value, show_default=True)
@click.option("--include-repo-composition", is_flag=True, help="Also report whole-tree composition in windowed clone runs.")
@click.option("--output", "output_file", default=None, help="Write output to a file.")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging on stderr.")
@click.version_option(version=__version__)
def main(
    token: str | None,
    input_file: str | None,
    output_format: str,
    source: str,
    include_forks: bool,
    exclude_archived: bool,
    include_markdown: bool,
    include_markup_langs: bool,
    past_week: bool,
    since: str | None,
    top: int,
    show_all: bool,
    author: str | None,
    all_authors: bool,
    clone_concurrency: int,
    tmp_dir: str | None,
    cache_dir: str | None,
    no_cache: bool,
    linguist_engine: str,
    include_repo_composition: bool,
    output_file: str | None,
    verbose: bool,
) -> None:
    """Language statistics across the GitHub repositories your token can see."""
    settings = Settings.from_env()
    setup_logging(verbose or settings.debug)

    if input_file:
        try:
            report = load_report(input_file)
        except (OSError, ValueError, KeyError, TypeError) as exc:
            click.echo(f"Error: invalid stats JSON in {input_file}: {exc}", err=True)
            sys.exit(1)
        render(report, output_format=output_format, output_file=output_file)
        return

    resolved_since = _resolve_date(since)
    if resolved_since is not None and parse_iso(resolved_since) is None:
        raise click.BadParameter(f"cannot parse date {since!r}", param_hint="--since")

    if not token:
        click.echo("Error: Missing GitHub token. Use --token or set GITHUB_TOKEN.", err=True)
        sys.exit(1)

    options = AggregateOptions(
        include_forks=include_forks,
        include_archived=not exclude_archived,
        include_markdown=include_markdown,
        include_markup_langs=include_markup_langs,
        past_week=past_week,
        since=resolved_since,
        top=None if show_all else top,
        source=source,
        clone_concurrency=clone_concurrency,
        tmp_dir=tmp_dir,
        linguist_engine=LinguistEngine(linguist_engine),
        linguist_image=settings.linguist_image,
        author=author,
        all_authors=all_authors,
        include_repo_composition=include_repo_composition,
        cache_dir=settings.resolve_cache_dir(cache_dir),
        no_cache=no_cache,
    )

    try:
        asyncio.run(
            run(
                token=token,
                options=options,
                output_format=output_format,
                output_file=output_file,
                api_base=settings.api_base,
            )
        )
    except GhStatsError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
