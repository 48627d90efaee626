"""Top-level run: fetch or load a report, then render it."""

from __future__ import annotations

import json
import logging

from .aggregator import AggregateOptions, get_language_stats
from .config import DEFAULT_API_BASE
from .github.client import GitHubClient
from .models import LanguageReport
from .renderer import render_csv, render_json, render_report

logger = logging.getLogger(__name__)


def load_report(input_file: str) -> LanguageReport:
    """Read a report previously written with ``--format json``."""
    with open(input_file, encoding="utf-8") as f:
        data = json.load(f)
    return LanguageReport.from_dict(data)


def render(report: LanguageReport, output_format: str = "table", output_file: str | None = None) -> None:
    if output_format == "json":
        render_json(report, output_file=output_file)
    elif output_format == "csv":
        render_csv(report, output_file=output_file)
    else:
        render_report(report, output_file=output_file)


async def run(
    token: str,
    options: AggregateOptions | None = None,
    output_format: str = "table",
    output_file: str | None = None,
    api_base: str = DEFAULT_API_BASE,
) -> LanguageReport:
    """Collect language statistics for ``token`` and render them."""
    options = options or AggregateOptions()
    async with GitHubClient(token, api_base=api_base) as client:
        report = await get_language_stats(client, token, options)

    if report.skipped_repositories:
        logger.warning(
            "%d repositories skipped; totals are partial", len(report.skipped_repositories)
        )
    render(report, output_format=output_format, output_file=output_file)
    return report
