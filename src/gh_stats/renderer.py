"""Rich-based terminal report renderer with JSON/CSV support."""

from __future__ import annotations

import csv
import io
import json
from dataclasses import asdict

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import LanguageReport, LanguageStats

_SOURCE_LABELS = {
    "repo_bytes": "Bytes",
    "changed_lines": "Changed Lines",
}


def _format_number(n: int) -> str:
    return f"{n:,}"


def _make_bar(percentage: float, width: int = 20) -> str:
    filled = round(percentage / 100 * width)
    return "█" * filled + "░" * (width - filled)


def _write_to_file(content: str, output_file: str) -> None:
    """Write content to a file and print confirmation."""
    with open(output_file, "w", encoding="utf-8") as f:
        f.write(content)
    Console(stderr=True).print(f"Saved to {output_file}")


def _language_table(languages: list[LanguageStats], value_label: str) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Language")
    table.add_column("Bar")
    table.add_column("Percentage", justify="right")
    table.add_column(value_label, justify="right")
    for i, lang in enumerate(languages, 1):
        table.add_row(
            str(i),
            lang.language,
            _make_bar(lang.percentage),
            f"{lang.percentage}%",
            _format_number(lang.bytes),
        )
    return table


def render_report(report: LanguageReport, output_file: str | None = None) -> None:
    """Render a LanguageReport to the terminal using rich."""
    if output_file:
        string_io = io.StringIO()
        console = Console(file=string_io, force_terminal=False, width=120)
    else:
        console = Console()

    value_label = _SOURCE_LABELS.get(report.analysis_method, "Bytes")

    # Header panel
    period = ""
    if report.window:
        period = f"\nPeriod: {report.window.since} ~ {report.window.until}"
    author = f"\nAuthor: {report.author_filter}" if report.author_filter else ""
    console.print(Panel(
        Text(f"gh-stats ({report.analysis_source}){period}{author}", justify="center"),
        style="bold cyan",
    ))
    console.print()

    # Skipped repos warning
    if report.skipped_repositories:
        names = ", ".join(s.full_name for s in report.skipped_repositories)
        console.print(
            f"[bold yellow]Warning:[/bold yellow] Skipped "
            f"{len(report.skipped_repositories)} repo(s): {names}"
        )
        for skipped in report.skipped_repositories:
            console.print(f"  [dim]{escape(skipped.full_name)}: {escape(skipped.reason)}[/dim]")
        console.print()

    # Summary
    console.print("[bold]Summary[/bold]")
    summary = Table(show_header=False, box=None, padding=(0, 2))
    summary.add_column("label", style="dim")
    summary.add_column("value", style="bold")
    summary.add_row("Repositories", _format_number(report.repository_count))
    summary.add_row(f"Total {value_label}", _format_number(report.total_bytes))
    summary.add_row("Method", report.analysis_method)
    if report.engine:
        summary.add_row("Engine", report.engine)
    summary.add_row("Forks", "included" if report.included_forks else "excluded")
    summary.add_row("Archived", "included" if report.included_archived else "excluded")
    summary.add_row("Markdown", "included" if report.included_markdown else "excluded")
    summary.add_row("Markup", "excluded" if report.excluded_markup_languages else "included")
    console.print(summary)
    console.print()

    # Language distribution
    if report.languages:
        console.print("[bold]Language Distribution[/bold]")
        console.print(_language_table(report.languages, value_label))
        console.print()
    else:
        console.print("[dim]No language data.[/dim]")
        console.print()

    if report.repo_composition and report.repo_composition.languages:
        console.print("[bold]Repository Composition[/bold]")
        console.print(_language_table(report.repo_composition.languages, "Bytes"))
        console.print()

    if output_file:
        _write_to_file(string_io.getvalue(), output_file)


def render_json(report: LanguageReport, output_file: str | None = None) -> None:
    """Render a LanguageReport as JSON."""
    content = json.dumps(asdict(report), indent=2, ensure_ascii=False)
    if output_file:
        _write_to_file(content, output_file)
    else:
        print(content)


def render_csv(report: LanguageReport, output_file: str | None = None) -> None:
    """Render the language distribution as CSV."""
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(["language", "value", "percentage"])
    for lang in report.languages:
        writer.writerow([lang.language, lang.bytes, lang.percentage])
    content = output.getvalue()
    if output_file:
        _write_to_file(content, output_file)
    else:
        print(content, end="")
