"""Parsing of ``git log --numstat`` output into per-path churn."""

from __future__ import annotations

import re
from typing import Iterable

COMMIT_MARKER = "@@@"

_BRACE_RENAME = re.compile(r"\{([^{}]+)\}")


def normalize_git_path(raw_path: str) -> str:
    """Map a numstat path, including rename notation, to its post-rename form.

    ``src/{old => new}/index.ts`` becomes ``src/new/index.ts`` and
    ``old.txt => new.txt`` becomes ``new.txt``.
    """
    trimmed = raw_path.strip()
    if "=>" not in trimmed:
        return trimmed

    match = _BRACE_RENAME.search(trimmed)
    if match and "=>" in match.group(1):
        _left, _, right = match.group(1).partition("=>")
        # an empty side means the file moved up or down a directory level
        replaced = trimmed[: match.start()] + right.strip() + trimmed[match.end() :]
        return re.sub(r"/{2,}", "/", replaced).lstrip("/")

    right = trimmed.split("=>")[-1].strip()
    return right or trimmed


def normalize_author_patterns(patterns: Iterable[str] | None) -> list[str]:
    if not patterns:
        return []
    return [p.strip().lower() for p in patterns if p and p.strip()]


def _parse_data_line(line: str) -> tuple[str, int] | None:
    if "\t" not in line:
        return None
    parts = line.split("\t")
    if len(parts) < 3 or not parts[2]:
        return None
    try:
        added = int(parts[0])
        deleted = int(parts[1])
    except ValueError:
        return None
    return normalize_git_path(parts[2]), added + deleted


def parse_numstat_output(output: str) -> dict[str, int]:
    """Sum added+deleted lines per normalized path, ignoring anything malformed."""
    totals: dict[str, int] = {}
    for line in output.splitlines():
        parsed = _parse_data_line(line)
        if parsed is None:
            continue
        path, churn = parsed
        totals[path] = totals.get(path, 0) + churn
    return totals


def parse_numstat_output_for_authors(
    output: str, author_patterns: Iterable[str] | None
) -> dict[str, int]:
    """Like parse_numstat_output, restricted to commits by matching authors.

    Commits are introduced by ``@@@<hash>\\t<name>\\t<email>`` marker lines. A
    commit matches when ``"<name> <email>"`` lower-cased contains any pattern;
    with no patterns every commit matches.
    """
    patterns = normalize_author_patterns(author_patterns)
    totals: dict[str, int] = {}
    include = not patterns

    for line in output.splitlines():
        if not line:
            continue
        if line.startswith(COMMIT_MARKER):
            fields = line[len(COMMIT_MARKER) :].split("\t")
            name = fields[1] if len(fields) > 1 else ""
            email = fields[2] if len(fields) > 2 else ""
            author = f"{name.lower()} {email.lower()}".strip()
            include = not patterns or any(p in author for p in patterns)
            continue
        if not include:
            continue
        parsed = _parse_data_line(line)
        if parsed is None:
            continue
        path, churn = parsed
        totals[path] = totals.get(path, 0) + churn
    return totals
