"""Deepening shallow clones until they cover a time window."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from ..errors import CommandError
from .commands import git

logger = logging.getLogger(__name__)

DEEPEN_STEPS = (100, 300, 700, 1500)


def parse_iso(value: str) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    text = (value or "").strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def oldest_commit_time(repo_dir: str | Path) -> datetime | None:
    out = await git(repo_dir, "log", "--all", "--reverse", "--format=%cI", "-n", "1")
    return parse_iso(out)


async def ensure_history_for_since(repo_dir: str | Path, since_iso: str) -> int:
    """Fetch older history until the clone reaches back to ``since_iso``.

    Gives up quietly after the last deepen step or on the first failed fetch;
    analysis then works with whatever history is present. Returns the number of
    successful deepen fetches.
    """
    cutoff = parse_iso(since_iso)
    if cutoff is None:
        return 0

    deepened = 0
    for step in DEEPEN_STEPS:
        oldest = await oldest_commit_time(repo_dir)
        if oldest is not None and oldest <= cutoff:
            return deepened

        logger.debug("deepening clone %s by %d", repo_dir, step)
        try:
            await git(repo_dir, "fetch", "--deepen", str(step), "origin")
        except CommandError as exc:
            logger.debug("deepen stopped for %s: %s", repo_dir, exc)
            return deepened
        deepened += 1
    return deepened
