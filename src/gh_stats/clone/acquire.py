"""Repository acquisition: scratch clones and the persistent clone cache."""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable

from ..errors import CloneError, CommandError, redact_token
from ..models import RepoSummary
from .commands import clone_url, git, run_command

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RepoCheckout:
    """A working directory plus the action that disposes of it."""

    path: Path
    cleanup: Callable[[], Awaitable[None]]


def cache_path_for_repo(cache_root: str | Path, full_name: str) -> Path:
    return Path(cache_root) / full_name.replace("/", "__")


async def _remove_tree(path: Path) -> None:
    await asyncio.to_thread(shutil.rmtree, path, ignore_errors=True)


async def _noop() -> None:
    return None


async def clone_fresh(repo: RepoSummary, token: str, repo_dir: Path) -> None:
    """Replace ``repo_dir`` with a depth-1 clone of ``repo``."""
    await _remove_tree(repo_dir)
    repo_dir.parent.mkdir(parents=True, exist_ok=True)
    await run_command("git", ["clone", "--depth=1", clone_url(repo.full_name, token), str(repo_dir)])


async def update_cached_repo(repo: RepoSummary, token: str, repo_dir: Path) -> None:
    """Refresh a cached clone in place, re-cloning if it is missing or broken."""
    if not (repo_dir / ".git").exists():
        await clone_fresh(repo, token, repo_dir)
        return

    try:
        await git(repo_dir, "remote", "set-url", "origin", clone_url(repo.full_name, token))
        await git(repo_dir, "fetch", "--prune", "origin")
        await git(repo_dir, "reset", "--hard", "HEAD")
        await git(repo_dir, "clean", "-fd")
        await git(repo_dir, "checkout", "-f", "HEAD")
        await git(repo_dir, "pull", "--ff-only")
    except CommandError as exc:
        logger.debug("cache refresh failed for %s, re-cloning: %s", repo.full_name, exc)
        await clone_fresh(repo, token, repo_dir)


async def prepare_repo_directory(
    repo: RepoSummary,
    token: str,
    tmp_root: str | Path,
    cache_root: str | Path | None = None,
) -> RepoCheckout:
    """Produce a working copy of ``repo``.

    With ``cache_root`` the clone lives at a deterministic path and survives the
    run (cleanup is a no-op). Without it a fresh temporary clone is made and
    cleanup deletes it.
    """
    if cache_root is not None:
        repo_dir = cache_path_for_repo(cache_root, repo.full_name)
        try:
            await update_cached_repo(repo, token, repo_dir)
        except CommandError as exc:
            raise CloneError(f"Failed to clone {repo.full_name}: {redact_token(str(exc))}") from exc
        return RepoCheckout(path=repo_dir, cleanup=_noop)

    repo_dir = Path(tempfile.mkdtemp(prefix="gh-stats-clone-", dir=str(tmp_root)))

    async def cleanup() -> None:
        await _remove_tree(repo_dir)

    try:
        await clone_fresh(repo, token, repo_dir)
    except Exception as exc:
        await cleanup()
        raise CloneError(f"Failed to clone {repo.full_name}: {redact_token(str(exc))}") from exc
    return RepoCheckout(path=repo_dir, cleanup=cleanup)
