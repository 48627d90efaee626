"""Async wrappers around the external executables used in clone mode."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from urllib.parse import quote

from ..errors import CommandError, redact_token

logger = logging.getLogger(__name__)


def clone_url(full_name: str, token: str) -> str:
    return f"https://x-access-token:{quote(token, safe='')}@github.com/{full_name}.git"


async def run_command(
    command: str,
    args: list[str],
    cwd: str | Path | None = None,
    timeout: float | None = None,
) -> str:
    """Run ``command`` with ``args`` and return its stdout.

    Raises CommandError when the executable is missing, exits non-zero or
    exceeds ``timeout`` seconds. Messages never contain the access token.
    """
    logger.debug("$ %s", redact_token(" ".join([command, *args])))
    try:
        proc = await asyncio.create_subprocess_exec(
            command,
            *args,
            cwd=str(cwd) if cwd is not None else None,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise CommandError(command, args, None, str(exc)) from exc

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        proc.kill()
        await proc.wait()
        raise CommandError(command, args, None, f"timed out after {timeout}s") from exc

    if proc.returncode != 0:
        raise CommandError(
            command, args, proc.returncode, stderr.decode("utf-8", errors="replace")
        )
    return stdout.decode("utf-8", errors="replace")


async def git(repo_dir: str | Path, *args: str) -> str:
    """Run ``git -C <repo_dir> <args>``."""
    return await run_command("git", ["-C", str(repo_dir), *args])
