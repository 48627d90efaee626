"""Exception hierarchy and credential redaction."""

from __future__ import annotations

import re

_TOKEN_IN_URL = re.compile(r"(x-access-token:)([^@\s]+)")


def redact_token(value: str) -> str:
    """Replace the secret part of any ``x-access-token:<secret>@`` URL with ``***``."""
    return _TOKEN_IN_URL.sub(r"\1***", value)


class GhStatsError(Exception):
    """Base class for errors surfaced to the user."""


class DependencyError(GhStatsError):
    """A required external tool is missing from PATH."""


class CommandError(GhStatsError):
    """An external command exited non-zero, timed out or could not be started."""

    def __init__(
        self,
        command: str,
        args: list[str],
        returncode: int | None,
        stderr: str = "",
    ) -> None:
        self.command = command
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = redact_token(stderr.strip())
        cmdline = redact_token(" ".join([command, *args]))
        if returncode is None:
            message = f"Command failed: {cmdline}"
        else:
            message = f"Command failed with exit code {returncode}: {cmdline}"
        if self.stderr:
            message = f"{message}\n{self.stderr}"
        super().__init__(message)


class CloneError(GhStatsError):
    """A repository could not be cloned or refreshed."""


class GitHubAPIError(GhStatsError):
    """The GitHub API answered with a non-success status."""

    def __init__(self, status_code: int, body: str, url: str = "") -> None:
        self.status_code = status_code
        self.body = body
        self.url = url
        super().__init__(f"GitHub API error {status_code}: {body}")


class IdentityError(GhStatsError):
    """The authenticated user could not be resolved for author filtering."""
