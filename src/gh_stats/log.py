"""Logging setup for the command line."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "gh_stats"


def setup_logging(verbose: bool = False) -> None:
    """Attach a stderr RichHandler to the ``gh_stats`` logger.

    Verbose mode logs at DEBUG; otherwise only warnings and errors are shown so
    that JSON/CSV written to stdout stays clean.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=verbose,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)
    logger.propagate = False

    if verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)
