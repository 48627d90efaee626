"""Runtime settings resolved from the environment."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

DEFAULT_API_BASE = "https://api.github.com"
DEFAULT_LINGUIST_IMAGE = "github/linguist"
CACHE_DIRNAME = "gh-stats-repo-cache"


def default_cache_dir() -> Path:
    return Path(tempfile.gettempdir()) / CACHE_DIRNAME


@dataclass(frozen=True)
class Settings:
    token: str | None = None
    api_base: str = DEFAULT_API_BASE
    linguist_image: str = DEFAULT_LINGUIST_IMAGE
    cache_dir: Path | None = None
    debug: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Read ``GITHUB_TOKEN``/``GH_TOKEN`` and the ``GH_STATS_*`` variables."""
        env = os.environ if environ is None else environ
        cache_dir = env.get("GH_STATS_CACHE_DIR")
        return cls(
            token=env.get("GITHUB_TOKEN") or env.get("GH_TOKEN") or None,
            api_base=(env.get("GH_STATS_API_BASE") or DEFAULT_API_BASE).rstrip("/"),
            linguist_image=env.get("GH_STATS_LINGUIST_IMAGE") or DEFAULT_LINGUIST_IMAGE,
            cache_dir=Path(cache_dir) if cache_dir else None,
            debug=env.get("GH_STATS_DEBUG") == "1",
        )

    def resolve_cache_dir(self, override: str | Path | None = None) -> Path:
        if override:
            return Path(override)
        return self.cache_dir or default_cache_dir()
