"""Language classification through github-linguist, with an extension fallback."""

from __future__ import annotations

import enum
import json
import logging
import math
import posixpath
from pathlib import Path, PurePosixPath

from ..config import DEFAULT_LINGUIST_IMAGE
from ..errors import CommandError
from ..models import LanguageBytes
from .commands import run_command

logger = logging.getLogger(__name__)

LANGUAGE_CACHE_FILENAME = ".gh-stats-language-cache.json"
CONTAINER_MOUNT = "/repo"


class LinguistEngine(str, enum.Enum):
    LOCAL = "local"
    DOCKER = "docker"


EXTENSION_LANGUAGES = {
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".js": "JavaScript",
    ".jsx": "JavaScript",
    ".mjs": "JavaScript",
    ".cjs": "JavaScript",
    ".py": "Python",
    ".go": "Go",
    ".rs": "Rust",
    ".java": "Java",
    ".rb": "Ruby",
    ".php": "PHP",
    ".cs": "C#",
    ".cpp": "C++",
    ".cc": "C++",
    ".hpp": "C++",
    ".c": "C",
    ".h": "C",
    ".swift": "Swift",
    ".kt": "Kotlin",
    ".scala": "Scala",
    ".html": "HTML",
    ".css": "CSS",
    ".scss": "SCSS",
    ".md": "Markdown",
    ".mdx": "MDX",
    ".json": "JSON",
    ".yml": "YAML",
    ".yaml": "YAML",
    ".toml": "TOML",
    ".sh": "Shell",
}

FILENAME_LANGUAGES = {
    "dockerfile": "Dockerfile",
    "makefile": "Makefile",
    "cmakelists.txt": "CMake",
    "gemfile": "Ruby",
    "rakefile": "Ruby",
}


async def run_linguist_json(
    repo_dir: str | Path,
    file_path: str | None = None,
    engine: LinguistEngine = LinguistEngine.LOCAL,
    image: str = DEFAULT_LINGUIST_IMAGE,
) -> str:
    """Run ``github-linguist --json`` over the tree or a single relative path."""
    if engine == LinguistEngine.DOCKER:
        args = [
            "run",
            "--rm",
            "-v",
            f"{repo_dir}:{CONTAINER_MOUNT}",
            "-w",
            CONTAINER_MOUNT,
            image,
            "github-linguist",
            "--json",
        ]
        if file_path:
            args.append(posixpath.join(CONTAINER_MOUNT, file_path.replace("\\", "/")))
        return await run_command("docker", args)

    args = ["--json"]
    if file_path:
        args.append(file_path)
    return await run_command("github-linguist", args, cwd=repo_dir)


def _as_count(value: object) -> int | None:
    # bool is an int subclass but never a byte count
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if (isinstance(value, float) and not math.isfinite(value)) or value < 0:
        return None
    return int(value)


def parse_linguist_json(json_text: str) -> LanguageBytes:
    """Read linguist's JSON breakdown into ``{language: bytes}``.

    A language may map to a number or to an object carrying ``size`` or
    ``bytes``; entries of any other shape are dropped. Raises ValueError on
    text that is not JSON.
    """
    parsed = json.loads(json_text)
    if not isinstance(parsed, dict):
        return {}

    result: LanguageBytes = {}
    for language, raw in parsed.items():
        count = _as_count(raw)
        if count is None and isinstance(raw, dict):
            count = _as_count(raw.get("size"))
            if count is None:
                count = _as_count(raw.get("bytes"))
        if count is not None:
            result[language] = count
    return result


def detect_language_from_extension(file_path: str) -> str | None:
    path = PurePosixPath(file_path.replace("\\", "/"))
    by_name = FILENAME_LANGUAGES.get(path.name.lower())
    if by_name:
        return by_name
    return EXTENSION_LANGUAGES.get(path.suffix.lower())


def dominant_language(language_bytes: LanguageBytes) -> str | None:
    if not language_bytes:
        return None
    return max(language_bytes.items(), key=lambda item: item[1])[0]


def file_breakdown_language(json_text: str) -> str | None:
    """Language from the per-file shape ``{path: {"language": ...}}``.

    Newer linguist releases describe a single file this way instead of by
    language totals.
    """
    parsed = json.loads(json_text)
    if not isinstance(parsed, dict):
        return None
    for entry in parsed.values():
        if isinstance(entry, dict) and isinstance(entry.get("language"), str):
            return entry["language"]
    return None


async def resolve_language_for_file(
    repo_dir: str | Path,
    file_path: str,
    engine: LinguistEngine = LinguistEngine.LOCAL,
    image: str = DEFAULT_LINGUIST_IMAGE,
) -> str | None:
    """Return the dominant language of one file, or None when unknown."""
    relative = file_path.replace("\\", "/")
    try:
        output = await run_linguist_json(repo_dir, relative, engine, image)
        language = dominant_language(parse_linguist_json(output)) or file_breakdown_language(output)
        if language:
            return language
    except (CommandError, ValueError) as exc:
        logger.debug("linguist failed for %s, using extension: %s", relative, exc)
    return detect_language_from_extension(relative)


class LanguageCache:
    """Path to language map persisted inside a repository working copy.

    Entries are keyed by path only and never invalidated; a file whose
    language changes keeps its first classification.
    """

    def __init__(self, path: Path, entries: dict[str, str] | None = None) -> None:
        self.path = path
        self._entries: dict[str, str | None] = dict(entries or {})

    @classmethod
    def load(cls, repo_dir: str | Path) -> LanguageCache:
        path = Path(repo_dir) / LANGUAGE_CACHE_FILENAME
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return cls(path)
        if not isinstance(raw, dict):
            return cls(path)
        entries = {k: v for k, v in raw.items() if isinstance(k, str) and isinstance(v, str)}
        return cls(path, entries)

    def __contains__(self, file_path: str) -> bool:
        return file_path in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, file_path: str) -> str | None:
        return self._entries.get(file_path)

    def set(self, file_path: str, language: str | None) -> None:
        self._entries[file_path] = language

    def to_dict(self) -> dict[str, str]:
        """Resolved entries only; unknown paths are retried on the next run."""
        return {k: v for k, v in self._entries.items() if v}

    def save(self) -> None:
        self.path.write_text(json.dumps(self.to_dict()), encoding="utf-8")
        self._exclude_from_clean()

    def _exclude_from_clean(self) -> None:
        """List the cache file in .git/info/exclude so `git clean -fd` keeps it."""
        git_dir = self.path.parent / ".git"
        if not git_dir.is_dir():
            return
        exclude = git_dir / "info" / "exclude"
        pattern = f"/{self.path.name}"
        try:
            existing = exclude.read_text(encoding="utf-8")
        except FileNotFoundError:
            existing = ""
        if pattern in existing.splitlines():
            return
        exclude.parent.mkdir(parents=True, exist_ok=True)
        prefix = "" if not existing or existing.endswith("\n") else "\n"
        with open(exclude, "a", encoding="utf-8") as f:
            f.write(f"{prefix}{pattern}\n")
