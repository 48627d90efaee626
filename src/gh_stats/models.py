"""Data models for gh-stats."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

LanguageBytes = dict[str, int]


@dataclass(frozen=True)
class RepoSummary:
    name: str
    full_name: str
    fork: bool = False
    archived: bool = False
    private: bool = False
    languages_url: str = ""
    pushed_at: str | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> RepoSummary:
        """Build a summary from a GitHub ``/user/repos`` item."""
        full_name = payload["full_name"]
        return cls(
            name=payload.get("name") or full_name.split("/")[-1],
            full_name=full_name,
            fork=bool(payload.get("fork", False)),
            archived=bool(payload.get("archived", False)),
            private=bool(payload.get("private", False)),
            languages_url=payload.get("languages_url") or "",
            pushed_at=payload.get("pushed_at"),
        )


@dataclass
class LanguageStats:
    language: str
    bytes: int
    percentage: float


@dataclass(frozen=True)
class SkippedRepository:
    full_name: str
    reason: str


@dataclass
class CloneAnalysisResult:
    totals: LanguageBytes = field(default_factory=dict)
    skipped_repositories: list[SkippedRepository] = field(default_factory=list)


@dataclass(frozen=True)
class Identity:
    login: str
    emails: tuple[str, ...] = ()

    @property
    def author_patterns(self) -> list[str]:
        """Login plus emails, deduplicated, in first-seen order."""
        seen: dict[str, None] = {}
        for value in (self.login, *self.emails):
            if value:
                seen.setdefault(value, None)
        return list(seen)


@dataclass
class WindowInfo:
    days: int
    since: str
    until: str
    activity_field: str


@dataclass
class CompositionStats:
    total_bytes: int
    languages: list[LanguageStats] = field(default_factory=list)


@dataclass
class LanguageReport:
    total_bytes: int
    generated_at: str
    repository_count: int
    included_forks: bool
    included_archived: bool
    included_markdown: bool
    excluded_markup_languages: bool = True
    analysis_source: str = "api"
    analysis_method: str = "repo_bytes"
    engine: str | None = None
    author_filter: str | None = None
    author_patterns: list[str] | None = None
    languages: list[LanguageStats] = field(default_factory=list)
    repo_composition: CompositionStats | None = None
    weekly_churn: CompositionStats | None = None
    skipped_repositories: list[SkippedRepository] = field(default_factory=list)
    window: WindowInfo | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LanguageReport:
        """Rebuild a report saved with ``render_json``."""

        def _stats(items: list[dict[str, Any]] | None) -> list[LanguageStats]:
            return [LanguageStats(**item) for item in items or []]

        def _composition(raw: dict[str, Any] | None) -> CompositionStats | None:
            if raw is None:
                return None
            return CompositionStats(
                total_bytes=raw["total_bytes"], languages=_stats(raw.get("languages"))
            )

        window = data.get("window")
        return cls(
            total_bytes=data["total_bytes"],
            generated_at=data["generated_at"],
            repository_count=data["repository_count"],
            included_forks=data["included_forks"],
            included_archived=data["included_archived"],
            included_markdown=data["included_markdown"],
            excluded_markup_languages=data.get("excluded_markup_languages", True),
            analysis_source=data.get("analysis_source", "api"),
            analysis_method=data.get("analysis_method", "repo_bytes"),
            engine=data.get("engine"),
            author_filter=data.get("author_filter"),
            author_patterns=data.get("author_patterns"),
            languages=_stats(data.get("languages")),
            repo_composition=_composition(data.get("repo_composition")),
            weekly_churn=_composition(data.get("weekly_churn")),
            skipped_repositories=[
                SkippedRepository(**item) for item in data.get("skipped_repositories") or []
            ],
            window=WindowInfo(**window) if window else None,
        )
