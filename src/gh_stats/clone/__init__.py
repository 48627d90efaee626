"""Clone-based language analysis: acquisition, history mining and classification."""

from .analyzer import (
    CloneAnalyzeOptions,
    analyze_repo_full,
    analyze_repo_past_week,
    analyze_with_clone,
    ensure_clone_dependencies,
)
from .linguist import LinguistEngine

__all__ = [
    "CloneAnalyzeOptions",
    "LinguistEngine",
    "analyze_repo_full",
    "analyze_repo_past_week",
    "analyze_with_clone",
    "ensure_clone_dependencies",
]
