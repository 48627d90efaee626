"""Tests for linguist output parsing, the extension fallback and the language cache."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest

from gh_stats.clone.linguist import (
    LANGUAGE_CACHE_FILENAME,
    LanguageCache,
    LinguistEngine,
    detect_language_from_extension,
    dominant_language,
    parse_linguist_json,
    resolve_language_for_file,
    run_linguist_json,
)
from gh_stats.errors import CommandError


def test_parse_linguist_json_accepts_all_shapes():
    text = json.dumps({
        "TypeScript": 120,
        "JavaScript": {"size": 50},
        "Python": {"bytes": 30},
        "Unknown": "skip",
    })
    assert parse_linguist_json(text) == {"TypeScript": 120, "JavaScript": 50, "Python": 30}


def test_parse_linguist_json_prefers_size_over_bytes():
    text = json.dumps({"Go": {"size": 10, "bytes": 99, "percentage": "1.00"}})
    assert parse_linguist_json(text) == {"Go": 10}


def test_parse_linguist_json_drops_non_numeric():
    text = json.dumps({"Ruby": None, "C": True, "Rust": {"size": "12"}, "Shell": [1]})
    assert parse_linguist_json(text) == {}


def test_parse_linguist_json_non_object():
    assert parse_linguist_json("[1, 2]") == {}


def test_parse_linguist_json_invalid_raises():
    with pytest.raises(ValueError):
        parse_linguist_json("not json")


def test_dominant_language():
    assert dominant_language({"A": 1, "B": 5, "C": 3}) == "B"
    assert dominant_language({}) is None


@pytest.mark.parametrize(
    "path, expected",
    [
        ("src/app.tsx", "TypeScript"),
        ("pkg/main.go", "Go"),
        ("lib/mod.rs", "Rust"),
        ("tool.py", "Python"),
        ("README.MD", "Markdown"),
        ("conf/app.yml", "YAML"),
        ("data.json", "JSON"),
        ("build\\Dockerfile", "Dockerfile"),
        ("notes.txt", None),
        ("LICENSE", None),
    ],
)
def test_detect_language_from_extension(path, expected):
    assert detect_language_from_extension(path) == expected


@pytest.mark.asyncio
async def test_run_linguist_local_uses_repo_cwd():
    with patch("gh_stats.clone.linguist.run_command", new=AsyncMock(return_value="{}")) as mock_run:
        await run_linguist_json("/work/repo", "src/a.py")
    mock_run.assert_awaited_once_with("github-linguist", ["--json", "src/a.py"], cwd="/work/repo")


@pytest.mark.asyncio
async def test_run_linguist_docker_mounts_repo():
    with patch("gh_stats.clone.linguist.run_command", new=AsyncMock(return_value="{}")) as mock_run:
        await run_linguist_json("/work/repo", "src\\a.py", LinguistEngine.DOCKER, image="img:1")
    mock_run.assert_awaited_once_with(
        "docker",
        [
            "run", "--rm", "-v", "/work/repo:/repo", "-w", "/repo", "img:1",
            "github-linguist", "--json", "/repo/src/a.py",
        ],
    )


@pytest.mark.asyncio
async def test_run_linguist_whole_tree_has_no_path():
    with patch("gh_stats.clone.linguist.run_command", new=AsyncMock(return_value="{}")) as mock_run:
        await run_linguist_json("/work/repo")
    mock_run.assert_awaited_once_with("github-linguist", ["--json"], cwd="/work/repo")


@pytest.mark.asyncio
async def test_resolve_language_takes_largest_entry():
    output = json.dumps({"C": 10, "C++": 40})
    with patch("gh_stats.clone.linguist.run_command", new=AsyncMock(return_value=output)):
        assert await resolve_language_for_file("/r", "src/x.h") == "C++"


@pytest.mark.asyncio
async def test_resolve_language_reads_per_file_breakdown():
    output = json.dumps({"src/x.rb": {"lines": 3, "type": "Text", "language": "Ruby"}})
    with patch("gh_stats.clone.linguist.run_command", new=AsyncMock(return_value=output)):
        assert await resolve_language_for_file("/r", "src/x.rb") == "Ruby"


@pytest.mark.asyncio
async def test_resolve_language_falls_back_on_command_error():
    failing = AsyncMock(side_effect=CommandError("github-linguist", ["--json"], 1, "boom"))
    with patch("gh_stats.clone.linguist.run_command", new=failing):
        assert await resolve_language_for_file("/r", "src/x.go") == "Go"


@pytest.mark.asyncio
async def test_resolve_language_falls_back_on_empty_or_bad_output():
    with patch("gh_stats.clone.linguist.run_command", new=AsyncMock(return_value="{}")):
        assert await resolve_language_for_file("/r", "a.kt") == "Kotlin"
    with patch("gh_stats.clone.linguist.run_command", new=AsyncMock(return_value="garbage")):
        assert await resolve_language_for_file("/r", "a.unknownext") is None


def test_language_cache_missing_file_is_empty(tmp_path):
    cache = LanguageCache.load(tmp_path)
    assert len(cache) == 0
    assert "a.py" not in cache


def test_language_cache_corrupt_file_is_empty(tmp_path):
    (tmp_path / LANGUAGE_CACHE_FILENAME).write_text("{broken", encoding="utf-8")
    assert len(LanguageCache.load(tmp_path)) == 0
    (tmp_path / LANGUAGE_CACHE_FILENAME).write_text("[1]", encoding="utf-8")
    assert len(LanguageCache.load(tmp_path)) == 0


def test_language_cache_round_trip_keeps_resolved_only(tmp_path):
    cache = LanguageCache.load(tmp_path)
    cache.set("src/a.py", "Python")
    cache.set("bin/blob", None)
    assert "bin/blob" in cache
    cache.save()

    saved = json.loads((tmp_path / LANGUAGE_CACHE_FILENAME).read_text(encoding="utf-8"))
    assert saved == {"src/a.py": "Python"}

    reloaded = LanguageCache.load(tmp_path)
    assert reloaded.get("src/a.py") == "Python"
    assert "bin/blob" not in reloaded


def test_parse_linguist_json_drops_negative_and_non_finite_counts():
    text = '{"Python": -5, "Go": 3, "Rust": 1e400, "C": {"size": -1, "bytes": 7}}'
    assert parse_linguist_json(text) == {"Go": 3, "C": 7}


@pytest.mark.asyncio
async def test_resolve_language_falls_back_on_overflowing_count():
    output = '{"Python": 1e400}'
    with patch("gh_stats.clone.linguist.run_command", new=AsyncMock(return_value=output)):
        assert await resolve_language_for_file("/r", "x.py") == "Python"
    with patch("gh_stats.clone.linguist.run_command", new=AsyncMock(return_value=output)):
        assert await resolve_language_for_file("/r", "x.unknownext") is None


def test_language_cache_save_excludes_file_from_git_clean(tmp_path):
    (tmp_path / ".git" / "info").mkdir(parents=True)
    (tmp_path / ".git" / "info" / "exclude").write_text("# local ignores", encoding="utf-8")

    cache = LanguageCache.load(tmp_path)
    cache.set("a.py", "Python")
    cache.save()
    cache.save()

    lines = (tmp_path / ".git" / "info" / "exclude").read_text(encoding="utf-8").splitlines()
    assert lines == ["# local ignores", f"/{LANGUAGE_CACHE_FILENAME}"]


def test_language_cache_save_outside_git_checkout(tmp_path):
    cache = LanguageCache.load(tmp_path)
    cache.set("a.py", "Python")
    cache.save()
    assert not (tmp_path / ".git").exists()
