"""Tests for git hot-folder scoring."""

from __future__ import annotations

import asyncio
import shutil
import subprocess
from unittest.mock import AsyncMock, patch

import pytest

from codemap.git import FolderScore, GitScoreCache, merge_live_activity, score_folders

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


class TestScoreFolders:
    def test_counts_per_folder(self) -> None:
        scores = score_folders(["src/a.ts", "src/b.ts", "src/a.ts", "README.md"])
        assert scores[0] == FolderScore("src", 3, ["a.ts", "b.ts"])
        assert scores[1] == FolderScore(".", 1, ["README.md"])

    def test_skips_ignored_segments(self) -> None:
        scores = score_folders(["node_modules/x/index.js", "dist/app.js", "lib/ok.py"])
        assert [s.folder for s in scores] == ["lib"]

    def test_recent_files_capped_at_eight(self) -> None:
        scores = score_folders([f"src/f{i}.py" for i in range(12)])
        assert scores[0].score == 12
        assert scores[0].recent_files == [f"f{i}.py" for i in range(8)]

    def test_blank_lines_ignored(self) -> None:
        assert score_folders(["", "  ", "a/b.py"]) == [FolderScore("a", 1, ["b.py"])]

    def test_to_dict_camel_case(self) -> None:
        assert FolderScore("src", 2, ["a.py"]).to_dict() == {
            "folder": "src",
            "score": 2,
            "recentFiles": ["a.py"],
        }


class TestMergeLiveActivity:
    def test_live_files_prepended(self) -> None:
        hot = [FolderScore("src", 5, ["a.ts", "b.ts"])]
        merged = merge_live_activity(hot, {"src": ["b.ts", "c.ts"]}, limit=10)
        assert merged[0].recent_files == ["b.ts", "c.ts", "a.ts"]
        assert merged[0].score == 5

    def test_live_only_folder_scored(self) -> None:
        hot = [FolderScore("src", 15, ["a.ts"])]
        merged = merge_live_activity(hot, {"docs": ["x.md", "y.md"]}, limit=10)
        assert [(s.folder, s.score) for s in merged] == [("docs", 20), ("src", 15)]

    def test_limit_applied_after_sort(self) -> None:
        hot = [FolderScore("a", 1), FolderScore("b", 2)]
        merged = merge_live_activity(hot, {"c": ["z"]}, limit=2)
        assert [s.folder for s in merged] == ["c", "b"]

    def test_input_not_mutated(self) -> None:
        hot = [FolderScore("src", 5, ["a.ts"])]
        merge_live_activity(hot, {"src": ["new.ts"]}, limit=10)
        assert hot[0].recent_files == ["a.ts"]


class TestGitScoreCache:
    @pytest.mark.asyncio
    async def test_not_a_repository_returns_empty(self, tmp_path) -> None:
        cache = GitScoreCache(tmp_path.as_posix())
        assert await cache.get_hot_folders() == []

    @pytest.mark.asyncio
    async def test_missing_directory_returns_empty(self, tmp_path) -> None:
        cache = GitScoreCache((tmp_path / "missing").as_posix())
        assert await cache.get_hot_folders() == []

    @pytest.mark.asyncio
    async def test_cached_within_ttl(self, tmp_path) -> None:
        cache = GitScoreCache(tmp_path.as_posix(), ttl=60)
        with patch.object(cache, "_changed_files", AsyncMock(return_value=["a/b.py"])) as run:
            await cache.get_hot_folders()
            await cache.get_hot_folders()
        assert run.await_count == 1

    @pytest.mark.asyncio
    async def test_invalidate_forces_recompute(self, tmp_path) -> None:
        cache = GitScoreCache(tmp_path.as_posix(), ttl=60)
        with patch.object(cache, "_changed_files", AsyncMock(return_value=["a/b.py"])) as run:
            await cache.get_hot_folders()
            cache.invalidate()
            await cache.get_hot_folders()
        assert run.await_count == 2

    @pytest.mark.asyncio
    async def test_failure_serves_last_good_result(self, tmp_path) -> None:
        cache = GitScoreCache(tmp_path.as_posix(), ttl=0)
        with patch.object(cache, "_changed_files", AsyncMock(return_value=["a/b.py"])):
            first = await cache.get_hot_folders()
        with patch.object(cache, "_changed_files", AsyncMock(return_value=None)):
            second = await cache.get_hot_folders()
        assert first == second == [FolderScore("a", 1, ["b.py"])]

    @pytest.mark.asyncio
    async def test_limit(self, tmp_path) -> None:
        cache = GitScoreCache(tmp_path.as_posix())
        files = ["a/1.py", "a/2.py", "b/1.py", "c/1.py"]
        with patch.object(cache, "_changed_files", AsyncMock(return_value=files)):
            assert [s.folder for s in await cache.get_hot_folders(limit=1)] == ["a"]

    @pytest.mark.asyncio
    async def test_concurrent_reads_share_one_run(self, tmp_path) -> None:
        cache = GitScoreCache(tmp_path.as_posix(), ttl=60)

        async def slow_log() -> list[str]:
            await asyncio.sleep(0.01)
            return ["a/b.py"]

        with patch.object(cache, "_changed_files", AsyncMock(side_effect=slow_log)) as run:
            results = await asyncio.gather(*(cache.get_hot_folders() for _ in range(3)))

        assert run.await_count == 1
        assert results[0] == results[1] == results[2] == [FolderScore("a", 1, ["b.py"])]

    @pytest.mark.asyncio
    async def test_concurrent_failure_not_retried(self, tmp_path) -> None:
        cache = GitScoreCache(tmp_path.as_posix())

        async def failing_log() -> None:
            await asyncio.sleep(0.01)
            return None

        with patch.object(cache, "_changed_files", AsyncMock(side_effect=failing_log)) as run:
            results = await asyncio.gather(cache.get_hot_folders(), cache.get_hot_folders())

        assert run.await_count == 1
        assert results == [[], []]

    @pytest.mark.asyncio
    async def test_invalidate_during_run_recomputes(self, tmp_path) -> None:
        cache = GitScoreCache(tmp_path.as_posix(), ttl=60)
        outputs = iter([["old/a.py"], ["new/b.py"]])

        async def log() -> list[str]:
            await asyncio.sleep(0.01)
            return next(outputs)

        async def commit() -> list[FolderScore]:
            await asyncio.sleep(0)
            cache.invalidate()
            return await cache.get_hot_folders()

        with patch.object(cache, "_changed_files", AsyncMock(side_effect=log)) as run:
            _, after_commit = await asyncio.gather(cache.get_hot_folders(), commit())

        assert run.await_count == 2
        assert after_commit == [FolderScore("new", 1, ["b.py"])]

    @requires_git
    @pytest.mark.asyncio
    async def test_reads_real_history(self, tmp_path) -> None:
        def git(*args: str) -> None:
            subprocess.run(["git", *args], cwd=tmp_path, check=True, capture_output=True)

        git("init", "-q")
        git("config", "user.email", "dev@example.com")
        git("config", "user.name", "Dev")
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "main.py").write_text("print('hi')\n")
        (tmp_path / "README.md").write_text("# hi\n")
        git("add", ".")
        git("commit", "-q", "-m", "init")
        (tmp_path / "src" / "main.py").write_text("print('bye')\n")
        git("commit", "-q", "-am", "edit")

        cache = GitScoreCache(tmp_path.as_posix())
        scores = await cache.get_hot_folders()

        assert scores[0] == FolderScore("src", 2, ["main.py"])
        assert FolderScore(".", 1, ["README.md"]) in scores
