"""Git-based folder activity scoring.

Parses ``git log --name-only`` to find which folders have the most recent
edits. Results are cached per project with a short TTL; a post-commit
notification invalidates the cache early.
"""

from __future__ import annotations

import asyncio
import posixpath
import time
from dataclasses import dataclass, field
from typing import Any

from codemap.logging import get_logger

log = get_logger("git")

IGNORED_SEGMENTS = ("node_modules/", ".git/", "dist/", ".next/", "coverage/")
MAX_RECENT_FILES = 8
LIVE_FILE_WEIGHT = 10


@dataclass
class FolderScore:
    """Edit frequency of one folder."""

    folder: str  # project-relative, "." for the root
    score: int
    recent_files: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"folder": self.folder, "score": self.score, "recentFiles": list(self.recent_files)}


def score_folders(changed_files: list[str]) -> list[FolderScore]:
    """Aggregate changed file paths (newest first) into folder scores."""
    scores: dict[str, FolderScore] = {}
    for path in changed_files:
        path = path.strip()
        if not path or any(seg in path for seg in IGNORED_SEGMENTS):
            continue
        folder = posixpath.dirname(path) or "."
        name = posixpath.basename(path)
        entry = scores.get(folder)
        if entry is None:
            scores[folder] = FolderScore(folder=folder, score=1, recent_files=[name])
            continue
        entry.score += 1
        if len(entry.recent_files) < MAX_RECENT_FILES and name not in entry.recent_files:
            entry.recent_files.append(name)
    return sorted(scores.values(), key=lambda s: s.score, reverse=True)


def merge_live_activity(
    hot_folders: list[FolderScore],
    recently_active: dict[str, list[str]],
    limit: int,
) -> list[FolderScore]:
    """Blend live file activity into git scores.

    Live files move to the front of a folder's recent list; folders only
    seen live are scored by their number of active files.
    """
    merged: list[FolderScore] = []
    known: set[str] = set()
    for score in hot_folders:
        recent = list(score.recent_files)
        live = recently_active.get(score.folder)
        if live:
            recent = list(live) + [f for f in recent if f not in live]
        merged.append(FolderScore(score.folder, score.score, recent[:MAX_RECENT_FILES]))
        known.add(score.folder)

    for folder, files in recently_active.items():
        if folder not in known:
            merged.append(
                FolderScore(folder, len(files) * LIVE_FILE_WEIGHT, list(files[:MAX_RECENT_FILES]))
            )

    merged.sort(key=lambda s: s.score, reverse=True)
    return merged[:limit]


class GitScoreCache:
    """TTL-cached hot folder scores for one project.

    Git failures never propagate: the last good result (or an empty list)
    is served instead.
    """

    def __init__(
        self,
        project_root: str,
        ttl: float = 30.0,
        max_commits: int = 500,
        max_files: int = 2000,
        command_timeout: float = 10.0,
    ) -> None:
        self.project_root = project_root
        self.ttl = ttl
        self.max_commits = max_commits
        self.max_files = max_files
        self.command_timeout = command_timeout
        self._data: list[FolderScore] | None = None
        self._computed_at: float | None = None
        # bumped by invalidate(); a refresh started before the bump is stale
        self._generation = 0
        self._data_generation = -1
        self._refresh_lock = asyncio.Lock()
        self._attempts = 0
        self._run_generation = -1

    def invalidate(self) -> None:
        """Drop the cached scores so the next read recomputes them."""
        self._generation += 1
        self._computed_at = None

    def _is_fresh(self) -> bool:
        return (
            self._data is not None
            and self._computed_at is not None
            and self._data_generation == self._generation
            and time.monotonic() - self._computed_at < self.ttl
        )

    async def get_hot_folders(self, limit: int = 50) -> list[FolderScore]:
        """Cached scores, refreshed through a single in-flight git run."""
        if not self._is_fresh():
            attempt = self._attempts
            async with self._refresh_lock:
                # a run that finished while we waited answers for us too,
                # unless the cache was invalidated after that run started
                answered = attempt != self._attempts and self._run_generation == self._generation
                if not answered and not self._is_fresh():
                    await self._refresh()
        return list((self._data or [])[:limit])

    async def _refresh(self) -> None:
        generation = self._generation
        try:
            files = await self._changed_files()
        finally:
            self._attempts += 1
            self._run_generation = generation
        if files is not None:
            self._data = score_folders(files)
            self._computed_at = time.monotonic()
            self._data_generation = generation

    async def _changed_files(self) -> list[str] | None:
        """Run git log; None on any failure."""
        try:
            process = await asyncio.create_subprocess_exec(
                "git",
                "log",
                "--name-only",
                "--pretty=format:",
                "-n",
                str(self.max_commits),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
                cwd=self.project_root,
            )
        except (FileNotFoundError, OSError) as e:
            log.warning("Failed to run git in %s: %s", self.project_root, e)
            return None

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.command_timeout)
        except asyncio.TimeoutError:
            try:
                process.kill()
                await process.wait()
            except ProcessLookupError:
                pass
            log.warning("git log timed out after %ss", self.command_timeout)
            return None

        if process.returncode != 0:
            log.warning("git log exited with %s in %s", process.returncode, self.project_root)
            return None

        lines = [line for line in stdout.decode("utf-8", errors="replace").splitlines() if line]
        return lines[: self.max_files]
