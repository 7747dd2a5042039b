"""Polling watcher for files and folders created under the project root.

Polling is used instead of native file watchers for cross-platform
reliability. Only creations are reported: removed paths stay in the graph
until it is reset.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from codemap.graph.resolver import to_canonical_key
from codemap.logging import get_logger

log = get_logger("watching")


@dataclass(frozen=True)
class TreeEntry:
    """One path found on disk, as a canonical graph key."""

    key: str
    is_folder: bool


def scan_tree(project_root: str, ignore_dirs: Iterable[str] = (), limit: int = 20_000) -> list[TreeEntry]:
    """Walk the project tree, parents before children, skipping ignored names.

    Unreadable directories are logged and skipped.
    """
    root = Path(project_root).as_posix()
    ignored = set(ignore_dirs)
    entries: list[TreeEntry] = []
    stack = [Path(project_root)]
    while stack and len(entries) < limit:
        directory = stack.pop()
        try:
            children = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError as e:
            log.debug("Skipping unreadable directory %s: %s", directory, e)
            continue
        for child in children:
            if child.name in ignored:
                continue
            try:
                is_dir = child.is_dir(follow_symlinks=False)
            except OSError:
                continue
            entries.append(TreeEntry(to_canonical_key(Path(child.path).as_posix(), root), is_dir))
            if is_dir:
                stack.append(Path(child.path))
            if len(entries) >= limit:
                log.warning("Tree scan of %s stopped at %d entries", project_root, limit)
                break
    return entries


class TreeWatcher:
    """Reports paths that appeared since the previous poll.

    Example:
        watcher = TreeWatcher("/project", ignore_dirs=["node_modules"])
        watcher.prime()
        ...
        for entry in watcher.check_changes():
            graph.add_paths([entry])
    """

    def __init__(
        self,
        project_root: str,
        ignore_dirs: Iterable[str] = (),
        max_entries: int = 20_000,
    ) -> None:
        self.project_root = project_root
        self._ignore_dirs = list(ignore_dirs)
        self._max_entries = max_entries
        self._known: set[str] = set()

    @property
    def known_count(self) -> int:
        return len(self._known)

    def _scan(self) -> list[TreeEntry]:
        return scan_tree(self.project_root, self._ignore_dirs, self._max_entries)

    def prime(self) -> list[TreeEntry]:
        """Record the current tree as known and return all of it."""
        entries = self._scan()
        self._known = {entry.key for entry in entries}
        return entries

    def check_changes(self) -> list[TreeEntry]:
        """Paths created since the last call to :meth:`prime` or this method.

        Synchronous; callers on the event loop run it in a worker thread.
        """
        created = [entry for entry in self._scan() if entry.key not in self._known]
        self._known.update(entry.key for entry in created)
        if created:
            log.debug("Detected %d new paths under %s", len(created), self.project_root)
        return created
