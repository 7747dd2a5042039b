"""File/folder activity graph.

Nodes are keyed by canonical project-relative path (see
:mod:`codemap.graph.resolver`). Ancestor folders are created lazily but
always before the child they contain, and activity never deletes nodes;
only :meth:`ActivityGraph.reset` does.
"""

from __future__ import annotations

import posixpath
import time
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from codemap.graph.nodes import ActivityNode, LastActivity, Operation
from codemap.graph.resolver import (
    ROOT_KEY,
    basename,
    is_inside_project,
    parent_key,
    to_canonical_key,
)
from codemap.logging import get_logger

if TYPE_CHECKING:
    from codemap.events import ActivityEvent
    from codemap.graph.watcher import TreeEntry

log = get_logger("graph")


class ActivityGraph:
    """Owns the activity tree for one project root."""

    def __init__(self, project_root: str) -> None:
        self.project_root = project_root
        self._nodes: dict[str, ActivityNode] = {}
        self._add_root()

    def _add_root(self) -> None:
        name = basename(self.project_root) or self.project_root
        self._nodes[ROOT_KEY] = ActivityNode(id=ROOT_KEY, name=name, is_folder=True, depth=-1)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, key: object) -> bool:
        return key in self._nodes

    def get(self, key: str) -> ActivityNode | None:
        return self._nodes.get(key)

    def keys(self) -> list[str]:
        return list(self._nodes)

    def folder_keys(self) -> list[str]:
        return [k for k, n in self._nodes.items() if n.is_folder]

    def _ensure_path(self, key: str, is_folder: bool) -> ActivityNode:
        """Create ``key`` and any missing ancestors; existing nodes are kept."""
        parts = key.split("/")
        current = ""
        node = self._nodes[ROOT_KEY]
        for depth, part in enumerate(parts):
            current = f"{current}/{part}" if current else part
            node = self._nodes.get(current)  # type: ignore[assignment]
            if node is None:
                leaf = depth == len(parts) - 1
                node = ActivityNode(
                    id=current,
                    name=part,
                    is_folder=is_folder if leaf else True,
                    depth=depth,
                )
                self._nodes[current] = node
        return node

    def _ancestors(self, key: str) -> Iterable[ActivityNode]:
        current = key
        while current != ROOT_KEY:
            current = parent_key(current)
            ancestor = self._nodes.get(current)
            if ancestor is not None:
                yield ancestor

    def record_activity(self, event: ActivityEvent, now: int | None = None) -> dict[str, Any]:
        """Apply a file activity event and return a fresh snapshot.

        Search events carry a pattern rather than a path and leave the graph
        untouched.
        """
        if event.is_search:
            return self.snapshot()

        key = to_canonical_key(event.file_path, self.project_root)
        if key != ROOT_KEY and not key.startswith("/"):
            key = posixpath.normpath(key)
        if key == ROOT_KEY or not is_inside_project(key):
            log.debug("Ignoring activity outside project: %s", event.file_path)
            return self.snapshot()

        operation: Operation = "read" if event.operation == "read" else "write"
        timestamp = int(event.timestamp) if event.timestamp else (now or _now_ms())

        node = self._ensure_path(key, is_folder=False)
        if event.is_start:
            node.active_operation = operation
            node.last_activity = LastActivity(operation, timestamp, event.agent_id)
        else:
            node.active_operation = None
            if operation == "read":
                node.activity_count.reads += 1
            else:
                node.activity_count.writes += 1

        if event.agent_id and event.agent_id not in node.accessed_by:
            node.accessed_by.append(event.agent_id)

        # Folders mirror the latest transition below them (last write wins)
        for ancestor in self._ancestors(key):
            ancestor.active_operation = operation if event.is_start else None

        return self.snapshot()

    def snapshot(self) -> dict[str, Any]:
        """Every node plus child -> parent links, as fresh JSON-ready dicts."""
        nodes = [n.to_dict() for n in self._nodes.values()]
        links = [
            {"source": key, "target": parent_key(key)}
            for key in self._nodes
            if key != ROOT_KEY and parent_key(key) in self._nodes
        ]
        return {"nodes": nodes, "links": links}

    def reset(self) -> None:
        """Drop every node and start over with a fresh root."""
        self._nodes.clear()
        self._add_root()

    def recently_active(self, max_age_ms: int, now: int | None = None) -> dict[str, list[str]]:
        """File names with activity inside the window, grouped by folder key.

        Each folder's files are ordered most recent first.
        """
        now = _now_ms() if now is None else now
        grouped: dict[str, list[tuple[int, str]]] = {}
        for node in self._nodes.values():
            if node.is_folder or node.last_activity is None:
                continue
            if now - node.last_activity.timestamp >= max_age_ms:
                continue
            grouped.setdefault(parent_key(node.id), []).append(
                (node.last_activity.timestamp, node.name)
            )
        return {
            folder: [name for _, name in sorted(files, key=lambda f: f[0], reverse=True)]
            for folder, files in grouped.items()
        }

    def add_paths(self, entries: Iterable[TreeEntry], max_nodes: int = 20_000) -> int:
        """Create nodes for paths found on disk; existing nodes are kept.

        Returns the number of nodes added.
        """
        added = 0
        for entry in entries:
            if len(self._nodes) >= max_nodes:
                log.warning("Graph stopped growing at %d nodes", max_nodes)
                break
            if entry.key in self._nodes or not is_inside_project(entry.key):
                continue
            self._ensure_path(entry.key, is_folder=entry.is_folder)
            added += 1
        return added


def _now_ms() -> int:
    return int(time.time() * 1000)
