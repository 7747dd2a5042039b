"""Tests for the file/folder activity graph."""

from __future__ import annotations

import pytest

from codemap.events import ActivityEvent
from codemap.graph import ROOT_KEY, ActivityGraph, TreeEntry, scan_tree

ROOT = "/home/dev/project"


def _event(kind: str, path: str, agent_id: str | None = None, ts: int | None = None) -> ActivityEvent:
    data = {"type": kind, "filePath": path}
    if agent_id:
        data["agentId"] = agent_id
    if ts is not None:
        data["timestamp"] = ts
    return ActivityEvent.model_validate(data)


@pytest.fixture
def graph() -> ActivityGraph:
    return ActivityGraph(ROOT)


def _node(snapshot: dict, key: str) -> dict:
    return next(n for n in snapshot["nodes"] if n["id"] == key)


class TestInitialState:
    def test_only_root(self, graph: ActivityGraph) -> None:
        snapshot = graph.snapshot()
        assert [n["id"] for n in snapshot["nodes"]] == [ROOT_KEY]
        assert snapshot["links"] == []

    def test_root_shape(self, graph: ActivityGraph) -> None:
        root = _node(graph.snapshot(), ROOT_KEY)
        assert root["name"] == "project"
        assert root["isFolder"] is True
        assert root["depth"] == -1


class TestRecordActivity:
    def test_write_start_then_end(self, graph: ActivityGraph) -> None:
        """write-start flags the file and ancestors; write-end counts once and clears."""
        snapshot = graph.record_activity(_event("write-start", f"{ROOT}/src/a.ts", ts=1000))

        keys = [n["id"] for n in snapshot["nodes"]]
        assert keys == [ROOT_KEY, "src", "src/a.ts"]
        leaf = _node(snapshot, "src/a.ts")
        assert leaf["activeOperation"] == "write"
        assert leaf["lastActivity"] == {"type": "write", "timestamp": 1000}
        assert _node(snapshot, "src")["activeOperation"] == "write"
        assert _node(snapshot, ROOT_KEY)["activeOperation"] == "write"
        assert leaf["activityCount"] == {"reads": 0, "writes": 0, "searches": 0}

        snapshot = graph.record_activity(_event("write-end", f"{ROOT}/src/a.ts"))
        leaf = _node(snapshot, "src/a.ts")
        assert "activeOperation" not in leaf
        assert leaf["activityCount"]["writes"] == 1
        assert "activeOperation" not in _node(snapshot, "src")
        assert "activeOperation" not in _node(snapshot, ROOT_KEY)

    def test_depth_and_folder_flags(self, graph: ActivityGraph) -> None:
        snapshot = graph.record_activity(_event("read-start", f"{ROOT}/a/b/c.py"))
        assert _node(snapshot, "a")["depth"] == 0
        assert _node(snapshot, "a/b")["depth"] == 1
        assert _node(snapshot, "a/b/c.py")["depth"] == 2
        assert _node(snapshot, "a/b")["isFolder"] is True
        assert _node(snapshot, "a/b/c.py")["isFolder"] is False

    def test_links_point_child_to_parent(self, graph: ActivityGraph) -> None:
        snapshot = graph.record_activity(_event("read-start", f"{ROOT}/a/b.py"))
        assert {"source": "a", "target": ROOT_KEY} in snapshot["links"]
        assert {"source": "a/b.py", "target": "a"} in snapshot["links"]
        assert len(snapshot["links"]) == 2

    def test_node_creation_idempotent(self, graph: ActivityGraph) -> None:
        for _ in range(3):
            graph.record_activity(_event("read-start", f"{ROOT}/src/a.ts"))
            graph.record_activity(_event("read-end", f"{ROOT}/src/a.ts"))
        assert len(graph) == 3
        assert graph.get("src/a.ts").activity_count.reads == 3

    def test_relative_path_accepted(self, graph: ActivityGraph) -> None:
        graph.record_activity(_event("read-start", "docs/readme.md"))
        assert "docs/readme.md" in graph

    def test_search_does_not_mutate(self, graph: ActivityGraph) -> None:
        before = graph.snapshot()
        after = graph.record_activity(_event("search-start", "*.py"))
        assert after == before
        assert len(graph) == 1

    def test_outside_project_ignored(self, graph: ActivityGraph) -> None:
        graph.record_activity(_event("read-start", "/etc/passwd"))
        graph.record_activity(_event("read-start", f"{ROOT}/../escape.py"))
        assert len(graph) == 1

    def test_root_path_ignored(self, graph: ActivityGraph) -> None:
        graph.record_activity(_event("read-start", ROOT))
        assert len(graph) == 1
        assert graph.get(ROOT_KEY).active_operation is None

    def test_accessed_by_distinct_in_order(self, graph: ActivityGraph) -> None:
        path = f"{ROOT}/a.py"
        graph.record_activity(_event("read-start", path, agent_id="bbbbbbbb"))
        graph.record_activity(_event("read-start", path, agent_id="aaaaaaaa"))
        graph.record_activity(_event("read-end", path, agent_id="bbbbbbbb"))
        assert graph.get("a.py").accessed_by == ["bbbbbbbb", "aaaaaaaa"]

    def test_counts_never_decrease(self, graph: ActivityGraph) -> None:
        path = f"{ROOT}/a.py"
        graph.record_activity(_event("read-end", path))
        graph.record_activity(_event("read-start", path))
        graph.record_activity(_event("write-end", path))
        count = graph.get("a.py").activity_count
        assert (count.reads, count.writes) == (1, 1)

    def test_snapshot_is_a_fresh_copy(self, graph: ActivityGraph) -> None:
        snapshot = graph.record_activity(_event("read-start", f"{ROOT}/a.py"))
        snapshot["nodes"].clear()
        assert len(graph.snapshot()["nodes"]) == 2


class TestReset:
    def test_reset_leaves_fresh_root(self, graph: ActivityGraph) -> None:
        graph.record_activity(_event("write-start", f"{ROOT}/src/a.ts"))
        graph.reset()
        snapshot = graph.snapshot()
        assert [n["id"] for n in snapshot["nodes"]] == [ROOT_KEY]
        assert "activeOperation" not in snapshot["nodes"][0]


class TestRecentlyActive:
    def test_groups_by_folder_most_recent_first(self, graph: ActivityGraph) -> None:
        graph.record_activity(_event("read-start", f"{ROOT}/src/old.ts", ts=1_000))
        graph.record_activity(_event("read-start", f"{ROOT}/src/new.ts", ts=5_000))
        graph.record_activity(_event("write-start", f"{ROOT}/top.md", ts=4_000))

        recent = graph.recently_active(10_000, now=6_000)

        assert recent == {"src": ["new.ts", "old.ts"], ROOT_KEY: ["top.md"]}

    def test_window_is_strict(self, graph: ActivityGraph) -> None:
        graph.record_activity(_event("read-start", f"{ROOT}/a.ts", ts=1_000))
        assert graph.recently_active(5_000, now=6_000) == {}
        assert graph.recently_active(5_001, now=6_000) == {ROOT_KEY: ["a.ts"]}


class TestAddPaths:
    def test_adds_scanned_tree_and_skips_ignored(self, tmp_path) -> None:
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "main.py").write_text("")
        (tmp_path / "node_modules").mkdir()
        (tmp_path / "node_modules" / "dep.js").write_text("")
        (tmp_path / "README.md").write_text("")

        graph = ActivityGraph(tmp_path.as_posix())
        added = graph.add_paths(scan_tree(tmp_path.as_posix(), ignore_dirs=["node_modules"]))

        assert added == 3
        assert graph.get("src").is_folder
        assert not graph.get("src/main.py").is_folder
        assert "README.md" in graph
        assert "node_modules" not in graph

    def test_existing_nodes_kept(self) -> None:
        graph = ActivityGraph(ROOT)
        graph.record_activity(_event("write-end", f"{ROOT}/src/a.py"), 1)

        added = graph.add_paths([TreeEntry("src", True), TreeEntry("src/a.py", False)])

        assert added == 0
        assert graph.get("src/a.py").activity_count.writes == 1

    def test_nested_entry_creates_ancestors(self) -> None:
        graph = ActivityGraph(ROOT)
        assert graph.add_paths([TreeEntry("a/b/c.txt", False)]) == 1
        assert graph.get("a/b").is_folder

    def test_respects_max_nodes(self, tmp_path) -> None:
        for i in range(10):
            (tmp_path / f"f{i}.txt").write_text("")
        graph = ActivityGraph(tmp_path.as_posix())
        graph.add_paths(scan_tree(tmp_path.as_posix()), max_nodes=5)
        assert len(graph) == 5
