"""File/folder activity graph and path resolution."""

from codemap.graph.nodes import ActivityCount, ActivityNode, LastActivity
from codemap.graph.resolver import (
    ROOT_KEY,
    nearest_ancestor_folder,
    resolve_with_fallback,
    to_canonical_key,
)
from codemap.graph.store import ActivityGraph
from codemap.graph.watcher import TreeEntry, TreeWatcher, scan_tree

__all__ = [
    "ROOT_KEY",
    "ActivityCount",
    "ActivityGraph",
    "ActivityNode",
    "LastActivity",
    "TreeEntry",
    "TreeWatcher",
    "nearest_ancestor_folder",
    "resolve_with_fallback",
    "scan_tree",
    "to_canonical_key",
]
