"""Path canonicalisation and fallback lookup.

Graph keys are project-relative POSIX paths; the project root itself is
``"."``. These helpers are pure and hold no state.
"""

from __future__ import annotations

from collections.abc import Iterable

ROOT_KEY = "."


def to_canonical_key(raw_path: str, project_root: str) -> str:
    """Map ``raw_path`` to a project-relative key.

    Paths outside ``project_root`` are returned unchanged; callers decide
    whether to ignore them.
    """
    root = project_root.rstrip("/") or "/"
    if raw_path == root or raw_path == project_root:
        return ROOT_KEY
    prefix = root if root.endswith("/") else root + "/"
    if raw_path.startswith(prefix):
        return raw_path[len(prefix):] or ROOT_KEY
    return raw_path


def is_inside_project(key: str) -> bool:
    """True if a canonical key names something under the project root."""
    if key == ROOT_KEY:
        return True
    if not key or key.startswith("/"):
        return False
    return ".." not in key.split("/")


def basename(path: str) -> str:
    return path.rstrip("/").rsplit("/", 1)[-1]


def parent_key(key: str) -> str:
    """Direct parent of a canonical key (``"."`` for top-level entries)."""
    if "/" not in key:
        return ROOT_KEY
    return key.rsplit("/", 1)[0]


def _is_segment_suffix(longer: str, shorter: str) -> bool:
    return longer == shorter or longer.endswith("/" + shorter)


def resolve_with_fallback(path: str, known_keys: Iterable[str]) -> str | None:
    """Find the known key that best names ``path``.

    Priority is fixed:
      1. exact match;
      2. suffix match on whole path segments, either a known key ending in
         ``path`` or ``path`` ending in a known key; the longest key wins;
      3. a known key with the same file name.
    """
    if not path:
        return None
    keys = list(known_keys)
    if path in keys:
        return path

    suffix_matches = [
        k for k in keys if k != ROOT_KEY and (_is_segment_suffix(k, path) or _is_segment_suffix(path, k))
    ]
    if suffix_matches:
        return max(suffix_matches, key=len)

    name = basename(path)
    if not name:
        return None
    for key in keys:
        if basename(key) == name:
            return key
    return None


def nearest_ancestor_folder(path: str, known_folder_keys: Iterable[str]) -> str | None:
    """Closest known folder containing ``path``, falling back to the root."""
    folders = set(known_folder_keys)
    parts = path.strip("/").split("/")
    parts.pop()
    while parts:
        candidate = "/".join(parts)
        if candidate in folders:
            return candidate
        parts.pop()
    return ROOT_KEY if ROOT_KEY in folders else None
