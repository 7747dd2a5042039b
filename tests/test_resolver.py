"""Tests for path canonicalisation and fallback lookup."""

from __future__ import annotations

from codemap.graph.resolver import (
    ROOT_KEY,
    is_inside_project,
    nearest_ancestor_folder,
    parent_key,
    resolve_with_fallback,
    to_canonical_key,
)

ROOT = "/home/dev/project"


class TestToCanonicalKey:
    def test_root_maps_to_dot(self) -> None:
        assert to_canonical_key(ROOT, ROOT) == ROOT_KEY

    def test_root_with_trailing_slash(self) -> None:
        assert to_canonical_key(ROOT, ROOT + "/") == ROOT_KEY

    def test_strips_root_prefix(self) -> None:
        assert to_canonical_key(f"{ROOT}/src/app.ts", ROOT) == "src/app.ts"

    def test_outside_path_unchanged(self) -> None:
        assert to_canonical_key("/etc/hosts", ROOT) == "/etc/hosts"

    def test_sibling_with_common_prefix_unchanged(self) -> None:
        """A sibling directory sharing the root's name prefix is not inside."""
        assert to_canonical_key(f"{ROOT}-other/a.py", ROOT) == f"{ROOT}-other/a.py"

    def test_relative_path_unchanged(self) -> None:
        assert to_canonical_key("src/app.ts", ROOT) == "src/app.ts"


class TestIsInsideProject:
    def test_relative_key_inside(self) -> None:
        assert is_inside_project("src/a.py")

    def test_absolute_key_outside(self) -> None:
        assert not is_inside_project("/etc/hosts")

    def test_parent_traversal_outside(self) -> None:
        assert not is_inside_project("../elsewhere/a.py")
        assert not is_inside_project("src/../../a.py")

    def test_empty_outside(self) -> None:
        assert not is_inside_project("")


class TestParentKey:
    def test_top_level_parent_is_root(self) -> None:
        assert parent_key("README.md") == ROOT_KEY

    def test_nested_parent(self) -> None:
        assert parent_key("src/lib/a.py") == "src/lib"


class TestResolveWithFallback:
    def test_exact_match_wins(self) -> None:
        keys = ["src/utils/index.ts", "lib/index.ts"]
        assert resolve_with_fallback("lib/index.ts", keys) == "lib/index.ts"

    def test_exact_beats_filename_match(self) -> None:
        """An exact key is chosen even if another key shares the file name."""
        keys = ["other/app.ts", "app.ts"]
        assert resolve_with_fallback("app.ts", keys) == "app.ts"

    def test_known_key_ends_with_path(self) -> None:
        keys = ["packages/web/src/app.ts", "README.md"]
        assert resolve_with_fallback("src/app.ts", keys) == "packages/web/src/app.ts"

    def test_path_ends_with_known_key(self) -> None:
        keys = ["src/app.ts"]
        assert resolve_with_fallback("/abs/checkout/src/app.ts", keys) == "src/app.ts"

    def test_suffix_must_align_on_segments(self) -> None:
        """``myapp.ts`` is not a suffix match for ``app.ts``."""
        keys = ["src/myapp.ts"]
        assert resolve_with_fallback("app.ts", keys) is None

    def test_longest_suffix_match_wins(self) -> None:
        keys = ["app.ts", "src/app.ts"]
        assert resolve_with_fallback("/abs/src/app.ts", keys) == "src/app.ts"

    def test_filename_fallback(self) -> None:
        keys = ["lib/config.yaml"]
        assert resolve_with_fallback("other/config.yaml", keys) == "lib/config.yaml"

    def test_no_match(self) -> None:
        assert resolve_with_fallback("missing.py", ["a.py", "b/c.py"]) is None

    def test_empty_path(self) -> None:
        assert resolve_with_fallback("", ["a.py"]) is None


class TestNearestAncestorFolder:
    def test_direct_parent(self) -> None:
        folders = [ROOT_KEY, "src", "src/lib"]
        assert nearest_ancestor_folder("src/lib/a.py", folders) == "src/lib"

    def test_skips_unknown_levels(self) -> None:
        folders = [ROOT_KEY, "src"]
        assert nearest_ancestor_folder("src/deep/er/a.py", folders) == "src"

    def test_falls_back_to_root(self) -> None:
        assert nearest_ancestor_folder("x/y/z.py", [ROOT_KEY]) == ROOT_KEY

    def test_none_without_root(self) -> None:
        assert nearest_ancestor_folder("x/y/z.py", ["other"]) is None
