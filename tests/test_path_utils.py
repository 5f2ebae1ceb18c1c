#!/usr/bin/env python3
"""Tests for glob matching and file discovery helpers."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from archbase_tools.compat.datetime_utils import utc_now, utc_now_iso
from archbase_tools.compat.path_utils import (
    discover_files,
    expand_braces,
    matches_any,
    to_relative_posix,
)


class TestExpandBraces:
    def test_single_group(self):
        assert expand_braces("**/*.{ts,tsx}") == ["**/*.ts", "**/*.tsx"]

    def test_nested_group(self):
        assert expand_braces("a.{j{s,sx},ts}") == ["a.js", "a.jsx", "a.ts"]

    def test_no_group(self):
        assert expand_braces("src/*.ts") == ["src/*.ts"]

    def test_unbalanced_left_alone(self):
        assert expand_braces("a.{ts") == ["a.{ts"]


class TestMatchesAny:
    def test_double_star_matches_root(self):
        assert matches_any("App.tsx", ["**/*.{ts,tsx}"])
        assert matches_any("src/pages/App.tsx", ["**/*.{ts,tsx}"])

    def test_directory_excludes(self):
        assert matches_any("node_modules/react/index.js", ["**/node_modules/**"])
        assert matches_any("packages/a/node_modules/x.js", ["**/node_modules/**"])
        assert not matches_any("src/modules/x.js", ["**/node_modules/**"])

    def test_test_file_patterns(self):
        assert matches_any("src/Form.test.tsx", ["**/*.test.*"])
        assert not matches_any("src/Form.tsx", ["**/*.test.*"])


class TestDiscoverFiles:
    def _tree(self, root):
        for rel in ("b.tsx", "a.ts", "src/z.jsx", "src/c.md", "node_modules/x/y.js", "dist/out.js"):
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("export {};\n", encoding="utf-8")

    def test_sorted_and_filtered(self, tmp_path):
        self._tree(tmp_path)
        found = discover_files(
            tmp_path, ["**/*.{ts,tsx,js,jsx}"], ["**/node_modules/**", "**/dist/**"]
        )
        assert [to_relative_posix(p, tmp_path) for p in found] == ["a.ts", "b.tsx", "src/z.jsx"]

    def test_non_recursive(self, tmp_path):
        self._tree(tmp_path)
        found = discover_files(tmp_path, ["**/*.{ts,tsx,js,jsx}"], [], recursive=False)
        assert [p.name for p in found] == ["a.ts", "b.tsx"]

    def test_relative_outside_root(self, tmp_path):
        other = tmp_path.parent / "elsewhere.ts"
        assert to_relative_posix(other, tmp_path) == other.resolve().as_posix()


class TestDatetime:
    def test_timezone_aware(self):
        assert utc_now().tzinfo is not None
        assert utc_now_iso().endswith("+00:00")
