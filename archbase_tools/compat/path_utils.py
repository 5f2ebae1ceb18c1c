#!/usr/bin/env python3
"""Path and glob helpers shared by the scanner, pattern analyzer and migrator.

Glob patterns follow the conventions of the JavaScript tool chain the
analysed projects come from: ``**/*.{ts,tsx}`` brace groups, ``**/``
prefixes that also match at the project root, and directory excludes such
as ``node_modules/**``. Matching always happens on POSIX-style paths
relative to the project root so results are identical on every platform.

Usage:
    from archbase_tools.compat.path_utils import discover_files

    files = discover_files(root, ["**/*.{ts,tsx}"], ["**/node_modules/**"])
"""

import fnmatch
import os
from pathlib import Path
from typing import Iterable, List, Sequence

_BRACE_OPEN = "{"
_BRACE_CLOSE = "}"

# Probe name used to test whether a whole directory is excluded.
_DIR_PROBE = "__archbase_probe__"


# ---------------------------------------------------------------------------
# Pattern helpers
# ---------------------------------------------------------------------------
def expand_braces(pattern: str) -> List[str]:
    """Expand ``{a,b}`` groups into separate glob patterns.

    Groups are expanded left to right; nested groups are expanded by
    recursion on the partially expanded result.
    """
    start = pattern.find(_BRACE_OPEN)
    if start < 0:
        return [pattern]
    depth = 0
    end = -1
    for idx in range(start, len(pattern)):
        char = pattern[idx]
        if char == _BRACE_OPEN:
            depth += 1
        elif char == _BRACE_CLOSE:
            depth -= 1
            if depth == 0:
                end = idx
                break
    if end < 0:
        return [pattern]

    prefix, body, suffix = pattern[:start], pattern[start + 1:end], pattern[end + 1:]
    options = []
    depth = 0
    current = ""
    for char in body:
        if char == "," and depth == 0:
            options.append(current)
            current = ""
            continue
        if char == _BRACE_OPEN:
            depth += 1
        elif char == _BRACE_CLOSE:
            depth -= 1
        current += char
    options.append(current)

    expanded = []
    for option in options:
        expanded.extend(expand_braces(prefix + option + suffix))
    return expanded


def _match_one(rel_path: str, pattern: str) -> bool:
    if fnmatch.fnmatchcase(rel_path, pattern):
        return True
    # "**/x" also matches "x" at the project root
    if pattern.startswith("**/") and fnmatch.fnmatchcase(rel_path, pattern[3:]):
        return True
    return False


def matches_any(rel_path: str, patterns: Iterable[str]) -> bool:
    """Return True if the POSIX relative path matches any glob pattern."""
    for pattern in patterns:
        for candidate in expand_braces(pattern):
            if _match_one(rel_path, candidate):
                return True
    return False


def to_relative_posix(path, root) -> str:
    """Return *path* relative to *root* with forward slashes.

    Paths outside *root* are returned as absolute POSIX paths.
    """
    path = Path(path)
    root = Path(root)
    try:
        return path.resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return path.resolve().as_posix()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------
def discover_files(
    root,
    include_patterns: Sequence[str],
    exclude_patterns: Sequence[str],
    recursive: bool = True,
) -> List[Path]:
    """Find files under *root* matching include and not exclude patterns.

    Excluded directories are pruned during the walk. The result is sorted
    by POSIX relative path, which is the enumeration order every batch
    operation relies on.
    """
    root = Path(root)
    found = {}

    for current, dirs, files in os.walk(root):
        current_path = Path(current)
        rel_dir = current_path.relative_to(root).as_posix()
        rel_dir = "" if rel_dir == "." else rel_dir

        if not recursive:
            dirs[:] = []
        else:
            kept = []
            for name in sorted(dirs):
                rel_child = f"{rel_dir}/{name}" if rel_dir else name
                if matches_any(f"{rel_child}/{_DIR_PROBE}", exclude_patterns):
                    continue
                kept.append(name)
            dirs[:] = kept

        for name in files:
            rel_file = f"{rel_dir}/{name}" if rel_dir else name
            if not matches_any(rel_file, include_patterns):
                continue
            if matches_any(rel_file, exclude_patterns):
                continue
            found[rel_file] = current_path / name

    return [found[key] for key in sorted(found)]
