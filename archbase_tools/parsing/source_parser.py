#!/usr/bin/env python3
"""Source Parser — tree-sitter front end for React/TypeScript files.

Turns component source text into a traversable syntax tree. Component
files mix element-literal syntax (JSX) with TypeScript annotations, so the
TSX grammar is used whenever element syntax is allowed; plain ``.ts``
files use the TypeScript grammar because ``<T>value`` casts are ambiguous
with element syntax.

tree-sitter never throws on malformed input, it inserts ERROR / MISSING
nodes instead. parse() turns the first such node into a SourceSyntaxError
so batch callers can count the file as failed and move on.

Each call performs a fresh parse; there is no cache.

Usage:
    from archbase_tools.parsing.source_parser import parse, dialect_for_path

    dialect, jsx = dialect_for_path("src/UserForm.tsx")
    parsed = parse(code, file_path="src/UserForm.tsx", dialect=dialect, jsx=jsx)
    for node in walk(parsed.root):
        ...
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Tuple

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser, Tree

from archbase_tools.errors import SourceSyntaxError

TSX_LANGUAGE = Language(tree_sitter_typescript.language_tsx())
TYPESCRIPT_LANGUAGE = Language(tree_sitter_typescript.language_typescript())

SUPPORTED_DIALECTS = {"typescript", "javascript"}

# Extension -> (dialect, jsx allowed)
_EXTENSION_DIALECTS = {
    ".tsx": ("typescript", True),
    ".ts": ("typescript", False),
    ".mts": ("typescript", False),
    ".cts": ("typescript", False),
    ".jsx": ("javascript", True),
    ".js": ("javascript", True),
    ".mjs": ("javascript", True),
    ".cjs": ("javascript", True),
}


# ---------------------------------------------------------------------------
# Parsed source value
# ---------------------------------------------------------------------------
@dataclass
class ParsedSource:
    """A parsed file: the original text plus its tree-sitter tree."""

    source: str
    source_bytes: bytes
    tree: Tree
    file_path: str
    dialect: str
    jsx: bool

    @property
    def root(self) -> Node:
        return self.tree.root_node

    def text(self, node: Optional[Node]) -> str:
        """Return the source text covered by *node* ('' for None)."""
        if node is None:
            return ""
        return self.source_bytes[node.start_byte:node.end_byte].decode("utf-8", errors="replace")

    def sexp(self) -> str:
        """S-expression of the whole tree, used for structural comparisons."""
        return str(self.tree.root_node)


def line_of(node: Node) -> int:
    """1-based start line of *node*."""
    return node.start_point[0] + 1


def column_of(node: Node) -> int:
    """0-based start column of *node*."""
    return node.start_point[1]


# ---------------------------------------------------------------------------
# Tree helpers
# ---------------------------------------------------------------------------
def walk(node: Node, named_only: bool = True) -> Iterator[Node]:
    """Yield *node* and its descendants in source order (pre-order)."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        children = current.named_children if named_only else current.children
        stack.extend(reversed(children))


def ancestors(node: Node) -> Iterator[Node]:
    """Yield the parents of *node*, innermost first."""
    current = node.parent
    while current is not None:
        yield current
        current = current.parent


def string_value(parsed: ParsedSource, node: Optional[Node]) -> Optional[str]:
    """Return the unquoted value of a string or template literal node."""
    if node is None or node.type not in ("string", "template_string"):
        return None
    raw = parsed.text(node)
    if len(raw) >= 2 and raw[0] in "\"'`" and raw[-1] == raw[0]:
        return raw[1:-1]
    return raw


def _first_error_node(node: Node) -> Optional[Node]:
    stack = [node]
    while stack:
        current = stack.pop()
        if current.is_error or current.is_missing:
            return current
        if current.has_error:
            stack.extend(reversed(current.children))
    return None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------
def dialect_for_path(file_path) -> Tuple[str, bool]:
    """Map a file extension to the (dialect, jsx) pair used to parse it."""
    suffix = Path(str(file_path)).suffix.lower()
    return _EXTENSION_DIALECTS.get(suffix, ("typescript", True))


def _language_for(dialect: str, jsx: bool) -> Language:
    if dialect == "typescript" and not jsx:
        return TYPESCRIPT_LANGUAGE
    return TSX_LANGUAGE


def parse(
    source_text: str,
    file_path: str = "<string>",
    dialect: str = "typescript",
    jsx: bool = True,
) -> ParsedSource:
    """Parse *source_text* into a ParsedSource.

    Raises:
        ValueError: for an unsupported dialect.
        SourceSyntaxError: when the text does not parse cleanly.
    """
    if dialect not in SUPPORTED_DIALECTS:
        raise ValueError(f"Unsupported dialect '{dialect}'; expected one of {sorted(SUPPORTED_DIALECTS)}")

    source_bytes = source_text.encode("utf-8")
    parser = Parser(_language_for(dialect, jsx))
    tree = parser.parse(source_bytes)

    if tree.root_node.has_error:
        bad = _first_error_node(tree.root_node)
        if bad is not None and bad.is_missing:
            message = f"Missing '{bad.type}'"
        else:
            message = "Unexpected syntax"
        raise SourceSyntaxError(
            message,
            file_path=str(file_path),
            line=line_of(bad) if bad is not None else None,
            column=column_of(bad) if bad is not None else None,
        )

    return ParsedSource(
        source=source_text,
        source_bytes=source_bytes,
        tree=tree,
        file_path=str(file_path),
        dialect=dialect,
        jsx=jsx,
    )


def parse_file(file_path) -> ParsedSource:
    """Read a UTF-8 file and parse it with the dialect implied by its extension."""
    path = Path(file_path)
    dialect, jsx = dialect_for_path(path)
    text = path.read_text(encoding="utf-8")
    return parse(text, file_path=str(path), dialect=dialect, jsx=jsx)
