#!/usr/bin/env python3
"""Migration rules — named, versioned source transformations.

Two rule kinds share one interface:

* TextPatternRule: ordered regex substitutions. Used for cosmetic prop
  renames where the attribute name is all that changes. One change record
  is produced per match.
* AstRewriteRule: edits computed from the tree-sitter tree as byte ranges
  and spliced into the original text, so formatting outside the edited
  ranges is untouched. A parse failure is reported as a failed result.

Rules are pure: transform(code, file_path) reads nothing but its inputs.

Usage:
    from archbase_tools.modernization.migration_rules import DEFAULT_RULES

    for rule in DEFAULT_RULES:
        if rule.applies_to(code):
            result = rule.transform(code, "src/UserForm.tsx")
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from tree_sitter import Node

from archbase_tools.analysis.models import MigrationChange, MigrationResult
from archbase_tools.analysis.registry import is_archbase_module
from archbase_tools.errors import SourceSyntaxError
from archbase_tools.parsing.source_parser import (
    ParsedSource,
    column_of,
    dialect_for_path,
    line_of,
    parse,
    string_value,
    walk,
)

logger = logging.getLogger("archbase.modernization.migration_rules")


# ---------------------------------------------------------------------------
# Base rule
# ---------------------------------------------------------------------------
class MigrationRule(ABC):
    """A named transformation between two library versions."""

    kind = "base"

    def __init__(self, rule_id: str, name: str, description: str,
                 from_version: str, to_version: str, component_names: Iterable[str]):
        self.rule_id = rule_id
        self.name = name
        self.description = description
        self.from_version = from_version
        self.to_version = to_version
        self.component_names: FrozenSet[str] = frozenset(component_names)

    def applies_to(self, code: str) -> bool:
        """Cheap textual pre-filter: does *code* mention a target component?"""
        return any(name in code for name in self.component_names)

    @abstractmethod
    def transform(self, code: str, file_path: str) -> MigrationResult:
        """Return the migrated code, or a failed result with its errors."""

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.rule_id,
            "name": self.name,
            "description": self.description,
            "fromVersion": self.from_version,
            "toVersion": self.to_version,
            "componentNames": sorted(self.component_names),
            "kind": self.kind,
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.rule_id}>"


# ---------------------------------------------------------------------------
# Text pattern rules
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class TextSubstitution:
    pattern: str
    replacement: str
    description: str


def attribute_rename(old: str, new: str, description: Optional[str] = None) -> TextSubstitution:
    """Rename a JSX attribute ``old={...}`` to ``new={...}``.

    The name must follow whitespace and be joined to ``={`` with nothing in
    between. Declarations such as ``const old = {...}`` never match.
    """
    return TextSubstitution(
        pattern=rf"(?<=\s)(?<!\bconst\s)(?<!\blet\s)(?<!\bvar\s){re.escape(old)}(?==\{{)",
        replacement=new,
        description=description or f"Updated {old} to {new}",
    )


class TextPatternRule(MigrationRule):
    """Applies regex substitutions in order; never fails."""

    kind = "text"

    def __init__(self, rule_id: str, name: str, description: str, from_version: str,
                 to_version: str, component_names: Iterable[str],
                 substitutions: Sequence[TextSubstitution]):
        super().__init__(rule_id, name, description, from_version, to_version, component_names)
        self.substitutions = tuple(substitutions)

    def transform(self, code: str, file_path: str) -> MigrationResult:
        changes: List[MigrationChange] = []
        text = code
        for sub in self.substitutions:
            regex = re.compile(sub.pattern)
            current = text

            def _replace(match, _sub=sub, _text=current):
                start = match.start()
                after = match.expand(_sub.replacement)
                changes.append(MigrationChange(
                    type="replace",
                    description=_sub.description,
                    line=_text.count("\n", 0, start) + 1,
                    column=start - (_text.rfind("\n", 0, start) + 1),
                    before=match.group(0),
                    after=after,
                ))
                return after

            text = regex.sub(_replace, current)
        if changes:
            logger.debug("%s: %s made %d change(s)", file_path, self.rule_id, len(changes))
        return MigrationResult(success=True, code=text, changes=changes)


# ---------------------------------------------------------------------------
# AST rewrite rules
# ---------------------------------------------------------------------------
@dataclass
class SourceEdit:
    """Replace bytes [start, end) with *replacement*, described by *change*."""

    start: int
    end: int
    replacement: str
    change: MigrationChange


def whole_line_span(source: bytes, start: int, end: int) -> Tuple[int, int]:
    """Widen [start, end) to full lines when nothing else shares those lines."""
    line_start = source.rfind(b"\n", 0, start) + 1
    line_end = source.find(b"\n", end)
    line_end = len(source) if line_end < 0 else line_end
    if source[line_start:start].strip() or source[end:line_end].strip():
        return start, end
    if line_end < len(source):
        return line_start, line_end + 1
    return line_start, line_end


def splice(source: bytes, edits: Sequence[SourceEdit]) -> Tuple[str, List[SourceEdit]]:
    """Apply non-overlapping edits; returns the new text and the edits kept.

    When edits overlap, the earliest-starting (widest on ties) wins and
    edits nested inside it are dropped.
    """
    ordered = sorted(edits, key=lambda e: (e.start, -(e.end - e.start)))
    kept: List[SourceEdit] = []
    last_end = -1
    for edit in ordered:
        if edit.start < last_end:
            continue
        kept.append(edit)
        last_end = max(last_end, edit.end)

    out = source
    for edit in reversed(kept):
        out = out[:edit.start] + edit.replacement.encode("utf-8") + out[edit.end:]
    return out.decode("utf-8"), kept


class AstRewriteRule(MigrationRule):
    """Computes edits from the syntax tree and splices them into the text."""

    kind = "ast"

    @abstractmethod
    def collect_edits(self, parsed: ParsedSource, warnings: List[str]) -> List[SourceEdit]:
        """Edits for *parsed*; append anything needing a manual look to *warnings*."""

    def transform(self, code: str, file_path: str) -> MigrationResult:
        dialect, jsx = dialect_for_path(file_path)
        try:
            parsed = parse(code, file_path=file_path, dialect=dialect, jsx=jsx)
        except SourceSyntaxError as exc:
            return MigrationResult(success=False, errors=[f"Failed to parse file: {exc}"])

        warnings: List[str] = []
        edits = self.collect_edits(parsed, warnings)
        if not edits:
            return MigrationResult(success=True, code=code, warnings=warnings)

        new_code, kept = splice(parsed.source_bytes, edits)
        logger.debug("%s: %s made %d change(s)", file_path, self.rule_id, len(kept))
        return MigrationResult(
            success=True,
            code=new_code,
            changes=[edit.change for edit in kept],
            warnings=warnings,
        )


class DataSourceV1ToV2Rule(AstRewriteRule):
    """ArchbaseDataSource -> ArchbaseRemoteDataSource, minus manual refreshes.

    Renames the V1 factory and hook where they are imported from an Archbase
    module (import specifiers and unaliased references), removes standalone
    ``ds.forceUpdate()`` statements and ``forceUpdate`` JSX attributes, and
    warns about calls that need a manual look.
    """

    RENAMES: Dict[str, str] = {
        "ArchbaseDataSource": "ArchbaseRemoteDataSource",
        "useArchbaseDataSource": "useArchbaseRemoteDataSource",
    }

    def __init__(self):
        super().__init__(
            rule_id="datasource-v1-to-v2",
            name="DataSource V1 to V2 Migration",
            description="Migrates from ArchbaseDataSource to ArchbaseRemoteDataSource",
            from_version="1.x",
            to_version="2.x",
            component_names=(
                "ArchbaseEdit", "ArchbaseSelect", "ArchbaseTextArea",
                "ArchbaseDataGrid", "ArchbaseFormTemplate",
            ),
        )

    # -- imports --------------------------------------------------------
    def _archbase_specifiers(self, parsed: ParsedSource) -> List[Node]:
        specifiers = []
        for node in parsed.root.named_children:
            if node.type != "import_statement":
                continue
            module = string_value(parsed, node.child_by_field_name("source"))
            if module is None or not is_archbase_module(module):
                continue
            for sub in walk(node):
                if sub.type == "import_specifier":
                    specifiers.append(sub)
        return specifiers

    def _specifier_removal_span(self, source: bytes, spec: Node) -> Tuple[int, int]:
        start, end = spec.start_byte, spec.end_byte
        following = spec.next_sibling
        preceding = spec.prev_sibling
        if following is not None and following.type == ",":
            end = following.end_byte
            while end < len(source) and source[end:end + 1] in (b" ", b"\t"):
                end += 1
        elif preceding is not None and preceding.type == ",":
            start = preceding.start_byte
        return whole_line_span(source, start, end)

    def _import_edits(self, parsed: ParsedSource) -> Tuple[List[SourceEdit], Dict[str, str]]:
        specifiers = self._archbase_specifiers(parsed)
        # imported name -> local binding, first specifier wins
        bound: Dict[str, str] = {}
        for s in specifiers:
            local = s.child_by_field_name("alias")
            if local is None:
                local = s.child_by_field_name("name")
            bound.setdefault(parsed.text(s.child_by_field_name("name")), parsed.text(local))
        edits: List[SourceEdit] = []
        renamed_locals: Dict[str, str] = {}

        for spec in specifiers:
            name_node = spec.child_by_field_name("name")
            old = parsed.text(name_node)
            new = self.RENAMES.get(old)
            if new is None:
                continue
            aliased = spec.child_by_field_name("alias") is not None

            if new in bound and not aliased:
                renamed_locals[old] = bound[new]
                start, end = self._specifier_removal_span(parsed.source_bytes, spec)
                edits.append(SourceEdit(start, end, "", MigrationChange(
                    type="replace",
                    description=f"Replaced import of {old} with existing {new} import",
                    line=line_of(spec),
                    column=column_of(spec),
                    before=old,
                    after=new,
                )))
            else:
                if not aliased:
                    renamed_locals[old] = new
                edits.append(SourceEdit(name_node.start_byte, name_node.end_byte, new, MigrationChange(
                    type="replace",
                    description=f"Updated import from {old} to {new}",
                    line=line_of(name_node),
                    column=column_of(name_node),
                    before=old,
                    after=new,
                )))
        return edits, renamed_locals

    # -- body -----------------------------------------------------------
    def collect_edits(self, parsed: ParsedSource, warnings: List[str]) -> List[SourceEdit]:
        source = parsed.source_bytes
        edits, renamed_locals = self._import_edits(parsed)

        for node in walk(parsed.root):
            kind = node.type

            if kind in ("identifier", "type_identifier") and renamed_locals:
                old = parsed.text(node)
                new = renamed_locals.get(old)
                if new is None or self._inside_import(node):
                    continue
                edits.append(SourceEdit(node.start_byte, node.end_byte, new, MigrationChange(
                    type="update",
                    description=f"Updated reference {old} to {new}",
                    line=line_of(node),
                    column=column_of(node),
                    before=old,
                    after=new,
                )))

            elif kind == "jsx_attribute":
                named = node.named_children
                if not named or parsed.text(named[0]) != "forceUpdate":
                    continue
                previous = node.prev_sibling
                start = previous.end_byte if previous is not None else node.start_byte
                edits.append(SourceEdit(start, node.end_byte, "", MigrationChange(
                    type="remove",
                    description="Removed forceUpdate prop (no longer needed in V2)",
                    line=line_of(node),
                    column=column_of(node),
                    before=parsed.text(node),
                )))

            elif kind == "call_expression":
                fn = node.child_by_field_name("function")
                if fn is None or fn.type != "member_expression":
                    continue
                method = parsed.text(fn.child_by_field_name("property"))
                owner = parsed.text(fn.child_by_field_name("object"))
                if method == "forceUpdate" and owner != "this":
                    statement = node.parent
                    if statement is not None and statement.type == "expression_statement":
                        start, end = whole_line_span(source, statement.start_byte, statement.end_byte)
                        edits.append(SourceEdit(start, end, "", MigrationChange(
                            type="remove",
                            description=f"Removed {owner}.forceUpdate() call (automatic in V2)",
                            line=line_of(node),
                            column=column_of(node),
                            before=parsed.text(statement),
                        )))
                    else:
                        warnings.append(
                            f"Line {line_of(node)}: {owner}.forceUpdate() is used inside an "
                            f"expression and was left in place; remove it manually"
                        )
                elif method == "setFieldValue":
                    warnings.append(
                        f"Line {line_of(node)}: setFieldValue calls should be reviewed "
                        f"for V2 reactive patterns"
                    )
        return edits

    @staticmethod
    def _inside_import(node: Node) -> bool:
        current = node.parent
        while current is not None:
            if current.type == "import_statement":
                return True
            current = current.parent
        return False


# ---------------------------------------------------------------------------
# Default registry
# ---------------------------------------------------------------------------
def build_default_rules() -> Tuple[MigrationRule, ...]:
    """The shipped rules, in application order."""
    return (
        DataSourceV1ToV2Rule(),
        TextPatternRule(
            rule_id="form-validation-upgrade",
            name="Form Validation Upgrade",
            description="Updates form validation patterns to V2",
            from_version="1.x",
            to_version="2.x",
            component_names=("ArchbaseFormTemplate",),
            substitutions=(
                attribute_rename("validation", "validationRules",
                                 "Updated validation prop to validationRules"),
                attribute_rename("onValidationError", "onValidationFailed"),
            ),
        ),
        TextPatternRule(
            rule_id="event-handler-upgrade",
            name="Event Handler Upgrade",
            description="Updates event handler patterns for V2",
            from_version="1.x",
            to_version="2.x",
            component_names=("ArchbaseDataGrid", "ArchbaseFormTemplate"),
            substitutions=(
                attribute_rename("onRowClick", "onRowSelect"),
                attribute_rename("onCellClick", "onCellSelect"),
            ),
        ),
    )


DEFAULT_RULES: Tuple[MigrationRule, ...] = build_default_rules()


def find_rule(rules: Sequence[MigrationRule], rule_id: str) -> Optional[MigrationRule]:
    return next((rule for rule in rules if rule.rule_id == rule_id), None)
