#!/usr/bin/env python3
"""Component Fact Extractor — per-file usage facts for Archbase components.

Walks one parsed file and produces a flat, source-ordered list of
ComponentUsageFact records: which tracked component is rendered where,
with which props, whether it is bound to a DataSource (and which
DataSource generation), which pattern tags apply and which issues were
found. extract() adds the file-level summary (hooks, declared props,
validation library, complexity tier).

Extraction never raises for unresolvable code: a tag whose import cannot
be traced is still recorded with an empty import path when its name is a
known Archbase component.

Usage:
    from archbase_tools.analysis.component_extractor import ComponentFactExtractor
    from archbase_tools.parsing.source_parser import parse_file

    extractor = ComponentFactExtractor()
    facts = extractor.extract_usages(parse_file("src/UserForm.tsx"), "src/UserForm.tsx")
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterator, List, Optional, Sequence, Set, Tuple

from tree_sitter import Node

from archbase_tools.analysis import registry
from archbase_tools.analysis.models import (
    ComponentAnalysis,
    ComponentIssue,
    ComponentUsageFact,
    PropInfo,
    ResolvedImport,
)
from archbase_tools.analysis.pattern_tags import (
    DEFAULT_TAG_PREDICATES,
    WRAPPER_NAMES,
    TagPredicate,
    UsageContext,
    tag_usage,
)
from archbase_tools.parsing.source_parser import (
    ParsedSource,
    column_of,
    line_of,
    string_value,
    walk,
)

logger = logging.getLogger("archbase.analysis.component_extractor")

HOOK_RE = re.compile(r"^use[A-Z0-9]")

FUNCTION_NODE_TYPES = frozenset({
    "function_declaration",
    "function_expression",
    "function",
    "arrow_function",
    "method_definition",
    "generator_function_declaration",
    "generator_function",
})

_WRAPPING_EXPRESSIONS = frozenset({
    "parenthesized_expression",
    "await_expression",
    "as_expression",
    "non_null_expression",
    "satisfies_expression",
})

_LITERAL_TYPES = {
    "string": "string",
    "template_string": "string",
    "number": "number",
    "true": "boolean",
    "false": "boolean",
    "null": "null",
    "object": "object",
    "array": "array",
    "arrow_function": "function",
    "function_expression": "function",
    "function": "function",
}


# ---------------------------------------------------------------------------
# Small node helpers
# ---------------------------------------------------------------------------
def unwrap_expression(node: Optional[Node]) -> Optional[Node]:
    """Strip parentheses, await and type assertions around an expression."""
    while node is not None and node.type in _WRAPPING_EXPRESSIONS and node.named_children:
        node = node.named_children[0]
    return node


def callee_name(parsed: ParsedSource, node: Optional[Node]) -> str:
    """Name of a called or constructed function: ``foo`` or ``obj.foo`` -> ``foo``."""
    if node is None:
        return ""
    if node.type == "identifier":
        return parsed.text(node)
    if node.type == "member_expression":
        return parsed.text(node.child_by_field_name("property"))
    return ""


def _parse_number(text: str):
    cleaned = text.replace("_", "")
    for convert in (int, float):
        try:
            return convert(cleaned)
        except ValueError:
            continue
    try:
        return int(cleaned, 0)
    except ValueError:
        return text


def infer_prop(parsed: ParsedSource, value: Optional[Node]) -> Tuple[str, object]:
    """Return (type, value) for an attribute value node.

    A bare attribute (no value) is boolean True. Identifiers keep their
    name as value with type ``any``.
    """
    if value is None:
        return "boolean", True
    if value.type == "jsx_expression":
        inner = value.named_children[0] if value.named_children else None
        if inner is None or inner.type == "comment":
            return "any", None
        value = unwrap_expression(inner)
    kind = _LITERAL_TYPES.get(value.type)
    if kind == "string":
        return kind, string_value(parsed, value)
    if kind == "number":
        return kind, _parse_number(parsed.text(value))
    if kind == "boolean":
        return kind, value.type == "true"
    if kind is not None:
        return kind, None
    if value.type == "identifier":
        return "any", parsed.text(value)
    return "any", None


def attribute_parts(parsed: ParsedSource, attr: Node) -> Tuple[str, Optional[Node]]:
    """Split a jsx_attribute into (name, raw value node)."""
    named = attr.named_children
    name = parsed.text(named[0]) if named else ""
    return name, (named[1] if len(named) > 1 else None)


def attribute_expression(value: Optional[Node]) -> Optional[Node]:
    """The expression inside ``{...}``, or the literal node itself."""
    if value is not None and value.type == "jsx_expression":
        return unwrap_expression(value.named_children[0]) if value.named_children else None
    return value


# ---------------------------------------------------------------------------
# JSX sites
# ---------------------------------------------------------------------------
@dataclass
class JsxSite:
    """One element construction: the element node and its opening tag."""

    tag: str
    element: Node
    opening: Node
    name_node: Node

    def attributes(self) -> List[Node]:
        return [c for c in self.opening.named_children if c.type == "jsx_attribute"]


def iter_jsx_sites(parsed: ParsedSource, root: Optional[Node] = None) -> Iterator[JsxSite]:
    """Yield every JSX element under *root* in source order."""
    for node in walk(root if root is not None else parsed.root):
        if node.type == "jsx_element":
            opening = node.child_by_field_name("open_tag")
            if opening is None:
                opening = next((c for c in node.named_children if c.type == "jsx_opening_element"), None)
        elif node.type == "jsx_self_closing_element":
            opening = node
        else:
            continue
        if opening is None:
            continue
        name_node = opening.child_by_field_name("name")
        if name_node is None:
            continue
        yield JsxSite(tag=parsed.text(name_node), element=node, opening=opening, name_node=name_node)


# ---------------------------------------------------------------------------
# Import resolution
# ---------------------------------------------------------------------------
def _pattern_bindings(parsed: ParsedSource, pattern: Node) -> List[Tuple[str, str]]:
    """(imported, local) pairs bound by a destructuring pattern."""
    pairs = []
    if pattern.type == "identifier":
        return [("default", parsed.text(pattern))]
    for child in pattern.named_children:
        if child.type == "shorthand_property_identifier_pattern":
            name = parsed.text(child)
            pairs.append((name, name))
        elif child.type == "pair_pattern":
            key = parsed.text(child.child_by_field_name("key"))
            value = child.child_by_field_name("value")
            if value is not None and value.type == "identifier":
                pairs.append((key, parsed.text(value)))
        elif child.type == "object_assignment_pattern":
            left = child.child_by_field_name("left")
            if left is not None:
                name = parsed.text(left)
                pairs.append((name, name))
    return pairs


def _first_dynamic_import(parsed: ParsedSource, node: Node) -> Optional[str]:
    for sub in walk(node):
        if sub.type == "call_expression":
            fn = sub.child_by_field_name("function")
            if fn is not None and fn.type == "import":
                args = sub.child_by_field_name("arguments")
                if args is not None and args.named_children:
                    return string_value(parsed, args.named_children[0])
    return None


def _module_call(parsed: ParsedSource, value: Optional[Node]) -> Tuple[Optional[str], str]:
    """Return (module, kind) when *value* is require(), import() or lazy(import())."""
    value = unwrap_expression(value)
    if value is None or value.type != "call_expression":
        return None, ""
    fn = value.child_by_field_name("function")
    args = value.child_by_field_name("arguments")
    first = args.named_children[0] if args is not None and args.named_children else None
    if fn is None:
        return None, ""
    if fn.type == "import":
        return string_value(parsed, first), "dynamic"
    name = callee_name(parsed, fn)
    if name == "require":
        return string_value(parsed, first), "require"
    if name == "lazy" and first is not None:
        return _first_dynamic_import(parsed, first), "dynamic"
    return None, ""


def resolve_imports(parsed: ParsedSource, nodes: Optional[Sequence[Node]] = None) -> Dict[str, ResolvedImport]:
    """Map every locally bound imported identifier to its declaring module."""
    imports: Dict[str, ResolvedImport] = {}
    candidates = nodes if nodes is not None else list(walk(parsed.root))

    for node in candidates:
        if node.type == "import_statement":
            module = string_value(parsed, node.child_by_field_name("source"))
            if module is None:
                continue
            clause = next((c for c in node.named_children if c.type == "import_clause"), None)
            if clause is None:
                continue
            for part in clause.named_children:
                if part.type == "identifier":
                    local = parsed.text(part)
                    imports[local] = ResolvedImport(module, "default", local, "static")
                elif part.type == "namespace_import":
                    ident = next((c for c in part.named_children if c.type == "identifier"), None)
                    if ident is not None:
                        local = parsed.text(ident)
                        imports[local] = ResolvedImport(module, "*", local, "static")
                elif part.type == "named_imports":
                    for spec in part.named_children:
                        if spec.type != "import_specifier":
                            continue
                        imported = parsed.text(spec.child_by_field_name("name"))
                        alias = spec.child_by_field_name("alias")
                        local = parsed.text(alias) if alias is not None else imported
                        imports[local] = ResolvedImport(module, imported, local, "static")

        elif node.type == "variable_declarator":
            module, kind = _module_call(parsed, node.child_by_field_name("value"))
            target = node.child_by_field_name("name")
            if module is None or target is None:
                continue
            for imported, local in _pattern_bindings(parsed, target):
                imports[local] = ResolvedImport(module, imported, local, kind)

    return imports


def canonical_name(imports: Dict[str, ResolvedImport], local: str) -> str:
    """The exported name behind a local alias (the local name when unknown)."""
    resolved = imports.get(local)
    if resolved is not None and resolved.imported_name not in ("default", "*"):
        return resolved.imported_name
    return local


# ---------------------------------------------------------------------------
# Per-file context
# ---------------------------------------------------------------------------
@dataclass
class _FileFacts:
    imports: Dict[str, ResolvedImport]
    bindings: Dict[str, str] = field(default_factory=dict)  # identifier -> v1|v2
    versions: Set[str] = field(default_factory=set)
    identifiers: FrozenSet[str] = frozenset()
    wrapped_names: Dict[str, Set[str]] = field(default_factory=dict)
    hooks: List[str] = field(default_factory=list)
    call_nodes: List[Node] = field(default_factory=list)
    declarators: List[Node] = field(default_factory=list)
    type_declarations: List[Node] = field(default_factory=list)


class ComponentFactExtractor:
    """Turns one parsed file into component usage facts.

    Args:
        tag_predicates: ordered (name, predicate) pairs used for pattern tags.
    """

    def __init__(self, tag_predicates: Optional[Sequence[Tuple[str, TagPredicate]]] = None):
        self.tag_predicates = tuple(tag_predicates) if tag_predicates is not None else DEFAULT_TAG_PREDICATES

    # -- public ---------------------------------------------------------
    def extract_usages(self, parsed: ParsedSource, file_path: Optional[str] = None) -> List[ComponentUsageFact]:
        """Call-site facts for *parsed*, in source order."""
        facts = self._collect(parsed)
        return self._usages(parsed, facts, file_path or parsed.file_path)

    def extract(self, parsed: ParsedSource, file_path: Optional[str] = None) -> ComponentAnalysis:
        """Full single-file analysis: usages plus the file-level summary."""
        rel = file_path or parsed.file_path
        facts = self._collect(parsed)
        usages = self._usages(parsed, facts, rel)
        declared = self._declared_props(parsed, facts)

        uses_data_source = bool(facts.versions) or any(u.has_data_source for u in usages)
        score = len(facts.hooks) + len(usages) + len(declared)
        if uses_data_source:
            score += registry.DATA_SOURCE_COMPLEXITY_WEIGHT
        if set(facts.hooks) & registry.EFFECT_HOOKS:
            score += registry.SIDE_EFFECT_COMPLEXITY_WEIGHT

        return ComponentAnalysis(
            file=rel,
            usages=usages,
            imports=dict(facts.imports),
            hooks=list(facts.hooks),
            declared_props=declared,
            data_source_version=self._summary_version(facts.versions),
            validation_library=self.validation_library(parsed, facts.imports),
            complexity=registry.file_complexity(score),
            complexity_score=score,
        )

    def validation_library(self, parsed: ParsedSource, imports: Optional[Dict[str, ResolvedImport]] = None) -> str:
        """yup / zod by import, custom for an inline validate function, else none."""
        imports = imports if imports is not None else resolve_imports(parsed)
        modules = {imp.module.split("/")[0] for imp in imports.values()}
        for library in registry.VALIDATION_LIBRARIES:
            if library in modules:
                return library
        for site in iter_jsx_sites(parsed):
            for attr in site.attributes():
                name, value = attribute_parts(parsed, attr)
                if name not in registry.VALIDATION_PROPS:
                    continue
                expr = attribute_expression(value)
                if expr is not None and _LITERAL_TYPES.get(expr.type) == "function":
                    return "custom"
        return "none"

    # -- collection -----------------------------------------------------
    def _collect(self, parsed: ParsedSource) -> _FileFacts:
        nodes = list(walk(parsed.root))
        facts = _FileFacts(imports=resolve_imports(parsed, nodes))
        identifiers: Set[str] = set()
        seen_hooks: Set[str] = set()

        for node in nodes:
            kind = node.type
            if kind in ("identifier", "type_identifier"):
                identifiers.add(parsed.text(node))
            elif kind == "call_expression":
                facts.call_nodes.append(node)
                name = callee_name(parsed, node.child_by_field_name("function"))
                if HOOK_RE.match(name) and name not in seen_hooks:
                    seen_hooks.add(name)
                    facts.hooks.append(name)
                version = registry.factory_version(canonical_name(facts.imports, name))
                if version:
                    facts.versions.add(version)
                wrapper = WRAPPER_NAMES.get(name)
                if wrapper:
                    args = node.child_by_field_name("arguments")
                    first = args.named_children[0] if args is not None and args.named_children else None
                    if first is not None and first.type == "identifier":
                        facts.wrapped_names.setdefault(parsed.text(first), set()).add(wrapper)
            elif kind == "new_expression":
                name = callee_name(parsed, node.child_by_field_name("constructor"))
                version = registry.factory_version(canonical_name(facts.imports, name))
                if version:
                    facts.versions.add(version)
            elif kind == "member_expression":
                prop = parsed.text(node.child_by_field_name("property"))
                if prop in registry.V2_METHOD_MARKERS:
                    facts.versions.add("v2")
                elif prop in registry.V1_METHOD_MARKERS:
                    # this.forceUpdate() is the React component API
                    owner = node.child_by_field_name("object")
                    if owner is None or owner.type != "this":
                        facts.versions.add("v1")
            elif kind == "variable_declarator":
                facts.declarators.append(node)
                self._bind_factory(parsed, facts, node.child_by_field_name("name"), node.child_by_field_name("value"))
            elif kind == "assignment_expression":
                self._bind_factory(parsed, facts, node.child_by_field_name("left"), node.child_by_field_name("right"))
            elif kind in ("interface_declaration", "type_alias_declaration"):
                facts.type_declarations.append(node)

        facts.identifiers = frozenset(identifiers)
        return facts

    def _factory_call_version(self, parsed: ParsedSource, imports: Dict[str, ResolvedImport], value: Optional[Node]) -> str:
        value = unwrap_expression(value)
        if value is None:
            return ""
        if value.type == "new_expression":
            name = callee_name(parsed, value.child_by_field_name("constructor"))
        elif value.type == "call_expression":
            name = callee_name(parsed, value.child_by_field_name("function"))
        else:
            return ""
        return registry.factory_version(canonical_name(imports, name))

    def _bind_factory(self, parsed: ParsedSource, facts: _FileFacts, target: Optional[Node], value: Optional[Node]):
        if target is None:
            return
        version = self._factory_call_version(parsed, facts.imports, value)
        if not version:
            return
        if target.type == "identifier":
            facts.bindings[parsed.text(target)] = version
            return
        for sub in walk(target):
            if sub.type in ("identifier", "shorthand_property_identifier_pattern"):
                facts.bindings[parsed.text(sub)] = version

    # -- usages ---------------------------------------------------------
    def _resolve_tag(self, parsed: ParsedSource, facts: _FileFacts, site: JsxSite) -> Optional[Tuple[str, str]]:
        """Return (component name, import path) when the tag is tracked."""
        name_node = site.name_node
        if name_node.type == "member_expression":
            obj = name_node.child_by_field_name("object")
            resolved = facts.imports.get(parsed.text(obj)) if obj is not None else None
            if resolved is not None and resolved.imported_name == "*" and registry.is_archbase_module(resolved.module):
                return parsed.text(name_node.child_by_field_name("property")), resolved.module
            return None
        if name_node.type != "identifier":
            return None

        resolved = facts.imports.get(site.tag)
        if resolved is None:
            if site.tag in registry.ARCHBASE_COMPONENTS:
                return site.tag, ""
            return None
        if not registry.is_archbase_module(resolved.module):
            return None
        return canonical_name(facts.imports, site.tag), resolved.module

    def _usages(self, parsed: ParsedSource, facts: _FileFacts, rel: str) -> List[ComponentUsageFact]:
        usages = []
        hook_cache: Dict[Tuple[int, int], FrozenSet[str]] = {}

        for site in iter_jsx_sites(parsed):
            tracked = self._resolve_tag(parsed, facts, site)
            if tracked is None:
                continue
            name, import_path = tracked
            line, column = line_of(site.element), column_of(site.element)

            required = registry.REQUIRED_PROPS.get(name)
            props: List[PropInfo] = []
            prop_values: Dict[str, Optional[Node]] = {}
            for attr in site.attributes():
                prop_name, raw = attribute_parts(parsed, attr)
                prop_type, value = infer_prop(parsed, raw)
                props.append(PropInfo(
                    name=prop_name,
                    type=prop_type,
                    value=value,
                    is_required=(prop_name in required) if required is not None else None,
                ))
                prop_values[prop_name] = attribute_expression(raw)

            has_data_source = any(p in prop_values for p in registry.DATA_SOURCE_PROPS)
            version = self._usage_version(parsed, facts, prop_values, has_data_source)

            scope = self._outer_scope(site.element)
            ctx = UsageContext(
                name=name,
                prop_values=prop_values,
                scope_hooks=self._scope_hooks(parsed, scope, hook_cache),
                wrappers=self._wrappers(parsed, facts, scope),
                file_identifiers=facts.identifiers,
            )

            usages.append(ComponentUsageFact(
                name=name,
                import_path=import_path,
                file=rel,
                line=line,
                column=column,
                props=tuple(props),
                has_data_source=has_data_source,
                data_source_version=version,
                patterns=tuple(tag_usage(ctx, self.tag_predicates)),
                issues=tuple(self._issues(name, props, line, column)),
            ))

        logger.debug("%s: %d tracked usage(s)", rel, len(usages))
        return usages

    def _usage_version(self, parsed: ParsedSource, facts: _FileFacts,
                       prop_values: Dict[str, Optional[Node]], has_data_source: bool) -> str:
        expr = prop_values.get("dataSource")
        if expr is not None:
            if expr.type == "identifier":
                bound = facts.bindings.get(parsed.text(expr))
                if bound:
                    return bound
            inline = self._factory_call_version(parsed, facts.imports, expr)
            if inline:
                return inline
        if has_data_source and len(facts.versions) == 1:
            return next(iter(facts.versions))
        return "unknown"

    @staticmethod
    def _summary_version(versions: Set[str]) -> str:
        if versions == {"v1", "v2"}:
            return "both"
        if len(versions) == 1:
            return next(iter(versions))
        return "unknown"

    def _issues(self, name: str, props: List[PropInfo], line: int, column: int) -> List[ComponentIssue]:
        issues = []
        present = {p.name for p in props}

        for required in registry.REQUIRED_PROPS.get(name, ()):
            if required not in present:
                issues.append(ComponentIssue(
                    type="error",
                    message=f"Missing required prop: {required}",
                    fix=f"Add {required} prop to {name}",
                    line=line,
                    column=column,
                ))

        deprecated = registry.DEPRECATED_PROPS.get(name, {})
        replaceable = registry.REPLACEABLE_PROPS.get(name, {})
        for prop in props:
            if prop.name in deprecated:
                replacement = deprecated[prop.name]
                if replacement:
                    fix = f"Rename {prop.name} to {replacement}"
                else:
                    fix = f"Remove {prop.name}; DataSource V2 refreshes bound components itself"
                issues.append(ComponentIssue(
                    type="warning",
                    message=f"Deprecated prop on {name}: {prop.name}",
                    fix=fix,
                    line=line,
                    column=column,
                ))
            elif prop.name in replaceable:
                target = replaceable[prop.name]
                issues.append(ComponentIssue(
                    type="suggestion",
                    message=f"Prop {prop.name} on {name} can be replaced by {target} binding",
                    fix=f"Bind {name} through {target} instead of {prop.name}",
                    line=line,
                    column=column,
                ))
        return issues

    # -- scope helpers --------------------------------------------------
    @staticmethod
    def _outer_scope(node: Node) -> Optional[Node]:
        outer = None
        current = node.parent
        while current is not None:
            if current.type in FUNCTION_NODE_TYPES:
                outer = current
            current = current.parent
        return outer

    def _scope_hooks(self, parsed: ParsedSource, scope: Optional[Node],
                     cache: Dict[Tuple[int, int], FrozenSet[str]]) -> FrozenSet[str]:
        root = scope if scope is not None else parsed.root
        key = (root.start_byte, root.end_byte)
        if key not in cache:
            names = set()
            for node in walk(root):
                if node.type == "call_expression":
                    name = callee_name(parsed, node.child_by_field_name("function"))
                    if HOOK_RE.match(name):
                        names.add(name)
            cache[key] = frozenset(names)
        return cache[key]

    def _wrappers(self, parsed: ParsedSource, facts: _FileFacts, scope: Optional[Node]) -> FrozenSet[str]:
        if scope is None:
            return frozenset()
        found: Set[str] = set()

        # memo(() => ...), forwardRef(function X() {...}), memo(forwardRef(...))
        current = scope
        while current.parent is not None and current.parent.type == "arguments":
            call = current.parent.parent
            if call is None or call.type != "call_expression":
                break
            wrapper = WRAPPER_NAMES.get(callee_name(parsed, call.child_by_field_name("function")))
            if wrapper is None:
                break
            found.add(wrapper)
            current = call

        # function X() {...}; export default memo(X)
        name = self._function_name(parsed, scope)
        if name:
            found |= facts.wrapped_names.get(name, set())
        return frozenset(found)

    @staticmethod
    def _function_name(parsed: ParsedSource, scope: Node) -> str:
        name_node = scope.child_by_field_name("name")
        if name_node is not None and scope.type != "method_definition":
            return parsed.text(name_node)
        parent = scope.parent
        if parent is not None and parent.type == "variable_declarator":
            target = parent.child_by_field_name("name")
            if target is not None and target.type == "identifier":
                return parsed.text(target)
        return ""

    # -- declared props -------------------------------------------------
    def _declared_props(self, parsed: ParsedSource, facts: _FileFacts) -> List[PropInfo]:
        declared = []
        for decl in facts.type_declarations:
            name = parsed.text(decl.child_by_field_name("name"))
            if not name.endswith("Props"):
                continue
            body = decl.child_by_field_name("body")
            if body is None:
                body = decl.child_by_field_name("value")
            if body is None:
                continue
            for member in body.named_children:
                if member.type != "property_signature":
                    continue
                optional = any(child.type == "?" for child in member.children)
                annotation = parsed.text(member.child_by_field_name("type")).lstrip(":").strip()
                declared.append(PropInfo(
                    name=parsed.text(member.child_by_field_name("name")),
                    type=annotation or "any",
                    is_required=not optional,
                ))
        return declared
