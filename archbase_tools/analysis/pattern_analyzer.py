#!/usr/bin/env python3
"""Pattern Analyzer — extracts reusable generation patterns from a project.

Where the project scanner flags issues, this analyzer looks for shapes
worth turning into generator templates: how DataSources are used, what
forms look like (field types, validation library, layout), which props
each component is usually given, which validation rules appear, and how
pages and navigation are structured. It finishes with a fixed list of
rule-based recommendations.

Test files, spec files and type declaration files are skipped. A file
that fails to parse is recorded in ``errors``; the analysis continues.

Usage:
    python -m archbase_tools.analysis.pattern_analyzer ./my-app
    python -m archbase_tools.analysis.pattern_analyzer ./my-app --export analysis.json
    python -m archbase_tools.analysis.pattern_analyzer ./my-app --json
"""

import argparse
import json
import logging
from collections import Counter, OrderedDict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from archbase_tools.analysis import registry
from archbase_tools.analysis.component_extractor import (
    ComponentFactExtractor,
    JsxSite,
    attribute_parts,
    callee_name,
    canonical_name,
    iter_jsx_sites,
    resolve_imports,
)
from archbase_tools.analysis.models import (
    ComponentUsageFact,
    DetectedPattern,
    ProjectAnalysisResult,
    ResolvedImport,
)
from archbase_tools.compat.path_utils import discover_files, to_relative_posix
from archbase_tools.config import load_config, setup_logging
from archbase_tools.errors import ArchbaseError, ConfigurationError
from archbase_tools.parsing.source_parser import ParsedSource, line_of, parse_file, string_value, walk

logger = logging.getLogger("archbase.analysis.pattern_analyzer")

EXAMPLE_MAX_CHARS = 240

# member property -> DataSource usage tag
_DATA_SOURCE_MEMBER_TAGS = {
    "fieldByName": "field-access",
    "search": "search-functionality",
    "sort": "sorting",
    "pagination": "pagination",
    "appendToFieldArray": "array-field-management",
    "removeFromFieldArray": "array-field-management",
    "updateFieldArrayItem": "array-field-management",
}

_YUP_RULES = {
    "required": "required",
    "email": "email",
    "min": "min-length",
    "max": "max-length",
    "matches": "regex",
}

_ZOD_RULES = {
    "string": "string",
    "number": "number",
    "email": "email",
    "min": "min-length",
    "max": "max-length",
    "regex": "regex",
}

_PATH_CONTEXTS = (
    ("form", "forms"),
    ("page", "pages"),
    ("modal", "modals"),
    ("dashboard", "dashboard"),
    ("admin", "admin"),
    ("list", "lists"),
)

_ROUTE_TARGET_KEYS = ("link", "path")
_ROUTE_COMPONENT_KEYS = ("component", "element")


def _add_unique(target: List[str], values) -> None:
    for value in values:
        if value not in target:
            target.append(value)


def _snippet(parsed: ParsedSource, node) -> str:
    text = parsed.text(node).strip()
    if len(text) > EXAMPLE_MAX_CHARS:
        text = text[:EXAMPLE_MAX_CHARS].rstrip() + " ..."
    return text


def path_contexts(rel_path: str) -> List[str]:
    lowered = rel_path.lower()
    return [context for marker, context in _PATH_CONTEXTS if marker in lowered]


class PatternAnalyzer:
    """Collects generation patterns across a project in one pass."""

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 extractor: Optional[ComponentFactExtractor] = None):
        self.config = config if config is not None else load_config()
        self.extractor = extractor or ComponentFactExtractor()
        self._reset()

    def _reset(self) -> None:
        self._ds_groups: "OrderedDict[Tuple[str, str], Dict[str, Any]]" = OrderedDict()
        self._form_groups: "OrderedDict[Tuple[str, str], Dict[str, Any]]" = OrderedDict()
        self._component_usage: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        self._validation: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        self._pages: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        self._navigation: List[Dict[str, Any]] = []
        self._structures: "OrderedDict[Tuple[str, Tuple[str, ...]], Dict[str, Any]]" = OrderedDict()

    # -- entry point ----------------------------------------------------
    def find_files(self, root) -> List[Path]:
        scan_cfg = self.config["scan"]
        exclude = list(scan_cfg["exclude_patterns"]) + list(
            self.config["pattern_analysis"]["extra_exclude_patterns"]
        )
        return discover_files(root, scan_cfg["include_patterns"], exclude)

    def analyze_project(self, root) -> ProjectAnalysisResult:
        """Analyze every source file under *root*.

        Raises:
            ConfigurationError: when *root* is not a directory.
        """
        root = Path(root).resolve()
        if not root.is_dir():
            raise ConfigurationError(f"Project directory does not exist: {root}", config_key="project_path")

        self._reset()
        result = ProjectAnalysisResult(root=str(root))
        files = self.find_files(root)
        logger.info("Analyzing %d file(s) under %s", len(files), root)

        for path in files:
            rel = to_relative_posix(path, root)
            try:
                parsed = parse_file(path)
                self.analyze_file(parsed, rel)
            except (ArchbaseError, OSError, UnicodeDecodeError) as exc:
                logger.warning("Could not analyze %s: %s", rel, exc)
                result.errors.append({"file": rel, "error": str(exc)})
                continue
            result.files_analyzed += 1

        self._finish(result)
        logger.info(
            "Pattern analysis complete: %d pattern(s), %d recommendation(s)",
            len(result.patterns), len(result.recommendations),
        )
        return result

    def analyze_file(self, parsed: ParsedSource, rel: str) -> None:
        """Fold one parsed file into the running analysis."""
        imports = resolve_imports(parsed)
        usages = self.extractor.extract_usages(parsed, rel)
        sites = list(iter_jsx_sites(parsed))
        snippets = {(line_of(s.element), s.element.start_point[1]): _snippet(parsed, s.opening) for s in sites}

        self._collect_data_source_usage(parsed, rel, usages)
        self._collect_forms(parsed, rel, imports, sites)
        self._collect_component_usage(rel, usages)
        self._collect_structures(rel, usages, snippets)
        self._collect_validation(parsed, rel, imports)
        self._collect_page_structure(parsed, rel, sites)
        self._collect_navigation(parsed, rel)

    # -- DataSource usage -----------------------------------------------
    def _data_source_tags(self, parsed: ParsedSource) -> List[str]:
        tags: List[str] = []
        for node in walk(parsed.root):
            if node.type == "call_expression":
                name = callee_name(parsed, node.child_by_field_name("function"))
                if name.startswith("useArchbase") and "DataSource" in name:
                    _add_unique(tags, ["hook-based"])
                elif name.startswith("create") and "DataSource" in name:
                    _add_unique(tags, ["factory-pattern"])
            elif node.type == "member_expression":
                prop = parsed.text(node.child_by_field_name("property"))
                tag = _DATA_SOURCE_MEMBER_TAGS.get(prop)
                if tag is None:
                    continue
                owner = parsed.text(node.child_by_field_name("object")).lower()
                if tag == "array-field-management" or "datasource" in owner or owner.endswith("ds"):
                    _add_unique(tags, [tag])
        return tags

    def _collect_data_source_usage(self, parsed: ParsedSource, rel: str,
                                   usages: List[ComponentUsageFact]) -> None:
        bound = [u for u in usages if u.has_data_source]
        if not bound:
            return
        file_tags = self._data_source_tags(parsed)
        for usage in bound:
            key = (usage.name, usage.data_source_version)
            group = self._ds_groups.get(key)
            if group is None:
                group = {
                    "component": usage.name,
                    "version": usage.data_source_version,
                    "usageCount": 0,
                    "files": [],
                    "commonProps": Counter(),
                    "patterns": [],
                    "examples": [],
                }
                self._ds_groups[key] = group
            group["usageCount"] += 1
            _add_unique(group["files"], [rel])
            group["commonProps"].update(usage.prop_names())
            _add_unique(group["patterns"], list(usage.patterns) + file_tags)
            if len(group["examples"]) < registry.MAX_PATTERN_EXAMPLES:
                group["examples"].append({
                    "file": rel,
                    "code": f"<{usage.name} {' '.join(usage.prop_names())} />",
                    "description": f"{usage.name} bound to a {usage.data_source_version} DataSource",
                })

    # -- forms ----------------------------------------------------------
    def _collect_forms(self, parsed: ParsedSource, rel: str,
                       imports: Dict[str, ResolvedImport], sites: List[JsxSite]) -> None:
        forms = [s for s in sites if canonical_name(imports, s.tag) == registry.FORM_TEMPLATE]
        if not forms:
            return
        library = self.extractor.validation_library(parsed, imports)

        for form in forms:
            layout = "vertical"
            for attr in form.attributes():
                name, value = attribute_parts(parsed, attr)
                text = string_value(parsed, value)
                if name in ("layout", "orientation") and text:
                    layout = text

            field_types: List[str] = []
            features: List[str] = []
            for child in iter_jsx_sites(parsed, form.element):
                if child.element == form.element:
                    continue
                child_name = canonical_name(imports, child.tag)
                field_type = registry.FIELD_TYPE_BY_COMPONENT.get(child_name)
                if field_type:
                    _add_unique(field_types, [field_type])
                if child_name == "FormBuilder":
                    _add_unique(features, ["form-builder"])
                if "Wizard" in child_name:
                    _add_unique(features, ["wizard"])
                if "Step" in child_name:
                    _add_unique(features, ["multi-step"])

            key = (library, layout)
            group = self._form_groups.get(key)
            if group is None:
                group = {
                    "validationLibrary": library,
                    "layout": layout,
                    "fieldTypes": [],
                    "commonFeatures": [],
                    "complexity": "low",
                    "frequency": 0,
                    "files": [],
                    "examples": [],
                }
                self._form_groups[key] = group
            group["frequency"] += 1
            _add_unique(group["fieldTypes"], field_types)
            _add_unique(group["commonFeatures"], features)
            group["complexity"] = registry.form_complexity(len(group["fieldTypes"]))
            _add_unique(group["files"], [rel])
            if len(group["examples"]) < registry.MAX_PATTERN_EXAMPLES:
                group["examples"].append({
                    "file": rel,
                    "code": _snippet(parsed, form.opening),
                    "description": f"{layout} form with {library} validation",
                })

    # -- component usage ------------------------------------------------
    def _collect_component_usage(self, rel: str, usages: List[ComponentUsageFact]) -> None:
        contexts = path_contexts(rel)
        for usage in usages:
            entry = self._component_usage.get(usage.name)
            if entry is None:
                entry = {
                    "component": usage.name,
                    "usageCount": 0,
                    "commonProps": Counter(),
                    "patterns": [],
                    "contexts": [],
                }
                self._component_usage[usage.name] = entry
            entry["usageCount"] += 1
            entry["commonProps"].update(usage.prop_names())
            _add_unique(entry["patterns"], usage.patterns)
            _add_unique(entry["contexts"], contexts)

    def _collect_structures(self, rel: str, usages: List[ComponentUsageFact],
                            snippets: Dict[Tuple[int, int], str]) -> None:
        for usage in usages:
            key = (usage.name, tuple(sorted(set(usage.prop_names()))))
            group = self._structures.get(key)
            if group is None:
                group = {"frequency": 0, "files": [], "examples": []}
                self._structures[key] = group
            group["frequency"] += 1
            _add_unique(group["files"], [rel])
            if len(group["examples"]) < registry.MAX_PATTERN_EXAMPLES:
                group["examples"].append({
                    "file": rel,
                    "code": snippets.get((usage.line, usage.column), f"<{usage.name} />"),
                    "description": f"{usage.name} at line {usage.line}",
                })

    # -- validation -----------------------------------------------------
    def _collect_validation(self, parsed: ParsedSource, rel: str,
                            imports: Dict[str, ResolvedImport]) -> None:
        modules = {imp.module.split("/")[0] for imp in imports.values()}
        library = next((lib for lib in registry.VALIDATION_LIBRARIES if lib in modules), None)
        if library is None:
            return
        table = _YUP_RULES if library == "yup" else _ZOD_RULES

        rules: List[str] = []
        for node in walk(parsed.root):
            if node.type != "call_expression":
                continue
            fn = node.child_by_field_name("function")
            if fn is None or fn.type != "member_expression":
                continue
            rule = table.get(parsed.text(fn.child_by_field_name("property")))
            if rule:
                _add_unique(rules, [rule])
        if not rules:
            return

        entry = self._validation.get(library)
        if entry is None:
            entry = {"type": library, "rules": [], "frequency": 0, "examples": []}
            self._validation[library] = entry
        entry["frequency"] += 1
        _add_unique(entry["rules"], rules)
        if len(entry["examples"]) < registry.MAX_PATTERN_EXAMPLES:
            entry["examples"].append(rel)

    # -- pages and navigation -------------------------------------------
    def _collect_page_structure(self, parsed: ParsedSource, rel: str, sites: List[JsxSite]) -> None:
        if not sites:
            return
        tags = [s.tag.lower() for s in sites]

        layout = "unknown"
        for marker in ("sidebar", "header", "dashboard"):
            if any(marker in tag for tag in tags):
                layout = marker
                break

        sections: List[str] = []
        for tag in tags:
            if "header" in tag:
                _add_unique(sections, ["header"])
            if "sidebar" in tag or tag == "aside":
                _add_unique(sections, ["sidebar"])
            if "footer" in tag:
                _add_unique(sections, ["footer"])
            if tag == "main" or tag.endswith("main") or "content" in tag:
                _add_unique(sections, ["main"])
            if "nav" in tag or "menu" in tag:
                _add_unique(sections, ["navigation"])
        if not sections:
            return

        hooks = set()
        for node in walk(parsed.root):
            if node.type == "call_expression":
                hooks.add(callee_name(parsed, node.child_by_field_name("function")))
        has_auth = bool(hooks & registry.AUTH_HOOKS) or any("auth" in h.lower() for h in hooks if h.startswith("use"))

        entry = self._pages.get(layout)
        if entry is None:
            entry = {
                "layout": layout,
                "sections": [],
                "navigation": "absent",
                "authentication": False,
                "frequency": 0,
                "files": [],
            }
            self._pages[layout] = entry
        entry["frequency"] += 1
        _add_unique(entry["sections"], sections)
        if "navigation" in sections:
            entry["navigation"] = "present"
        entry["authentication"] = entry["authentication"] or has_auth
        _add_unique(entry["files"], [rel])

    def _collect_navigation(self, parsed: ParsedSource, rel: str) -> None:
        for node in walk(parsed.root):
            if node.type != "array" or not node.named_children:
                continue
            items = node.named_children
            if not all(item.type == "object" for item in items):
                continue

            keys: List[str] = []
            categories: List[str] = []
            routes = 0
            for item in items:
                item_keys = {}
                for pair in item.named_children:
                    if pair.type != "pair":
                        continue
                    key_node = pair.child_by_field_name("key")
                    key = string_value(parsed, key_node) or parsed.text(key_node)
                    item_keys[key] = pair.child_by_field_name("value")
                _add_unique(keys, item_keys)
                if (any(k in item_keys for k in _ROUTE_TARGET_KEYS)
                        and any(k in item_keys for k in _ROUTE_COMPONENT_KEYS)):
                    routes += 1
                category = string_value(parsed, item_keys.get("category"))
                if category:
                    _add_unique(categories, [category])
            if routes == 0:
                continue
            self._navigation.append({
                "file": rel,
                "line": line_of(node),
                "itemCount": len(items),
                "routeCount": routes,
                "categories": categories,
                "keys": keys,
            })

    # -- finishing ------------------------------------------------------
    def _finish(self, result: ProjectAnalysisResult) -> None:
        for group in self._ds_groups.values():
            result.data_source_usage.append({
                "component": group["component"],
                "version": group["version"],
                "usageCount": group["usageCount"],
                "files": list(group["files"]),
                "commonProps": dict(group["commonProps"]),
                "patterns": list(group["patterns"]),
            })
        for group in self._form_groups.values():
            result.form_patterns.append({k: v for k, v in group.items() if k != "examples"})
        for entry in self._component_usage.values():
            row = dict(entry)
            row["commonProps"] = dict(entry["commonProps"])
            result.component_usage.append(row)
        result.validation_patterns = [dict(v) for v in self._validation.values()]
        result.page_structures = [dict(p) for p in self._pages.values()]
        result.navigation_structures = list(self._navigation)
        result.patterns = self._detect_patterns()
        result.recommendations = self._recommendations(result)

    def _detect_patterns(self) -> List[DetectedPattern]:
        patterns = []

        for group in self._form_groups.values():
            if group["frequency"] < registry.FORM_PATTERN_MIN_FREQUENCY:
                continue
            lib, layout = group["validationLibrary"], group["layout"]
            patterns.append(DetectedPattern(
                name=f"form-{lib}-{layout}",
                type="form",
                frequency=group["frequency"],
                files=list(group["files"]),
                description=f"{layout.capitalize()} form with {lib} validation",
                template=f"forms/{lib}-{layout}.hbs",
                parameters={
                    "validation": lib,
                    "layout": layout,
                    "fieldTypes": list(group["fieldTypes"]),
                    "complexity": group["complexity"],
                },
                examples=list(group["examples"]),
                priority=registry.pattern_priority(group["frequency"]),
            ))

        for group in self._ds_groups.values():
            if group["usageCount"] < registry.DATA_SOURCE_PATTERN_MIN_USAGE:
                continue
            version, component = group["version"], group["component"]
            patterns.append(DetectedPattern(
                name=f"datasource-{version}-{component}",
                type="component",
                frequency=group["usageCount"],
                files=list(group["files"]),
                description=f"{component} bound to DataSource {version}",
                template=f"components/datasource-{version}.hbs",
                parameters={
                    "version": version,
                    "component": component,
                    "commonProps": dict(group["commonProps"]),
                    "patterns": list(group["patterns"]),
                },
                examples=list(group["examples"]),
                priority=registry.pattern_priority(group["usageCount"]),
            ))

        for (component, props), group in self._structures.items():
            if group["frequency"] < registry.STRUCTURAL_PATTERN_MIN_FREQUENCY:
                continue
            suffix = "-".join(props) if props else "no-props"
            patterns.append(DetectedPattern(
                name=f"structure-{component}-{suffix}",
                type="component",
                frequency=group["frequency"],
                files=list(group["files"]),
                description=f"{component} used with props: {', '.join(props) or 'none'}",
                template=f"components/{component}.hbs",
                parameters={"component": component, "props": list(props)},
                examples=list(group["examples"]),
                priority=registry.pattern_priority(group["frequency"]),
            ))
        return patterns

    def _recommendations(self, result: ProjectAnalysisResult) -> List[Dict[str, str]]:
        recommendations = []
        versions = {u["version"] for u in result.data_source_usage}

        if "v1" in versions and "v2" not in versions:
            recommendations.append({
                "id": "datasource-v2-support",
                "type": "parameter",
                "title": "Add DataSource V2 support",
                "description": "Project only uses DataSource V1. Consider migrating to V2 for better performance.",
                "priority": "medium",
                "implementation": "Add a --datasource-version=v2 parameter to the generators",
            })

        if "v1" in versions and "v2" in versions:
            recommendations.append({
                "id": "datasource-mixed-versions",
                "type": "migration",
                "title": "Consolidate DataSource versions",
                "description": "Project mixes DataSource V1 and V2 bindings.",
                "priority": "medium",
                "implementation": "Run the datasource-v1-to-v2 migration on the remaining V1 files",
            })

        frequent = [p for p in result.patterns if p.frequency >= registry.HIGH_PRIORITY_MIN_FREQUENCY]
        if frequent:
            recommendations.append({
                "id": "dedicated-templates",
                "type": "template",
                "title": "Create dedicated templates",
                "description": f"Detected {len(frequent)} frequent pattern(s) that deserve dedicated templates.",
                "priority": "high",
                "implementation": "Create specific templates for the most used patterns",
            })

        libraries = {v["type"] for v in result.validation_patterns}
        libraries |= {f["validationLibrary"] for f in result.form_patterns}
        if "yup" in libraries and "zod" in libraries:
            recommendations.append({
                "id": "validation-flexibility",
                "type": "parameter",
                "title": "Make the validation library selectable",
                "description": "Project uses both Yup and Zod.",
                "priority": "medium",
                "implementation": "Add a --validation=yup|zod parameter to the form generators",
            })

        unvalidated = [f for f in result.form_patterns if f["validationLibrary"] == "none"]
        if unvalidated:
            count = sum(f["frequency"] for f in unvalidated)
            recommendations.append({
                "id": "validation-upgrade",
                "type": "validation",
                "title": "Add validation to forms",
                "description": f"{count} form(s) have no validation schema or validate function.",
                "priority": "high",
                "implementation": "Generate forms with a yup or zod schema by default",
            })

        heavy = [c["component"] for c in result.component_usage
                 if c["usageCount"] > registry.EXTRACTION_MIN_USAGES]
        if heavy:
            recommendations.append({
                "id": "component-extraction",
                "type": "template",
                "title": "Extract reusable components",
                "description": f"Heavily repeated components: {', '.join(heavy)}",
                "priority": "low",
                "implementation": "Wrap repeated configurations in shared project components",
            })
        return recommendations


def export_analysis(result: ProjectAnalysisResult, output_path) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as fh:
        json.dump(result.to_dict(), fh, indent=2)
    logger.info("Analysis exported to %s", output_path)
    return output_path


def main():
    parser = argparse.ArgumentParser(description="Extract reusable generation patterns from a project")
    parser.add_argument("project", help="Project root directory")
    parser.add_argument("--export", nargs="?", const="", default=None,
                        help="Write the analysis as JSON (default path from config)")
    parser.add_argument("--config", default=None, help="Alternative config YAML")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--json", dest="json_output", action="store_true", help="JSON output")
    args = parser.parse_args()

    try:
        cfg = load_config(Path(args.config) if args.config else None)
        setup_logging(cfg, args.verbose)
        result = PatternAnalyzer(config=cfg).analyze_project(args.project)
    except ConfigurationError as exc:
        print(f"[ERROR] {exc}")
        raise SystemExit(1)

    if args.export is not None:
        export_analysis(result, args.export or cfg["reports"]["analysis_output"])

    if args.json_output:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print("Archbase Pattern Analysis")
        print(f"  Files analyzed:  {result.files_analyzed}")
        print(f"  Files failed:    {len(result.errors)}")
        print(f"  Patterns:        {len(result.patterns)}")
        for pattern in result.patterns:
            print(f"    [{pattern.priority.upper()}] {pattern.name} x{pattern.frequency}")
        print(f"  Form patterns:   {len(result.form_patterns)}")
        for rec in result.recommendations:
            print(f"  [{rec['priority'].upper()}] {rec['title']}: {rec['description']}")

    if result.errors:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
