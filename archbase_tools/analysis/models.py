#!/usr/bin/env python3
"""Value objects shared by the scanner, pattern analyzer and migrator.

Facts are immutable: a file rescan discards its old facts and creates new
ones. Every object serialises with ``to_dict()`` to the camelCase key names
used by the JSON reports.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

REPORT_SCHEMA_VERSION = "1.0"


# ---------------------------------------------------------------------------
# Component facts
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class PropInfo:
    """One attribute passed at a component call site."""

    name: str
    type: str
    value: Any = None
    is_required: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"name": self.name, "type": self.type, "value": self.value}
        if self.is_required is not None:
            data["isRequired"] = self.is_required
        return data


@dataclass(frozen=True)
class ComponentIssue:
    """A problem or improvement found at a call site."""

    type: str
    message: str
    fix: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type, "message": self.message}
        if self.fix is not None:
            data["fix"] = self.fix
        if self.line is not None:
            data["line"] = self.line
        if self.column is not None:
            data["column"] = self.column
        return data


@dataclass(frozen=True)
class ComponentUsageFact:
    """One invocation of a tracked component in one file."""

    name: str
    import_path: str
    file: str
    line: int
    column: int
    props: Tuple[PropInfo, ...] = ()
    has_data_source: bool = False
    data_source_version: str = "unknown"
    patterns: Tuple[str, ...] = ()
    issues: Tuple[ComponentIssue, ...] = ()

    def prop_names(self) -> List[str]:
        return [p.name for p in self.props]

    def has_prop(self, name: str) -> bool:
        return any(p.name == name for p in self.props)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "importPath": self.import_path,
            "file": self.file,
            "line": self.line,
            "column": self.column,
            "props": [p.to_dict() for p in self.props],
            "hasDataSource": self.has_data_source,
            "dataSourceVersion": self.data_source_version,
            "patterns": list(self.patterns),
            "issues": [i.to_dict() for i in self.issues],
        }


@dataclass(frozen=True)
class ResolvedImport:
    """Where a locally bound identifier comes from."""

    module: str
    imported_name: str
    local_name: str
    kind: str = "static"  # static | require | dynamic


@dataclass
class ComponentAnalysis:
    """Single-file analysis produced by ComponentFactExtractor.extract()."""

    file: str
    usages: List[ComponentUsageFact] = field(default_factory=list)
    imports: Dict[str, ResolvedImport] = field(default_factory=dict)
    hooks: List[str] = field(default_factory=list)
    declared_props: List[PropInfo] = field(default_factory=list)
    data_source_version: str = "unknown"  # v1 | v2 | both | unknown
    validation_library: str = "none"
    complexity: str = "low"
    complexity_score: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file,
            "usages": [u.to_dict() for u in self.usages],
            "imports": {
                local: {"module": imp.module, "importedName": imp.imported_name, "kind": imp.kind}
                for local, imp in self.imports.items()
            },
            "hooks": list(self.hooks),
            "declaredProps": [p.to_dict() for p in self.declared_props],
            "dataSourceVersion": self.data_source_version,
            "validationLibrary": self.validation_library,
            "complexity": self.complexity,
            "complexityScore": self.complexity_score,
        }


# ---------------------------------------------------------------------------
# Project scan
# ---------------------------------------------------------------------------
@dataclass
class ProjectScanResult:
    """Aggregate over a directory.

    ``statistics``, ``patterns`` and ``migration`` are derived from
    ``components``, ``scanned_files`` and ``errors``; the scanner recomputes
    them after every fold.
    """

    root: str
    components: List[ComponentUsageFact] = field(default_factory=list)
    scanned_files: List[str] = field(default_factory=list)
    errors: List[Dict[str, str]] = field(default_factory=list)
    statistics: Dict[str, int] = field(default_factory=dict)
    patterns: Dict[str, List[str]] = field(default_factory=dict)
    migration: Dict[str, Any] = field(default_factory=dict)
    dependencies: Dict[str, Any] = field(default_factory=dict)

    def components_in(self, rel_path: str) -> List[ComponentUsageFact]:
        return [c for c in self.components if c.file == rel_path]

    def to_dict(self) -> Dict[str, Any]:
        migration = dict(self.migration)
        migration["v1ToV2Candidates"] = [
            c.to_dict() for c in self.migration.get("v1ToV2Candidates", [])
        ]
        return {
            "schemaVersion": REPORT_SCHEMA_VERSION,
            "root": self.root,
            "components": [c.to_dict() for c in self.components],
            "scannedFiles": list(self.scanned_files),
            "errors": [dict(e) for e in self.errors],
            "statistics": dict(self.statistics),
            "patterns": {k: list(v) for k, v in self.patterns.items()},
            "migration": migration,
            "dependencies": self.dependencies,
        }


# ---------------------------------------------------------------------------
# Pattern analysis
# ---------------------------------------------------------------------------
@dataclass
class DetectedPattern:
    """A reusable generation pattern found across files."""

    name: str
    type: str  # form | view | page | component | layout
    frequency: int
    files: List[str] = field(default_factory=list)
    description: str = ""
    template: str = ""
    parameters: Dict[str, Any] = field(default_factory=dict)
    examples: List[Dict[str, str]] = field(default_factory=list)
    priority: str = "medium"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "frequency": self.frequency,
            "files": list(self.files),
            "description": self.description,
            "template": self.template,
            "parameters": self.parameters,
            "examples": list(self.examples),
            "priority": self.priority,
        }


@dataclass
class ProjectAnalysisResult:
    root: str
    patterns: List[DetectedPattern] = field(default_factory=list)
    data_source_usage: List[Dict[str, Any]] = field(default_factory=list)
    form_patterns: List[Dict[str, Any]] = field(default_factory=list)
    component_usage: List[Dict[str, Any]] = field(default_factory=list)
    validation_patterns: List[Dict[str, Any]] = field(default_factory=list)
    page_structures: List[Dict[str, Any]] = field(default_factory=list)
    navigation_structures: List[Dict[str, Any]] = field(default_factory=list)
    recommendations: List[Dict[str, str]] = field(default_factory=list)
    files_analyzed: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schemaVersion": REPORT_SCHEMA_VERSION,
            "root": self.root,
            "patterns": [p.to_dict() for p in self.patterns],
            "dataSourceUsage": self.data_source_usage,
            "formPatterns": self.form_patterns,
            "componentUsage": self.component_usage,
            "validationPatterns": self.validation_patterns,
            "pageStructures": self.page_structures,
            "navigationStructures": self.navigation_structures,
            "recommendations": self.recommendations,
            "filesAnalyzed": self.files_analyzed,
            "errors": self.errors,
        }


# ---------------------------------------------------------------------------
# Migration
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class MigrationChange:
    type: str
    description: str
    line: Optional[int] = None
    column: Optional[int] = None
    before: Optional[str] = None
    after: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type, "description": self.description}
        for key in ("line", "column", "before", "after"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass
class MigrationResult:
    """Outcome of one rule, or of a rule pipeline, on one file.

    ``code`` is set iff ``success``. On failure ``partial_code`` carries the
    last good working copy of a pipeline run, for inspection only.
    """

    success: bool
    code: Optional[str] = None
    changes: List[MigrationChange] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    partial_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "changes": [c.to_dict() for c in self.changes],
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }
        if self.code is not None:
            data["code"] = self.code
        return data


@dataclass(frozen=True)
class MigrationIssue:
    file: str
    component: str
    rule: str
    complexity: str  # simple | medium | complex
    description: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "file": self.file,
            "component": self.component,
            "rule": self.rule,
            "complexity": self.complexity,
            "description": self.description,
        }


@dataclass
class MigrationAnalysis:
    total_files: int
    migrable_files: int
    issues: List[MigrationIssue] = field(default_factory=list)
    estimated_effort: str = "Low"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalFiles": self.total_files,
            "migrableFiles": self.migrable_files,
            "issues": [i.to_dict() for i in self.issues],
            "estimatedEffort": self.estimated_effort,
        }
