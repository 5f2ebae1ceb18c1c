#!/usr/bin/env python3
"""Project Scanner — project-wide Archbase component usage aggregation.

Walks a project tree, extracts component usage facts from every matching
file and folds them into statistics, scan-level patterns, V1 -> V2
migration candidates and a dependency review of package.json.

A file that cannot be read or parsed is recorded in ``errors`` and the scan
carries on. Every derived section is a pure function of the facts, so a
single file can be rescanned and folded back in (refresh_file) with a
result identical to a fresh full scan.

Usage:
    python -m archbase_tools.analysis.project_scanner ./my-app
    python -m archbase_tools.analysis.project_scanner ./my-app --report --output scan.json
    python -m archbase_tools.analysis.project_scanner ./my-app --summary --csv components.csv
    python -m archbase_tools.analysis.project_scanner ./my-app --json
"""

import argparse
import bisect
import csv
import json
import logging
import re
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from archbase_tools.analysis import registry
from archbase_tools.analysis.component_extractor import ComponentFactExtractor
from archbase_tools.analysis.models import (
    REPORT_SCHEMA_VERSION,
    ComponentUsageFact,
    ProjectScanResult,
)
from archbase_tools.compat.datetime_utils import utc_now_iso
from archbase_tools.compat.path_utils import discover_files, to_relative_posix
from archbase_tools.config import load_config, setup_logging, split_patterns
from archbase_tools.errors import ArchbaseError, ConfigurationError
from archbase_tools.parsing.source_parser import parse_file

logger = logging.getLogger("archbase.analysis.project_scanner")

PROGRESS_EVERY = 10
_MAJOR_RE = re.compile(r"(\d+)")


# ---------------------------------------------------------------------------
# Pure derivations
# ---------------------------------------------------------------------------
def compute_statistics(
    components: Sequence[ComponentUsageFact],
    scanned_files: Sequence[str],
    errors: Sequence[Dict[str, str]],
) -> Dict[str, int]:
    """Statistics block, recomputable at any time from the facts."""
    return {
        "totalComponents": len(components),
        "archbaseComponents": sum(1 for c in components if c.name in registry.ARCHBASE_COMPONENTS),
        "v1Components": sum(1 for c in components if c.data_source_version == "v1"),
        "v2Components": sum(1 for c in components if c.data_source_version == "v2"),
        "filesScanned": len(scanned_files),
        "filesFailed": len(errors),
        "issuesFound": sum(len(c.issues) for c in components),
    }


def detect_patterns(components: Sequence[ComponentUsageFact]) -> Dict[str, List[str]]:
    """Scan-level pattern catalogue: detected, recommended and missing."""
    names = {c.name for c in components}
    tags = {tag for c in components for tag in c.patterns}

    detected = []
    for pattern, definition in registry.PATTERN_DEFINITIONS.items():
        if all(comp in names for comp in definition["components"]) or pattern in tags:
            detected.append(pattern)

    recommended = []
    if registry.FORM_TEMPLATE in names and "form-with-datasource" not in detected:
        recommended.append("form-with-datasource")
    if registry.DATA_GRID in names and "crud-with-datagrid" not in detected:
        recommended.append("crud-with-datagrid")

    missing = [
        p for p in registry.PATTERN_DEFINITIONS
        if p not in detected and p not in recommended
    ]
    return {"detected": detected, "missing": missing, "recommended": recommended}


def is_migration_candidate(fact: ComponentUsageFact) -> bool:
    return (
        fact.data_source_version in ("v1", "unknown")
        and fact.name in registry.V2_EQUIVALENT_COMPONENTS
    )


def analyze_migration(components: Sequence[ComponentUsageFact]) -> Dict[str, Any]:
    """V1 -> V2 candidates, effort band and migration recommendations."""
    candidates = [c for c in components if is_migration_candidate(c)]
    issue_count = sum(len(c.issues) for c in components)

    recommendations = []
    if candidates:
        recommendations.append(f"Migrate {len(candidates)} components to DataSource V2")
        recommendations.append("Use ArchbaseRemoteDataSource for better performance")
        recommendations.append("Implement reactive data binding patterns")

    forms_without_feedback = [
        c for c in components
        if c.name == registry.FORM_TEMPLATE and "validation-with-feedback" not in c.patterns
    ]
    if forms_without_feedback:
        recommendations.append("Add validation feedback to forms")

    return {
        "v1ToV2Candidates": candidates,
        "estimatedEffort": registry.estimate_effort(issue_count),
        "recommendations": recommendations,
    }


def scan_recommendations(result: ProjectScanResult) -> List[str]:
    recommendations = []
    issues = result.statistics.get("issuesFound", 0)
    if issues > 0:
        recommendations.append(f"Fix {issues} component issues found")
    if result.migration.get("v1ToV2Candidates"):
        recommendations.append("Consider migrating to DataSource V2 for better performance")
    if result.dependencies.get("missingDependencies"):
        recommendations.append("Install recommended dependencies for better integration")
    if result.patterns.get("recommended"):
        recommendations.append("Implement recommended patterns for better maintainability")
    if result.errors:
        recommendations.append(f"Review {len(result.errors)} file(s) that could not be analyzed")
    return recommendations


def _major(version: str) -> Optional[int]:
    match = _MAJOR_RE.search(version or "")
    return int(match.group(1)) if match else None


def analyze_dependencies(root: Path, recommended: Sequence[str],
                         minimum_versions: Dict[str, str]) -> Dict[str, Any]:
    """Review package.json: versions, missing and outdated dependencies."""
    result: Dict[str, Any] = {"missingDependencies": [], "outdatedDependencies": []}
    package_json = Path(root) / "package.json"
    if not package_json.exists():
        return result

    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Could not read %s: %s", package_json, exc)
        result["error"] = f"Could not read package.json: {exc}"
        return result

    deps: Dict[str, str] = {}
    deps.update(data.get("dependencies") or {})
    deps.update(data.get("devDependencies") or {})

    if "@archbase/react" in deps:
        result["archbaseVersion"] = deps["@archbase/react"]
    if "react" in deps:
        result["reactVersion"] = deps["react"]

    result["missingDependencies"] = [dep for dep in recommended if dep not in deps]

    for name, minimum in minimum_versions.items():
        current = deps.get(name)
        if current is None:
            continue
        current_major, minimum_major = _major(current), _major(str(minimum))
        if current_major is not None and minimum_major is not None and current_major < minimum_major:
            result["outdatedDependencies"].append(
                {"name": name, "current": current, "latest": str(minimum)}
            )
    return result


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------
class ProjectScanner:
    """Scans a project directory for Archbase component usages.

    Args:
        config: merged configuration (load_config() when omitted).
        extractor: fact extractor to use per file.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 extractor: Optional[ComponentFactExtractor] = None):
        self.config = config if config is not None else load_config()
        self.extractor = extractor or ComponentFactExtractor()

    # -- enumeration ----------------------------------------------------
    def find_files(self, root, include_patterns: Optional[Sequence[str]] = None,
                   exclude_patterns: Optional[Sequence[str]] = None, deep: bool = True) -> List[Path]:
        scan_cfg = self.config["scan"]
        include = list(include_patterns) if include_patterns else list(scan_cfg["include_patterns"])
        exclude = list(exclude_patterns) if exclude_patterns is not None else list(scan_cfg["exclude_patterns"])
        return discover_files(root, include, exclude, recursive=deep)

    # -- per file -------------------------------------------------------
    def analyze_file(self, file_path, root) -> List[ComponentUsageFact]:
        """Usage facts for one file, with ``file`` relative to *root*.

        Raises:
            SourceSyntaxError: when the file does not parse.
            OSError / UnicodeDecodeError: when it cannot be read.
        """
        rel = to_relative_posix(file_path, root)
        parsed = parse_file(file_path)
        return self.extractor.extract_usages(parsed, rel)

    # -- whole project --------------------------------------------------
    def scan(self, root, include_patterns: Optional[Sequence[str]] = None,
             exclude_patterns: Optional[Sequence[str]] = None, deep: bool = True) -> ProjectScanResult:
        """Scan *root* and return the aggregated result.

        Raises:
            ConfigurationError: when *root* is not a directory.
        """
        root = Path(root).resolve()
        if not root.is_dir():
            raise ConfigurationError(f"Project directory does not exist: {root}", config_key="project_path")

        files = self.find_files(root, include_patterns, exclude_patterns, deep)
        logger.info("Scanning %s: %d file(s) to analyze", root, len(files))

        result = ProjectScanResult(root=str(root))
        for index, path in enumerate(files, start=1):
            rel = to_relative_posix(path, root)
            try:
                facts = self.analyze_file(path, root)
            except (ArchbaseError, OSError, UnicodeDecodeError) as exc:
                logger.warning("Could not analyze %s: %s", rel, exc)
                result.errors.append({"file": rel, "error": str(exc)})
                continue
            result.components.extend(facts)
            result.scanned_files.append(rel)
            if index % PROGRESS_EVERY == 0:
                logger.debug("Analyzed %d/%d files", index, len(files))

        self.recompute(result)
        logger.info(
            "Scan complete: %d component usage(s) in %d file(s), %d failure(s)",
            len(result.components), len(result.scanned_files), len(result.errors),
        )
        return result

    def recompute(self, result: ProjectScanResult) -> ProjectScanResult:
        """Rebuild every derived section of *result* from its facts."""
        result.statistics = compute_statistics(result.components, result.scanned_files, result.errors)
        result.patterns = detect_patterns(result.components)
        result.migration = analyze_migration(result.components)
        deps_cfg = self.config["dependencies"]
        result.dependencies = analyze_dependencies(
            Path(result.root), deps_cfg["recommended"], deps_cfg["minimum_versions"]
        )
        return result

    # -- replace-in-place fold ------------------------------------------
    def _order(self, result: ProjectScanResult) -> None:
        position = {rel: idx for idx, rel in enumerate(result.scanned_files)}
        result.components.sort(key=lambda c: position.get(c.file, len(position)))
        result.errors.sort(key=lambda e: e["file"])

    def remove_file(self, result: ProjectScanResult, rel_path: str) -> List[ComponentUsageFact]:
        """Drop every fact and error for *rel_path*; returns the removed facts."""
        removed = result.components_in(rel_path)
        result.components = [c for c in result.components if c.file != rel_path]
        result.scanned_files = [f for f in result.scanned_files if f != rel_path]
        result.errors = [e for e in result.errors if e["file"] != rel_path]
        self.recompute(result)
        return removed

    def refresh_file(self, result: ProjectScanResult, rel_path: str) -> List[ComponentUsageFact]:
        """Re-extract one file and fold it into *result* in replace mode.

        Prior facts for the file are removed, the new facts are inserted at
        the file's enumeration position and all derived sections are
        recomputed. Calling it repeatedly on unchanged content is a no-op.
        Returns the new facts (empty when the file failed).
        """
        root = Path(result.root)
        result.components = [c for c in result.components if c.file != rel_path]
        result.scanned_files = [f for f in result.scanned_files if f != rel_path]
        result.errors = [e for e in result.errors if e["file"] != rel_path]

        facts: List[ComponentUsageFact] = []
        try:
            facts = self.analyze_file(root / rel_path, root)
        except (ArchbaseError, OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not analyze %s: %s", rel_path, exc)
            result.errors.append({"file": rel_path, "error": str(exc)})
        else:
            bisect.insort(result.scanned_files, rel_path)
            result.components.extend(facts)

        self._order(result)
        self.recompute(result)
        return facts


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------
def component_summary(result: ProjectScanResult, component: Optional[str] = None) -> List[Dict[str, Any]]:
    """Per-component rows: usage count, files, V1/V2 counts, issue count."""
    rows: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    for fact in result.components:
        if component and fact.name != component:
            continue
        row = rows.setdefault(fact.name, {
            "component": fact.name,
            "usageCount": 0,
            "files": [],
            "v1": 0,
            "v2": 0,
            "issues": 0,
        })
        row["usageCount"] += 1
        if fact.file not in row["files"]:
            row["files"].append(fact.file)
        if fact.data_source_version in ("v1", "v2"):
            row[fact.data_source_version] += 1
        row["issues"] += len(fact.issues)
    return sorted(rows.values(), key=lambda r: (-r["usageCount"], r["component"]))


def export_summary_csv(rows: Sequence[Dict[str, Any]], output_path) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh)
        writer.writerow(["Component", "Usage Count", "Files", "V1", "V2", "Issues"])
        for row in rows:
            writer.writerow([
                row["component"], row["usageCount"], len(row["files"]),
                row["v1"], row["v2"], row["issues"],
            ])
    return output_path


def build_report(result: ProjectScanResult) -> Dict[str, Any]:
    data = result.to_dict()
    return {
        "schemaVersion": REPORT_SCHEMA_VERSION,
        "generatedAt": utc_now_iso(),
        "root": result.root,
        "summary": data["statistics"],
        "components": data["components"],
        "patterns": data["patterns"],
        "migration": data["migration"],
        "dependencies": data["dependencies"],
        "errors": data["errors"],
        "recommendations": scan_recommendations(result),
    }


def write_report(result: ProjectScanResult, output_path) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as fh:
        json.dump(build_report(result), fh, indent=2)
    logger.info("Report generated: %s", output_path)
    return output_path


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
def _print_human(result: ProjectScanResult) -> None:
    stats = result.statistics
    print("Archbase Project Scan")
    print(f"  Root:                {result.root}")
    print(f"  Files scanned:       {stats['filesScanned']}")
    print(f"  Files failed:        {stats['filesFailed']}")
    print(f"  Components:          {stats['totalComponents']} ({stats['archbaseComponents']} registered)")
    print(f"  DataSource V1 / V2:  {stats['v1Components']} / {stats['v2Components']}")
    print(f"  Issues:              {stats['issuesFound']}")
    print(f"  Migration effort:    {result.migration['estimatedEffort']}")
    if result.patterns["detected"]:
        print(f"  Patterns:            {', '.join(result.patterns['detected'])}")
    for rec in scan_recommendations(result):
        print(f"  - {rec}")
    for err in result.errors:
        print(f"  [WARN] {err['file']}: {err['error']}")


def main():
    parser = argparse.ArgumentParser(description="Scan a project for Archbase component usage")
    parser.add_argument("project", help="Project root directory")
    parser.add_argument("--include", default=None, help="Comma-separated include globs")
    parser.add_argument("--exclude", default=None, help="Comma-separated exclude globs")
    parser.add_argument("--shallow", action="store_true", help="Only scan the root directory")
    parser.add_argument("--report", action="store_true", help="Write a JSON report")
    parser.add_argument("--output", default=None, help="Report output path")
    parser.add_argument("--summary", action="store_true", help="Print per-component summary")
    parser.add_argument("--component", default=None, help="Restrict the summary to one component")
    parser.add_argument("--csv", default=None, help="Export the component summary as CSV")
    parser.add_argument("--config", default=None, help="Alternative config YAML")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--json", dest="json_output", action="store_true", help="JSON output")
    args = parser.parse_args()

    try:
        cfg = load_config(Path(args.config) if args.config else None)
        setup_logging(cfg, args.verbose)
        scanner = ProjectScanner(config=cfg)
        result = scanner.scan(
            args.project,
            include_patterns=split_patterns(args.include) or None,
            exclude_patterns=split_patterns(args.exclude) if args.exclude else None,
            deep=not args.shallow,
        )
    except ConfigurationError as exc:
        print(f"[ERROR] {exc}")
        raise SystemExit(1)

    if args.report:
        write_report(result, args.output or cfg["reports"]["scan_output"])

    rows = component_summary(result, args.component) if (args.summary or args.csv) else []
    if args.csv:
        export_summary_csv(rows, args.csv)

    if args.json_output:
        payload = build_report(result)
        if args.summary:
            payload["componentSummary"] = rows
        print(json.dumps(payload, indent=2))
    else:
        _print_human(result)
        for row in rows:
            print(f"  {row['component']:<28} {row['usageCount']:>4} uses  {len(row['files']):>3} files  "
                  f"v1={row['v1']} v2={row['v2']} issues={row['issues']}")

    if result.errors:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
