#!/usr/bin/env python3
"""Migration Engine — applies migration rules to files and projects.

The engine owns an immutable, ordered tuple of MigrationRule objects and
runs them as a pipeline per file. Each applicable rule sees the current
working copy; a rule that raises or reports failure has its error recorded
and its output discarded, and the next rule runs on the last good copy.
Edits made by earlier rules are kept (there is no rollback), but a file
whose pipeline recorded any error is reported as failed: ``code`` is None
and the working copy is only available as ``partial_code``. Failed results
are never written to disk.

Commands:
    analyze   read-only pass listing (candidate, rule) migration issues
    v1-to-v2  migrate every matching file in a project
    batch     migrate the files named by the analysis, filtered by rule and complexity

Usage:
    python -m archbase_tools.modernization.migration_engine analyze ./my-app --report
    python -m archbase_tools.modernization.migration_engine v1-to-v2 ./my-app --dry-run
    python -m archbase_tools.modernization.migration_engine batch ./my-app --rules event-handler-upgrade --exclude-complex
"""

import argparse
import json
import logging
import shutil
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from archbase_tools.analysis import registry
from archbase_tools.analysis.models import (
    REPORT_SCHEMA_VERSION,
    MigrationAnalysis,
    MigrationChange,
    MigrationIssue,
    MigrationResult,
)
from archbase_tools.analysis.project_scanner import ProjectScanner, is_migration_candidate
from archbase_tools.compat.datetime_utils import utc_now_iso
from archbase_tools.compat.path_utils import to_relative_posix
from archbase_tools.config import load_config, setup_logging, split_patterns
from archbase_tools.errors import ConfigurationError, RuleApplicationError
from archbase_tools.modernization.migration_rules import DEFAULT_RULES, MigrationRule, find_rule

logger = logging.getLogger("archbase.modernization.migration_engine")


@dataclass
class MigrationOptions:
    project_path: str
    component: Optional[str] = None
    rule_ids: Optional[List[str]] = None
    dry_run: bool = False
    backup: bool = True
    include_patterns: Optional[List[str]] = None
    exclude_patterns: Optional[List[str]] = None


class MigrationRuleEngine:
    """Runs a fixed rule pipeline over source text, files and projects.

    Args:
        rules: ordered rules (DEFAULT_RULES when omitted); stored as a tuple.
        scanner: project scanner used by analyze_project and file discovery.
        config: merged configuration (load_config() when omitted).
    """

    def __init__(self, rules: Optional[Sequence[MigrationRule]] = None,
                 scanner: Optional[ProjectScanner] = None,
                 config: Optional[Dict[str, Any]] = None):
        self.config = config if config is not None else load_config()
        self.rules = tuple(rules) if rules is not None else DEFAULT_RULES
        self.scanner = scanner or ProjectScanner(config=self.config)

    def get_rule(self, rule_id: str) -> Optional[MigrationRule]:
        return find_rule(self.rules, rule_id)

    # -- single source --------------------------------------------------
    def should_apply_rule(self, code: str, rule: MigrationRule, component: Optional[str] = None,
                          rule_ids: Optional[Sequence[str]] = None) -> bool:
        if component and component not in rule.component_names:
            return False
        if rule_ids and rule.rule_id not in rule_ids:
            return False
        return rule.applies_to(code)

    def migrate_source(self, code: str, file_path: str = "<string>", component: Optional[str] = None,
                       rule_ids: Optional[Sequence[str]] = None) -> MigrationResult:
        """Run the rule pipeline over *code*."""
        working = code
        changes: List[MigrationChange] = []
        errors: List[str] = []
        warnings: List[str] = []

        for rule in self.rules:
            if not self.should_apply_rule(working, rule, component, rule_ids):
                continue
            try:
                outcome = rule.transform(working, file_path)
            except Exception as exc:
                failure = RuleApplicationError(str(exc), rule_id=rule.rule_id, file_path=file_path)
                logger.warning("Rule %s failed on %s: %s", failure.rule_id, file_path, failure)
                errors.append(f"Rule {rule.rule_id} failed: {failure}")
                continue

            warnings.extend(outcome.warnings)
            if outcome.success and outcome.code is not None:
                working = outcome.code
                changes.extend(outcome.changes)
            else:
                errors.extend(outcome.errors or [f"Rule {rule.rule_id} reported failure"])

        if errors:
            return MigrationResult(success=False, changes=changes, errors=errors,
                                   warnings=warnings, partial_code=working)
        return MigrationResult(success=True, code=working, changes=changes, warnings=warnings)

    def migrate_file(self, file_path, options: Optional[MigrationOptions] = None) -> MigrationResult:
        """Load *file_path* and run the pipeline; read failures become a failed result."""
        path = Path(file_path)
        try:
            code = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            return MigrationResult(success=False, errors=[f"Could not read {path}: {exc}"])
        component = options.component if options else None
        rule_ids = options.rule_ids if options else None
        return self.migrate_source(code, str(path), component, rule_ids)

    def apply_result(self, file_path, result: MigrationResult, backup: bool = True) -> Optional[Path]:
        """Write a successful result over *file_path*, after an optional backup.

        Returns the backup path, if one was written.

        Raises:
            RuleApplicationError: when *result* is a failed result.
        """
        path = Path(file_path)
        if not result.success or result.code is None:
            raise RuleApplicationError("Refusing to write a failed migration result", file_path=str(path))
        backup_path = None
        if backup:
            backup_path = path.with_name(path.name + self.config["migration"]["backup_suffix"])
            shutil.copyfile(path, backup_path)
        path.write_text(result.code, encoding="utf-8")
        return backup_path

    # -- project --------------------------------------------------------
    def _root(self, options: MigrationOptions) -> Path:
        root = Path(options.project_path).resolve()
        if not root.is_dir():
            raise ConfigurationError(f"Project directory does not exist: {root}", config_key="project_path")
        return root

    def analyze_project(self, options: MigrationOptions) -> MigrationAnalysis:
        """Read-only pass: one issue per (migration candidate, applicable rule)."""
        root = self._root(options)
        scan = self.scanner.scan(root, options.include_patterns, options.exclude_patterns)

        issues: List[MigrationIssue] = []
        migrable = set()
        for fact in scan.components:
            if not is_migration_candidate(fact):
                continue
            if options.component and fact.name != options.component:
                continue
            migrable.add(fact.file)
            complexity = registry.migration_complexity(len(fact.issues), len(fact.props))
            for rule in self.rules:
                if options.rule_ids and rule.rule_id not in options.rule_ids:
                    continue
                if fact.name in rule.component_names:
                    issues.append(MigrationIssue(
                        file=fact.file,
                        component=fact.name,
                        rule=rule.rule_id,
                        complexity=complexity,
                        description=rule.description,
                    ))

        analysis = MigrationAnalysis(
            total_files=scan.statistics["filesScanned"],
            migrable_files=len(migrable),
            issues=issues,
            estimated_effort=registry.estimate_effort(len(issues)),
        )
        logger.info(
            "Migration analysis: %d issue(s) in %d file(s), effort %s",
            len(issues), analysis.migrable_files, analysis.estimated_effort,
        )
        return analysis

    def _run_files(self, root: Path, files: Sequence[Path], options: MigrationOptions,
                   rule_ids: Optional[Sequence[str]]) -> Dict[str, Any]:
        summary: Dict[str, Any] = {
            "filesProcessed": 0,
            "filesMigrated": 0,
            "totalChanges": 0,
            "dryRun": options.dry_run,
            "errors": [],
            "results": [],
        }
        run_options = MigrationOptions(
            project_path=str(root),
            component=options.component,
            rule_ids=list(rule_ids) if rule_ids else None,
            dry_run=options.dry_run,
            backup=options.backup,
        )
        for path in files:
            rel = to_relative_posix(path, root)
            result = self.migrate_file(path, run_options)
            summary["filesProcessed"] += 1
            entry = {"file": rel, **result.to_dict()}
            entry.pop("code", None)

            if not result.success:
                summary["errors"].extend(f"{rel}: {err}" for err in result.errors)
            elif result.changes:
                summary["filesMigrated"] += 1
                summary["totalChanges"] += len(result.changes)
                if not options.dry_run:
                    backup = self.apply_result(path, result, backup=options.backup)
                    entry["backup"] = str(backup) if backup else None
                    logger.info("Migrated %s (%d change(s))", rel, len(result.changes))
            summary["results"].append(entry)
        return summary

    def migrate_project(self, options: MigrationOptions) -> Dict[str, Any]:
        """Migrate every matching file under the project (the v1-to-v2 command)."""
        root = self._root(options)
        analysis = self.analyze_project(options)
        files = self.scanner.find_files(root, options.include_patterns, options.exclude_patterns)
        summary = self._run_files(root, files, options, options.rule_ids)
        summary["analysis"] = analysis.to_dict()
        return summary

    def migrate_batch(self, options: MigrationOptions, rule_ids: Optional[Sequence[str]] = None,
                      exclude_complex: bool = False) -> Dict[str, Any]:
        """Migrate the files named by the analysis, filtered by rule and complexity."""
        root = self._root(options)
        analysis = self.analyze_project(options)

        selected = list(analysis.issues)
        if exclude_complex:
            selected = [i for i in selected if i.complexity != "complex"]
        if rule_ids:
            selected = [i for i in selected if i.rule in rule_ids]

        by_file: "OrderedDict[str, List[MigrationIssue]]" = OrderedDict()
        for issue in selected:
            by_file.setdefault(issue.file, []).append(issue)

        summary = self._run_files(root, [root / rel for rel in by_file], options, rule_ids)
        summary["plan"] = {
            "totalIssues": len(analysis.issues),
            "issuesToMigrate": len(selected),
            "estimatedEffort": analysis.estimated_effort,
        }
        summary["analysis"] = analysis.to_dict()
        return summary


def write_migration_report(payload: Dict[str, Any], output_path) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    report = {"schemaVersion": REPORT_SCHEMA_VERSION, "generatedAt": utc_now_iso()}
    report.update(payload)
    with open(output_path, "w", encoding="utf-8") as fh:
        json.dump(report, fh, indent=2)
    logger.info("Migration report saved: %s", output_path)
    return output_path


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
def _print_analysis(analysis: MigrationAnalysis) -> None:
    print("Migration Analysis")
    print(f"  Total files scanned:       {analysis.total_files}")
    print(f"  Files requiring migration: {analysis.migrable_files}")
    print(f"  Migration issues:          {len(analysis.issues)}")
    print(f"  Estimated effort:          {analysis.estimated_effort}")
    for issue in analysis.issues[:10]:
        print(f"    {issue.complexity.upper():<8} {issue.component} in {issue.file} ({issue.rule})")
    if len(analysis.issues) > 10:
        print(f"    ... and {len(analysis.issues) - 10} more issues")


def _print_summary(summary: Dict[str, Any]) -> None:
    print("Migration Summary")
    print(f"  Files processed: {summary['filesProcessed']}")
    print(f"  Files migrated:  {summary['filesMigrated']}")
    print(f"  Total changes:   {summary['totalChanges']}")
    for entry in summary["results"]:
        if not entry["changes"]:
            continue
        print(f"  {entry['file']}:")
        for change in entry["changes"]:
            print(f"    {change['type']}: {change['description']}")
        for warning in entry["warnings"]:
            print(f"    [WARN] {warning}")
    for error in summary["errors"]:
        print(f"  [ERROR] {error}")
    if summary["dryRun"]:
        print("  (dry run - no files were modified)")


def main():
    parser = argparse.ArgumentParser(description="Migration tools for Archbase versions")
    parser.add_argument("--config", default=None, help="Alternative config YAML")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--json", dest="json_output", action="store_true", help="JSON output")
    sub = parser.add_subparsers(dest="command", required=True)

    p_analyze = sub.add_parser("analyze", help="Analyze a project for migration opportunities")
    p_analyze.add_argument("project", help="Project root directory")
    p_analyze.add_argument("--component", default=None, help="Focus on one component")
    p_analyze.add_argument("--report", action="store_true", help="Write the analysis as JSON")
    p_analyze.add_argument("--output", default=None, help="Report output path")

    p_v1 = sub.add_parser("v1-to-v2", help="Migrate from DataSource V1 to V2")
    p_v1.add_argument("project", help="Project root directory")
    p_v1.add_argument("--component", default=None, help="Focus on one component")
    p_v1.add_argument("--dry-run", action="store_true", help="Show changes without applying them")
    p_v1.add_argument("--no-backup", action="store_true", help="Do not write .backup copies")
    p_v1.add_argument("--include", default=None, help="Comma-separated include globs")
    p_v1.add_argument("--exclude", default=None, help="Comma-separated exclude globs")

    p_batch = sub.add_parser("batch", help="Batch migration with rule and complexity filters")
    p_batch.add_argument("project", help="Project root directory")
    p_batch.add_argument("--rules", default=None, help="Comma-separated rule ids")
    p_batch.add_argument("--exclude-complex", action="store_true", help="Skip complex migrations")
    p_batch.add_argument("--dry-run", action="store_true", help="Show changes without applying them")
    p_batch.add_argument("--report", action="store_true", help="Write a JSON report")
    p_batch.add_argument("--output", default=None, help="Report output path")

    args = parser.parse_args()

    try:
        cfg = load_config(Path(args.config) if args.config else None)
        setup_logging(cfg, args.verbose)
        engine = MigrationRuleEngine(config=cfg)
        backup_default = bool(cfg["migration"]["backup"])

        if args.command == "analyze":
            options = MigrationOptions(project_path=args.project, component=args.component)
            analysis = engine.analyze_project(options)
            payload: Dict[str, Any] = analysis.to_dict()
            if args.report:
                write_migration_report(payload, args.output or cfg["reports"]["migration_output"])
            if args.json_output:
                print(json.dumps(payload, indent=2))
            else:
                _print_analysis(analysis)
            return

        if args.command == "v1-to-v2":
            options = MigrationOptions(
                project_path=args.project,
                component=args.component,
                dry_run=args.dry_run,
                backup=backup_default and not args.no_backup,
                include_patterns=split_patterns(args.include) or None,
                exclude_patterns=split_patterns(args.exclude) if args.exclude else None,
            )
            payload = engine.migrate_project(options)
        else:
            rule_ids = split_patterns(args.rules) or None
            unknown = [r for r in (rule_ids or []) if engine.get_rule(r) is None]
            if unknown:
                raise ConfigurationError(f"Unknown migration rule(s): {', '.join(unknown)}", config_key="rules")
            options = MigrationOptions(project_path=args.project, dry_run=args.dry_run,
                                       backup=backup_default)
            payload = engine.migrate_batch(options, rule_ids=rule_ids, exclude_complex=args.exclude_complex)
            if args.report:
                write_migration_report(payload, args.output or cfg["reports"]["batch_output"])
    except ConfigurationError as exc:
        print(f"[ERROR] {exc}")
        raise SystemExit(1)

    if args.json_output:
        print(json.dumps(payload, indent=2))
    else:
        _print_summary(payload)
    if payload["errors"]:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
