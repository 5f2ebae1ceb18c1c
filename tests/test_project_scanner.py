#!/usr/bin/env python3
"""Tests for the project scanner.

Covers: file enumeration, per-file failure isolation, statistics,
scan-level patterns, migration candidates and effort bands, dependency
review, the replace-in-place fold, summaries, CSV/JSON reports and CLI.
"""

import csv
import json
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from conftest import BROKEN_SOURCE, V1_USER_FORM, V2_GRID_PAGE
from archbase_tools.analysis.models import ComponentIssue, ComponentUsageFact, PropInfo
from archbase_tools.analysis.project_scanner import (
    ProjectScanner,
    analyze_dependencies,
    analyze_migration,
    build_report,
    component_summary,
    compute_statistics,
    detect_patterns,
    export_summary_csv,
    is_migration_candidate,
    main,
    write_report,
)
from archbase_tools.errors import ConfigurationError


@pytest.fixture
def scanner(config):
    return ProjectScanner(config=config)


@pytest.fixture
def project(write_project):
    return write_project({
        "src/UserForm.tsx": V1_USER_FORM,
        "src/UsersPage.tsx": V2_GRID_PAGE,
        "src/Broken.tsx": BROKEN_SOURCE,
        "node_modules/lib/index.js": V1_USER_FORM,
        "README.md": "# app\n",
    })


def _fact(name="ArchbaseEdit", version="v1", issues=0, props=0, file="a.tsx"):
    return ComponentUsageFact(
        name=name,
        import_path="@archbase/react",
        file=file,
        line=1,
        column=0,
        props=tuple(PropInfo(name=f"p{i}", type="any") for i in range(props)),
        has_data_source=True,
        data_source_version=version,
        issues=tuple(
            ComponentIssue(type="warning", message="m", fix="f", line=1, column=0)
            for _ in range(issues)
        ),
    )


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------
class TestScan:
    def test_statistics(self, scanner, project):
        result = scanner.scan(project)
        stats = result.statistics
        assert stats["totalComponents"] == 2
        assert stats["archbaseComponents"] == 2
        assert stats["v1Components"] == 1
        assert stats["v2Components"] == 1
        assert stats["filesScanned"] == 2
        assert stats["filesFailed"] == 1
        assert stats["issuesFound"] == 0

    def test_enumeration_order_and_excludes(self, scanner, project):
        result = scanner.scan(project)
        assert result.scanned_files == ["src/UserForm.tsx", "src/UsersPage.tsx"]
        assert [c.file for c in result.components] == ["src/UserForm.tsx", "src/UsersPage.tsx"]

    def test_broken_file_recorded_not_raised(self, scanner, project):
        result = scanner.scan(project)
        assert [e["file"] for e in result.errors] == ["src/Broken.tsx"]
        assert "src/Broken.tsx" in result.errors[0]["error"]

    def test_missing_directory(self, scanner, tmp_path):
        with pytest.raises(ConfigurationError):
            scanner.scan(tmp_path / "nope")

    def test_shallow_scan_skips_subdirectories(self, scanner, write_project):
        root = write_project({"Root.tsx": V1_USER_FORM, "src/Nested.tsx": V1_USER_FORM})
        result = scanner.scan(root, deep=False)
        assert result.scanned_files == ["Root.tsx"]

    def test_custom_include(self, scanner, write_project):
        root = write_project({"a.tsx": V1_USER_FORM, "b.jsx": "export const x = 1;\n"})
        result = scanner.scan(root, include_patterns=["**/*.jsx"])
        assert result.scanned_files == ["b.jsx"]


class TestStatistics:
    def test_pure_function_of_inputs(self):
        facts = [_fact(version="v1", issues=2), _fact(version="v2")]
        first = compute_statistics(facts, ["a.tsx"], [])
        second = compute_statistics(facts, ["a.tsx"], [])
        assert first == second
        assert first["issuesFound"] == 2
        assert first["filesFailed"] == 0

    def test_non_registered_components_counted_separately(self):
        facts = [_fact(name="ArchbaseEdit"), _fact(name="Grid")]
        stats = compute_statistics(facts, ["a.tsx"], [])
        assert stats["totalComponents"] == 2
        assert stats["archbaseComponents"] == 1


# ---------------------------------------------------------------------------
# Patterns and migration
# ---------------------------------------------------------------------------
class TestPatternsAndMigration:
    def test_form_without_datasource_is_recommended(self):
        facts = [_fact(name="ArchbaseFormTemplate", version="unknown")]
        patterns = detect_patterns(facts)
        assert "form-with-datasource" in patterns["recommended"]
        assert "form-with-datasource" not in patterns["missing"]

    def test_tag_marks_pattern_detected(self):
        fact = ComponentUsageFact(
            name="ArchbaseDataGrid", import_path="", file="a.tsx", line=1, column=0,
            patterns=("crud-with-datagrid",),
        )
        patterns = detect_patterns([fact])
        assert "crud-with-datagrid" in patterns["detected"]
        assert "crud-with-datagrid" not in patterns["recommended"]

    def test_migration_candidates(self):
        assert is_migration_candidate(_fact(version="v1"))
        assert is_migration_candidate(_fact(version="unknown"))
        assert not is_migration_candidate(_fact(version="v2"))
        assert not is_migration_candidate(_fact(name="ArchbaseButton", version="v1"))

    @pytest.mark.parametrize("issues,effort", [
        (0, "Low"), (10, "Low"), (11, "Medium"), (25, "Medium"), (26, "High"), (30, "High"),
    ])
    def test_effort_bands(self, issues, effort):
        facts = [_fact(issues=1) for _ in range(issues)]
        assert analyze_migration(facts)["estimatedEffort"] == effort

    def test_migration_recommendations(self):
        migration = analyze_migration([_fact(version="v1")])
        assert migration["recommendations"][0] == "Migrate 1 components to DataSource V2"
        assert len(migration["v1ToV2Candidates"]) == 1


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
class TestDependencies:
    def test_missing_and_outdated(self, tmp_path):
        (tmp_path / "package.json").write_text(json.dumps({
            "dependencies": {"@archbase/react": "^1.4.0", "react": "^18.2.0"},
            "devDependencies": {"@mantine/core": "7.0.0"},
        }), encoding="utf-8")
        deps = analyze_dependencies(
            tmp_path,
            ["@mantine/core", "@mantine/hooks"],
            {"@archbase/react": "2.0.0", "react": "18.0.0"},
        )
        assert deps["archbaseVersion"] == "^1.4.0"
        assert deps["reactVersion"] == "^18.2.0"
        assert deps["missingDependencies"] == ["@mantine/hooks"]
        assert deps["outdatedDependencies"] == [
            {"name": "@archbase/react", "current": "^1.4.0", "latest": "2.0.0"}
        ]

    def test_no_package_json(self, tmp_path):
        deps = analyze_dependencies(tmp_path, ["react"], {})
        assert deps == {"missingDependencies": [], "outdatedDependencies": []}

    def test_invalid_package_json(self, tmp_path):
        (tmp_path / "package.json").write_text("{not json", encoding="utf-8")
        deps = analyze_dependencies(tmp_path, ["react"], {})
        assert "error" in deps


# ---------------------------------------------------------------------------
# Replace-in-place fold
# ---------------------------------------------------------------------------
class TestRefreshFile:
    def test_fold_matches_fresh_scan(self, scanner, project):
        result = scanner.scan(project)
        (project / "src" / "UserForm.tsx").write_text(
            V1_USER_FORM.replace('dataField="name"', 'dataField="name" forceUpdate'),
            encoding="utf-8",
        )
        facts = scanner.refresh_file(result, "src/UserForm.tsx")
        assert len(facts) == 1
        assert result.to_dict() == scanner.scan(project).to_dict()
        assert result.statistics["issuesFound"] == 1

    def test_refresh_is_idempotent(self, scanner, project):
        result = scanner.scan(project)
        before = result.to_dict()
        scanner.refresh_file(result, "src/UsersPage.tsx")
        scanner.refresh_file(result, "src/UsersPage.tsx")
        assert result.to_dict() == before

    def test_new_file_inserted_in_order(self, scanner, project):
        result = scanner.scan(project)
        (project / "src" / "Alpha.tsx").write_text(V1_USER_FORM, encoding="utf-8")
        scanner.refresh_file(result, "src/Alpha.tsx")
        assert result.scanned_files[0] == "src/Alpha.tsx"
        assert result.components[0].file == "src/Alpha.tsx"
        assert result.to_dict() == scanner.scan(project).to_dict()

    def test_fixed_file_leaves_errors(self, scanner, project):
        result = scanner.scan(project)
        (project / "src" / "Broken.tsx").write_text(V1_USER_FORM, encoding="utf-8")
        scanner.refresh_file(result, "src/Broken.tsx")
        assert result.errors == []
        assert result.statistics["filesScanned"] == 3

    def test_remove_file(self, scanner, project):
        result = scanner.scan(project)
        removed = scanner.remove_file(result, "src/UserForm.tsx")
        assert [c.name for c in removed] == ["ArchbaseEdit"]
        assert result.statistics["totalComponents"] == 1
        assert "src/UserForm.tsx" not in result.scanned_files


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------
class TestReporting:
    def test_component_summary(self, scanner, project):
        rows = component_summary(scanner.scan(project))
        assert [r["component"] for r in rows] == ["ArchbaseDataGrid", "ArchbaseEdit"]
        edit = rows[1]
        assert edit["usageCount"] == 1
        assert edit["files"] == ["src/UserForm.tsx"]
        assert edit["v1"] == 1

    def test_component_filter(self, scanner, project):
        rows = component_summary(scanner.scan(project), "ArchbaseEdit")
        assert [r["component"] for r in rows] == ["ArchbaseEdit"]

    def test_csv_export(self, scanner, project, tmp_path):
        rows = component_summary(scanner.scan(project))
        out = export_summary_csv(rows, tmp_path / "out" / "summary.csv")
        with open(out, newline="", encoding="utf-8") as fh:
            table = list(csv.reader(fh))
        assert table[0] == ["Component", "Usage Count", "Files", "V1", "V2", "Issues"]
        assert table[2] == ["ArchbaseEdit", "1", "1", "1", "0", "0"]

    def test_report_layout(self, scanner, project, tmp_path):
        result = scanner.scan(project)
        report = build_report(result)
        assert report["schemaVersion"] == "1.0"
        assert report["summary"]["filesFailed"] == 1
        assert "Review 1 file(s) that could not be analyzed" in report["recommendations"]

        path = write_report(result, tmp_path / "report.json")
        saved = json.loads(path.read_text(encoding="utf-8"))
        assert saved["components"][0]["dataSourceVersion"] == "v1"
        assert saved["migration"]["v1ToV2Candidates"][0]["name"] == "ArchbaseEdit"


class TestCLI:
    def test_json_output(self, write_project, capsys):
        root = write_project({"src/UserForm.tsx": V1_USER_FORM})
        with patch.object(sys, "argv", ["archbase-scan", str(root), "--json", "--summary"]):
            main()
        payload = json.loads(capsys.readouterr().out)
        assert payload["summary"]["totalComponents"] == 1
        assert payload["componentSummary"][0]["component"] == "ArchbaseEdit"

    def test_missing_project_exits(self, tmp_path, capsys):
        with patch.object(sys, "argv", ["archbase-scan", str(tmp_path / "missing")]):
            with pytest.raises(SystemExit) as info:
                main()
        assert info.value.code == 1
        assert "[ERROR]" in capsys.readouterr().out

    def test_failures_exit_nonzero(self, write_project):
        root = write_project({"src/Broken.tsx": BROKEN_SOURCE})
        with patch.object(sys, "argv", ["archbase-scan", str(root), "--json"]):
            with pytest.raises(SystemExit) as info:
                main()
        assert info.value.code == 1
