#!/usr/bin/env python3
"""Tests for the realtime (per-event) scanner."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from conftest import BROKEN_SOURCE, V1_USER_FORM, V2_GRID_PAGE
from archbase_tools.analysis.models import ComponentIssue, ComponentUsageFact
from archbase_tools.analysis.project_scanner import ProjectScanner
from archbase_tools.analysis.realtime_scanner import RealtimeScanner, generate_suggestions


@pytest.fixture
def project(write_project):
    return write_project({
        "src/UserForm.tsx": V1_USER_FORM,
        "src/UsersPage.tsx": V2_GRID_PAGE,
    })


@pytest.fixture
def realtime(config, project):
    rt = RealtimeScanner(ProjectScanner(config=config))
    rt.start(project)
    return rt


class TestHandleChange:
    def test_change_reports_new_issues(self, realtime, project):
        (project / "src" / "UserForm.tsx").write_text(
            V1_USER_FORM.replace('dataField="name"', 'dataField="name" forceUpdate'),
            encoding="utf-8",
        )
        analysis = realtime.handle_change("change", "src/UserForm.tsx")
        assert analysis.new_issues == 1
        assert analysis.fixed_issues == 0
        assert [c.name for c in analysis.components] == ["ArchbaseEdit"]
        assert "Consider migrating 1 component(s) to DataSource V2" in analysis.suggestions
        assert realtime.last_result.statistics["issuesFound"] == 1

    def test_change_reports_fixed_issues(self, realtime, project):
        path = project / "src" / "UserForm.tsx"
        path.write_text(V1_USER_FORM.replace('dataField="name"', 'dataField="name" forceUpdate'),
                        encoding="utf-8")
        realtime.handle_change("change", "src/UserForm.tsx")
        path.write_text(V1_USER_FORM, encoding="utf-8")
        analysis = realtime.handle_change("change", "src/UserForm.tsx")
        assert analysis.fixed_issues == 1
        assert analysis.new_issues == 0

    def test_add_event(self, realtime, project):
        (project / "src" / "Other.tsx").write_text(V2_GRID_PAGE, encoding="utf-8")
        analysis = realtime.handle_change("add", "src/Other.tsx")
        assert analysis.event == "add"
        assert realtime.last_result.statistics["filesScanned"] == 3
        assert "crud-with-datagrid" in analysis.patterns

    def test_unlink_event(self, realtime, project):
        (project / "src" / "UsersPage.tsx").unlink()
        analysis = realtime.handle_change("unlink", "src/UsersPage.tsx")
        assert analysis.components == []
        assert realtime.last_result.statistics["totalComponents"] == 1
        assert "src/UsersPage.tsx" not in realtime.last_result.scanned_files

    def test_broken_change_sets_error(self, realtime, project):
        (project / "src" / "UserForm.tsx").write_text(BROKEN_SOURCE, encoding="utf-8")
        analysis = realtime.handle_change("change", "src/UserForm.tsx")
        assert analysis.error is not None
        assert analysis.components == []
        assert realtime.last_result.statistics["filesFailed"] == 1
        assert analysis.to_dict()["error"] == analysis.error

    def test_unwatched_files_ignored(self, realtime):
        assert realtime.handle_change("change", "README.md") is None
        assert realtime.handle_change("change", "node_modules/lib/index.js") is None

    def test_unknown_event(self, realtime):
        with pytest.raises(ValueError):
            realtime.handle_change("rename", "src/UserForm.tsx")

    def test_requires_start(self, config):
        rt = RealtimeScanner(ProjectScanner(config=config))
        with pytest.raises(RuntimeError):
            rt.handle_change("change", "src/UserForm.tsx")


class TestSuggestions:
    def _fact(self, name, patterns=(), issues=()):
        return ComponentUsageFact(name=name, import_path="", file="a.tsx", line=1, column=0,
                                  patterns=patterns, issues=issues)

    def test_form_without_feedback(self):
        suggestions = generate_suggestions([self._fact("ArchbaseFormTemplate")])
        assert suggestions == ["Add validation feedback to forms"]

    def test_missing_required_prop(self):
        issue = ComponentIssue(type="error", message="Missing required prop: dataSource",
                               fix="Add dataSource prop", line=1, column=0)
        suggestions = generate_suggestions([self._fact("ArchbaseEdit", issues=(issue,))])
        assert suggestions == ["Fix missing required props for better reliability"]

    def test_repeated_component_extraction(self):
        facts = [self._fact("ArchbaseEdit") for _ in range(6)]
        assert generate_suggestions(facts) == [
            "Consider extracting ArchbaseEdit into a reusable component"
        ]

    def test_five_usages_not_enough(self):
        facts = [self._fact("ArchbaseEdit") for _ in range(5)]
        assert generate_suggestions(facts) == []
