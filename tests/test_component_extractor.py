#!/usr/bin/env python3
"""Tests for ComponentFactExtractor.

Covers: tracked usage detection, import resolution (aliases, namespaces,
require, lazy), prop inference, DataSource version inference, issue
detection, pattern tags and the single-file summary.
"""

import sys
import textwrap
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from conftest import V1_USER_FORM
from archbase_tools.analysis import registry
from archbase_tools.analysis.component_extractor import (
    ComponentFactExtractor,
    infer_prop,
    iter_jsx_sites,
    resolve_imports,
)
from archbase_tools.parsing.source_parser import parse


@pytest.fixture
def extractor():
    return ComponentFactExtractor()


def _usages(extractor, code, path="src/Sample.tsx"):
    return extractor.extract_usages(parse(textwrap.dedent(code), file_path=path), path)


# ---------------------------------------------------------------------------
# Usage detection
# ---------------------------------------------------------------------------
class TestUsageDetection:
    def test_v1_bound_input(self, extractor):
        usages = extractor.extract_usages(parse(V1_USER_FORM, file_path="src/UserForm.tsx"))
        assert len(usages) == 1
        usage = usages[0]
        assert usage.name == "ArchbaseEdit"
        assert usage.import_path == "@archbase/react"
        assert usage.file == "src/UserForm.tsx"
        assert usage.line == 6
        assert usage.column == 9
        assert usage.has_data_source is True
        assert usage.data_source_version == "v1"
        assert usage.issues == ()
        assert usage.patterns == ()

    def test_props_marked_required(self, extractor):
        usage = extractor.extract_usages(parse(V1_USER_FORM))[0]
        props = {p.name: p for p in usage.props}
        assert props["dataSource"].type == "any"
        assert props["dataSource"].value == "ds"
        assert props["dataField"].type == "string"
        assert props["dataField"].value == "name"
        assert props["dataSource"].is_required is True

    def test_aliased_import_uses_exported_name(self, extractor):
        usages = _usages(extractor, """\
            import { ArchbaseEdit as Input } from '@archbase/react';
            export const F = () => <Input dataSource={ds} dataField="a" />;
        """)
        assert [u.name for u in usages] == ["ArchbaseEdit"]

    def test_namespace_import(self, extractor):
        usages = _usages(extractor, """\
            import * as AB from '@archbase/react';
            export const F = () => <AB.ArchbaseSelect dataSource={ds} dataField="a" />;
        """)
        assert [(u.name, u.import_path) for u in usages] == [("ArchbaseSelect", "@archbase/react")]

    def test_unresolved_known_component_kept_with_empty_path(self, extractor):
        usages = _usages(extractor, """\
            export const F = () => <ArchbaseEdit dataSource={ds} dataField="a" />;
        """)
        assert len(usages) == 1
        assert usages[0].import_path == ""

    def test_same_name_from_local_module_ignored(self, extractor):
        usages = _usages(extractor, """\
            import { ArchbaseEdit } from './widgets';
            export const F = () => <ArchbaseEdit value="a" />;
        """)
        assert usages == []

    def test_plain_elements_ignored(self, extractor):
        usages = _usages(extractor, """\
            export const F = () => <div><span>hi</span></div>;
        """)
        assert usages == []

    def test_source_order(self, extractor):
        usages = _usages(extractor, """\
            import { ArchbaseEdit, ArchbaseSelect } from '@archbase/react';
            export const F = () => (
              <div>
                <ArchbaseSelect dataSource={ds} dataField="b" />
                <ArchbaseEdit dataSource={ds} dataField="a" />
              </div>
            );
        """)
        assert [u.name for u in usages] == ["ArchbaseSelect", "ArchbaseEdit"]
        assert usages[0].line < usages[1].line

    def test_extraction_is_repeatable(self, extractor):
        parsed = parse(V1_USER_FORM)
        assert extractor.extract_usages(parsed) == extractor.extract_usages(parsed)


# ---------------------------------------------------------------------------
# Import resolution
# ---------------------------------------------------------------------------
class TestResolveImports:
    def test_default_named_and_namespace(self):
        parsed = parse(textwrap.dedent("""\
            import React, { useState as useLocal } from 'react';
            import * as AB from '@archbase/react';
        """))
        imports = resolve_imports(parsed)
        assert imports["React"].imported_name == "default"
        assert imports["useLocal"].imported_name == "useState"
        assert imports["AB"].imported_name == "*"
        assert imports["AB"].module == "@archbase/react"

    def test_require_destructuring(self):
        parsed = parse("const { ArchbaseEdit } = require('@archbase/react');\n")
        resolved = resolve_imports(parsed)["ArchbaseEdit"]
        assert resolved.module == "@archbase/react"
        assert resolved.kind == "require"

    def test_lazy_dynamic_import(self):
        parsed = parse("const Grid = lazy(() => import('@archbase/react/grid'));\n")
        resolved = resolve_imports(parsed)["Grid"]
        assert resolved.module == "@archbase/react/grid"
        assert resolved.kind == "dynamic"

    def test_unrelated_calls_not_imports(self):
        parsed = parse("const value = compute('x');\n")
        assert resolve_imports(parsed) == {}


# ---------------------------------------------------------------------------
# Props
# ---------------------------------------------------------------------------
class TestPropInference:
    def test_literal_types(self, extractor):
        usage = _usages(extractor, """\
            import { ArchbaseEdit } from '@archbase/react';
            export const F = () => (
              <ArchbaseEdit dataSource={ds} dataField="a" disabled maxLength={20}
                required={false} onChange={() => {}} style={{ width: 1 }} />
            );
        """)[0]
        props = {p.name: (p.type, p.value) for p in usage.props}
        assert props["disabled"] == ("boolean", True)
        assert props["maxLength"] == ("number", 20)
        assert props["required"] == ("boolean", False)
        assert props["onChange"] == ("function", None)
        assert props["style"] == ("object", None)

    def test_bare_attribute_is_true(self):
        parsed = parse("const a = <b x />;\n")
        site = next(iter_jsx_sites(parsed))
        attr = site.attributes()[0]
        value = attr.named_children[1] if len(attr.named_children) > 1 else None
        assert infer_prop(parsed, value) == ("boolean", True)


# ---------------------------------------------------------------------------
# DataSource versions
# ---------------------------------------------------------------------------
class TestDataSourceVersion:
    def test_v2_hook_binding(self, extractor):
        usage = _usages(extractor, """\
            import { useArchbaseRemoteDataSource, ArchbaseEdit } from '@archbase/react';
            export function F() {
              const ds = useArchbaseRemoteDataSource({ url: '/api' });
              return <ArchbaseEdit dataSource={ds} dataField="a" />;
            }
        """)[0]
        assert usage.data_source_version == "v2"

    def test_destructured_v1_hook(self, extractor):
        usage = _usages(extractor, """\
            import { useArchbaseDataSource, ArchbaseEdit } from '@archbase/react';
            export function F() {
              const { dataSource } = useArchbaseDataSource({ name: 'users' });
              return <ArchbaseEdit dataSource={dataSource} dataField="a" />;
            }
        """)[0]
        assert usage.data_source_version == "v1"

    def test_file_level_method_evidence(self, extractor):
        usage = _usages(extractor, """\
            import { ArchbaseEdit } from '@archbase/react';
            export function F(props: any) {
              props.ds.appendToFieldArray('items', {});
              return <ArchbaseEdit dataSource={props.ds} dataField="a" />;
            }
        """)[0]
        assert usage.data_source_version == "v2"

    def test_unknown_without_evidence(self, extractor):
        usage = _usages(extractor, """\
            import { ArchbaseEdit } from '@archbase/react';
            export const F = (props: any) => <ArchbaseEdit dataSource={props.ds} dataField="a" />;
        """)[0]
        assert usage.data_source_version == "unknown"

    def test_component_force_update_is_not_v1_evidence(self, extractor):
        usages = _usages(extractor, """\
            import React from 'react';
            import { ArchbaseEdit } from '@archbase/react';
            export class Legacy extends React.Component<any> {
              refresh() {
                this.forceUpdate();
              }
              render() {
                return <ArchbaseEdit dataSource={this.props.ds} dataField="name" />;
              }
            }
        """)
        assert [(u.name, u.data_source_version) for u in usages] == [("ArchbaseEdit", "unknown")]

    def test_datasource_force_update_is_v1_evidence(self, extractor):
        usage = _usages(extractor, """\
            import { ArchbaseEdit } from '@archbase/react';
            export function F(props: any) {
              props.ds.forceUpdate();
              return <ArchbaseEdit dataSource={props.ds} dataField="a" />;
            }
        """)[0]
        assert usage.data_source_version == "v1"

    def test_unbound_usage_is_unknown(self, extractor):
        usage = _usages(extractor, """\
            import { ArchbaseDataSource, ArchbaseButton } from '@archbase/react';
            const ds = new ArchbaseDataSource('x');
            export const F = () => <ArchbaseButton onClick={() => ds.save()} />;
        """)[0]
        assert usage.has_data_source is False
        assert usage.data_source_version == "unknown"


# ---------------------------------------------------------------------------
# Issues
# ---------------------------------------------------------------------------
class TestIssues:
    def test_missing_deprecated_and_replaceable(self, extractor):
        usage = _usages(extractor, """\
            import { ArchbaseEdit } from '@archbase/react';
            export const F = () => <ArchbaseEdit dataField="a" value={v} forceUpdate />;
        """)[0]
        assert [i.type for i in usage.issues] == ["error", "suggestion", "warning"]
        assert usage.issues[0].message == "Missing required prop: dataSource"
        assert usage.issues[2].fix.startswith("Remove forceUpdate")
        assert all(i.line == usage.line for i in usage.issues)

    def test_grid_event_handler_rename(self, extractor):
        usage = _usages(extractor, """\
            import { ArchbaseDataGrid } from '@archbase/react';
            export const F = () => <ArchbaseDataGrid dataSource={ds} onRowClick={open} />;
        """)[0]
        assert len(usage.issues) == 1
        assert usage.issues[0].type == "warning"
        assert usage.issues[0].fix == "Rename onRowClick to onRowSelect"


# ---------------------------------------------------------------------------
# Pattern tags
# ---------------------------------------------------------------------------
class TestPatternTags:
    def test_hook_and_prop_tags_in_registry_order(self, extractor):
        usage = _usages(extractor, """\
            import React, { useState, useEffect, useRef } from 'react';
            import { ArchbaseEdit } from '@archbase/react';
            export function F() {
              const [value, setValue] = useState('');
              const input = useRef(null);
              useEffect(() => {}, []);
              return <ArchbaseEdit dataSource={ds} dataField="a" ref={input} loading />;
            }
        """)[0]
        assert list(usage.patterns) == ["stateful", "with-effects", "with-ref", "async-loading"]

    def test_memo_wrapper(self, extractor):
        usage = _usages(extractor, """\
            import React from 'react';
            import { ArchbaseEdit } from '@archbase/react';
            export const F = React.memo(() => <ArchbaseEdit dataSource={ds} dataField="a" />);
        """)[0]
        assert "memoized" in usage.patterns

    def test_memo_applied_by_name(self, extractor):
        usage = _usages(extractor, """\
            import { memo } from 'react';
            import { ArchbaseEdit } from '@archbase/react';
            function F() {
              return <ArchbaseEdit dataSource={ds} dataField="a" />;
            }
            export default memo(F);
        """)[0]
        assert "memoized" in usage.patterns

    def test_form_tags(self, extractor):
        usage = _usages(extractor, """\
            import { ArchbaseFormTemplate } from '@archbase/react';
            export const F = () => (
              <ArchbaseFormTemplate dataSource={ds} onValidationError={handleError} />
            );
        """)[0]
        assert list(usage.patterns) == ["form-with-datasource", "validation-with-feedback"]

    def test_inline_handler_is_not_feedback(self, extractor):
        usage = _usages(extractor, """\
            import { ArchbaseFormTemplate } from '@archbase/react';
            export const F = () => <ArchbaseFormTemplate dataSource={ds} onError={() => null} />;
        """)[0]
        assert "validation-with-feedback" not in usage.patterns

    def test_crud_with_remote_datasource(self, extractor):
        usage = _usages(extractor, """\
            import { ArchbaseRemoteDataSource, ArchbaseDataGrid } from '@archbase/react';
            const ds = new ArchbaseRemoteDataSource({ url: '/api' });
            export const F = () => <ArchbaseDataGrid dataSource={ds} />;
        """)[0]
        assert "crud-with-datagrid" in usage.patterns

    def test_custom_predicates(self):
        extractor = ComponentFactExtractor(tag_predicates=[("always", lambda ctx: True)])
        usage = extractor.extract_usages(parse(V1_USER_FORM))[0]
        assert usage.patterns == ("always",)


# ---------------------------------------------------------------------------
# File summary
# ---------------------------------------------------------------------------
class TestExtract:
    def test_summary_for_v1_form(self, extractor):
        analysis = extractor.extract(parse(V1_USER_FORM), "src/UserForm.tsx")
        assert analysis.file == "src/UserForm.tsx"
        assert analysis.data_source_version == "v1"
        assert analysis.validation_library == "none"
        assert analysis.complexity_score == 3
        assert analysis.complexity == "low"

    def test_declared_props(self, extractor):
        analysis = extractor.extract(parse(textwrap.dedent("""\
            interface UserFormProps {
              name: string;
              age?: number;
            }
            export function UserForm(props: UserFormProps) {
              return null;
            }
        """)))
        declared = [(p.name, p.type, p.is_required) for p in analysis.declared_props]
        assert declared == [("name", "string", True), ("age", "number", False)]

    def test_mixed_versions(self, extractor):
        analysis = extractor.extract(parse(textwrap.dedent("""\
            import { ArchbaseDataSource, ArchbaseRemoteDataSource } from '@archbase/react';
            const a = new ArchbaseDataSource('a');
            const b = new ArchbaseRemoteDataSource({ url: '/b' });
        """)))
        assert analysis.data_source_version == "both"

    def test_hooks_recorded_once(self, extractor):
        analysis = extractor.extract(parse(textwrap.dedent("""\
            import { useState, useEffect } from 'react';
            export function F() {
              const [a] = useState(1);
              const [b] = useState(2);
              useEffect(() => {}, []);
              return null;
            }
        """)))
        assert analysis.hooks == ["useState", "useEffect"]
        assert analysis.complexity_score == 2 + registry.SIDE_EFFECT_COMPLEXITY_WEIGHT

    def test_validation_library(self, extractor):
        yup_file = parse("import * as yup from 'yup';\n")
        custom = parse("const f = () => <ArchbaseFormTemplate validate={(v) => ({})} />;\n")
        assert extractor.validation_library(yup_file) == "yup"
        assert extractor.validation_library(custom) == "custom"
        assert extractor.validation_library(parse(V1_USER_FORM)) == "none"
