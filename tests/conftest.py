#!/usr/bin/env python3
"""Shared pytest fixtures for the Archbase Tools test suite.

Project fixtures write small React/TypeScript trees under tmp_path so
scanner, analyzer and migration tests run against real files.
"""

import copy
import sys
import textwrap
from pathlib import Path

import pytest

# Ensure project root is on sys.path
BASE_DIR = Path(__file__).resolve().parent.parent
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from archbase_tools.config import DEFAULT_CONFIG  # noqa: E402


# ---------------------------------------------------------------------------
# Sample sources
# ---------------------------------------------------------------------------
V1_USER_FORM = textwrap.dedent("""\
    import React from 'react';
    import { ArchbaseDataSource, ArchbaseEdit } from '@archbase/react';

    export function UserForm() {
      const ds = new ArchbaseDataSource('users');
      return <ArchbaseEdit dataSource={ds} dataField="name" />;
    }
""")

V1_USER_FORM_WITH_REFRESH = textwrap.dedent("""\
    import React from 'react';
    import { ArchbaseDataSource, ArchbaseEdit } from '@archbase/react';

    export function UserForm() {
      const ds = new ArchbaseDataSource('users');
      const save = () => {
        ds.forceUpdate();
      };
      return <ArchbaseEdit dataSource={ds} dataField="name" onBlur={save} />;
    }
""")

V2_GRID_PAGE = textwrap.dedent("""\
    import React, { useState } from 'react';
    import { ArchbaseRemoteDataSource, ArchbaseDataGrid } from '@archbase/react';

    export default function UsersPage() {
      const [selected, setSelected] = useState(null);
      const ds = new ArchbaseRemoteDataSource({ url: '/api/users' });
      return <ArchbaseDataGrid dataSource={ds} onRowSelect={setSelected} />;
    }
""")

BROKEN_SOURCE = textwrap.dedent("""\
    import { ArchbaseEdit } from '@archbase/react';

    export function Broken() {
      return <ArchbaseEdit dataSource={ds} dataField="name" ;
    }
""")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def config():
    """A private copy of the built-in configuration."""
    return copy.deepcopy(DEFAULT_CONFIG)


@pytest.fixture
def write_project(tmp_path):
    """Return a helper that writes {relative path: source} under a project root."""

    def _write(files, root_name="app"):
        root = tmp_path / root_name
        root.mkdir(parents=True, exist_ok=True)
        for rel, text in files.items():
            target = root / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")
        return root

    return _write
