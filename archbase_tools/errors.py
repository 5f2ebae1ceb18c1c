#!/usr/bin/env python3
"""Archbase Tools — Structured Exception Hierarchy.

Every batch operation (project scan, pattern analysis, migration run)
catches these at the per-file boundary and attaches the message to the
result object it returns. Only ConfigurationError is allowed to escape a
batch, and it is raised before any file is read.

Usage:
    from archbase_tools.errors import SourceSyntaxError, RuleApplicationError

    raise SourceSyntaxError("Unexpected token", file_path="src/Form.tsx", line=12, column=4)
"""

from typing import Optional


class ArchbaseError(Exception):
    """Base exception for all archbase-tools errors.

    Attributes:
        file_path: Source file the error relates to (empty when not file-bound).
    """

    def __init__(self, message: str, file_path: str = ""):
        super().__init__(message)
        self.file_path = file_path


class SourceSyntaxError(ArchbaseError):
    """A source file could not be parsed into a syntax tree.

    Attributes:
        line: 1-based line of the first syntax error, if known.
        column: 0-based column of the first syntax error, if known.
    """

    def __init__(
        self,
        message: str,
        file_path: str = "",
        line: Optional[int] = None,
        column: Optional[int] = None,
    ):
        super().__init__(message, file_path=file_path)
        self.line = line
        self.column = column

    def __str__(self) -> str:
        base = super().__str__()
        where = self.file_path or "<source>"
        if self.line is not None:
            where = f"{where}:{self.line}:{self.column or 0}"
        return f"{where}: {base}"


class RuleApplicationError(ArchbaseError):
    """A migration rule failed on one file.

    The engine records the message and carries on with the next rule
    against the last successfully produced source.
    """

    def __init__(self, message: str, rule_id: str = "", file_path: str = ""):
        super().__init__(message, file_path=file_path)
        self.rule_id = rule_id


class ConfigurationError(ArchbaseError):
    """Missing or invalid configuration, options or project directory."""

    def __init__(self, message: str, config_key: str = ""):
        super().__init__(message)
        self.config_key = config_key
