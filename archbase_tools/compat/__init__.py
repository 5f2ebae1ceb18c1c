"""Archbase Tools cross-platform helpers.

Path normalisation, glob matching and file discovery, plus timezone-aware
timestamps. Uses only the Python standard library.
"""
from archbase_tools.compat.datetime_utils import utc_now, utc_now_iso  # noqa: F401
from archbase_tools.compat.path_utils import (  # noqa: F401
    discover_files,
    expand_braces,
    matches_any,
    to_relative_posix,
)
