"""Archbase Tools — analysis and migration tooling for Archbase React projects."""

__version__ = "0.1.0"
