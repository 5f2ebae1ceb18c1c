"""Syntax-tree parsing for React/TypeScript component sources."""
