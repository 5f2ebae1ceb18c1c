"""Static analysis of Archbase React projects: usage facts, scans and patterns."""
