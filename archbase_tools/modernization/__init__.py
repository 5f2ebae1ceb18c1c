"""Version migration for Archbase projects: rules and the rule engine."""
