#!/usr/bin/env python3
"""Configuration loader for Archbase Tools.

Settings live in ``args/archbase_config.yaml`` at the project root and are
merged over the built-in defaults below, section by section. A missing
file means "use the defaults"; a file that is not valid YAML, or whose
sections have the wrong shape, raises ConfigurationError before any
scan starts.

Fixed classification thresholds (effort bands, complexity bands, pattern
priority) are not configurable; see analysis/registry.py.

Usage:
    from archbase_tools.config import load_config

    cfg = load_config()
    include = cfg["scan"]["include_patterns"]
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from archbase_tools.errors import ConfigurationError

BASE_DIR = Path(__file__).resolve().parent.parent
CONFIG_PATH = BASE_DIR / "args" / "archbase_config.yaml"

DEFAULT_CONFIG: Dict[str, Any] = {
    "scan": {
        "include_patterns": ["**/*.{ts,tsx,js,jsx}"],
        "exclude_patterns": [
            "**/node_modules/**",
            "**/dist/**",
            "**/build/**",
            "**/.git/**",
        ],
    },
    "pattern_analysis": {
        "extra_exclude_patterns": ["**/*.test.*", "**/*.spec.*", "**/*.d.ts"],
    },
    "dependencies": {
        "recommended": [
            "@mantine/core",
            "@mantine/hooks",
            "@emotion/react",
            "react-query",
        ],
        "minimum_versions": {
            "@archbase/react": "2.0.0",
            "react": "18.0.0",
        },
    },
    "migration": {
        "backup": True,
        "backup_suffix": ".backup",
    },
    "reports": {
        "scan_output": "./archbase-scan-report.json",
        "analysis_output": "./archbase-pattern-analysis.json",
        "migration_output": "./migration-analysis.json",
        "batch_output": "./batch-migration-report.json",
    },
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Merge *override* into a copy of *base*, one nesting level per section."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        dotted = f"{prefix}{key}"
        if key in merged and isinstance(merged[key], dict):
            if not isinstance(value, dict):
                raise ConfigurationError(
                    f"Config section '{dotted}' must be a mapping", config_key=dotted
                )
            merged[key] = _merge(merged[key], value, prefix=f"{dotted}.")
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load YAML settings merged over DEFAULT_CONFIG.

    Raises:
        ConfigurationError: when the file exists but cannot be read or parsed.
    """
    path = Path(config_path) if config_path else CONFIG_PATH
    if not path.exists():
        return copy.deepcopy(DEFAULT_CONFIG)

    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Could not load config {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config {path} must contain a mapping at top level")

    return _merge(DEFAULT_CONFIG, data)


def split_patterns(value: Optional[str]):
    """Split a comma-separated CLI pattern option, dropping blanks."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def setup_logging(cfg: Dict[str, Any], verbose: bool = False) -> None:
    """Configure root logging from the ``logging`` section of *cfg*."""
    section = cfg.get("logging", {})
    level_name = "DEBUG" if verbose else str(section.get("level", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=section.get("format", DEFAULT_CONFIG["logging"]["format"]),
    )
