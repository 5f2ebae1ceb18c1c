#!/usr/bin/env python3
"""Realtime Scanner — incremental re-analysis of single changed files.

Keeps the last ProjectScanResult and folds individual file events into it
(add / change / unlink), reporting what changed for that file: issues
introduced or fixed, suggestions and pattern tags. File watching and
debouncing belong to the caller; this module only consumes events.

Usage:
    from archbase_tools.analysis.realtime_scanner import RealtimeScanner

    rt = RealtimeScanner()
    rt.start("./my-app")
    analysis = rt.handle_change("change", "src/UserForm.tsx")
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from archbase_tools.analysis import registry
from archbase_tools.analysis.models import ComponentUsageFact, ProjectScanResult
from archbase_tools.analysis.project_scanner import ProjectScanner
from archbase_tools.compat.path_utils import matches_any

logger = logging.getLogger("archbase.analysis.realtime_scanner")

FILE_EVENTS = ("add", "change", "unlink")


@dataclass
class RealtimeAnalysis:
    file: str
    event: str
    components: List[ComponentUsageFact] = field(default_factory=list)
    new_issues: int = 0
    fixed_issues: int = 0
    suggestions: List[str] = field(default_factory=list)
    patterns: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "file": self.file,
            "event": self.event,
            "components": [c.to_dict() for c in self.components],
            "newIssues": self.new_issues,
            "fixedIssues": self.fixed_issues,
            "suggestions": list(self.suggestions),
            "patterns": list(self.patterns),
        }
        if self.error is not None:
            data["error"] = self.error
        return data


def generate_suggestions(components: Sequence[ComponentUsageFact]) -> List[str]:
    suggestions = []

    v1 = [c for c in components if c.data_source_version == "v1"]
    if v1:
        suggestions.append(f"Consider migrating {len(v1)} component(s) to DataSource V2")

    if any(i.type == "error" for c in components for i in c.issues):
        suggestions.append("Fix missing required props for better reliability")

    if any(c.name == registry.FORM_TEMPLATE and "validation-with-feedback" not in c.patterns
           for c in components):
        suggestions.append("Add validation feedback to forms")

    counts = Counter(c.name for c in components)
    for name, count in counts.items():
        if count > registry.EXTRACTION_MIN_USAGES:
            suggestions.append(f"Consider extracting {name} into a reusable component")
    return suggestions


class RealtimeScanner:
    """Holds a scan result and keeps it current, one file event at a time."""

    def __init__(self, scanner: Optional[ProjectScanner] = None):
        self.scanner = scanner or ProjectScanner()
        self.last_result: Optional[ProjectScanResult] = None
        self.include_patterns: List[str] = []
        self.exclude_patterns: List[str] = []

    def start(self, root, include_patterns: Optional[Sequence[str]] = None,
              exclude_patterns: Optional[Sequence[str]] = None) -> ProjectScanResult:
        """Perform the initial full scan."""
        scan_cfg = self.scanner.config["scan"]
        self.include_patterns = list(include_patterns or scan_cfg["include_patterns"])
        self.exclude_patterns = list(exclude_patterns if exclude_patterns is not None
                                     else scan_cfg["exclude_patterns"])
        self.last_result = self.scanner.scan(root, self.include_patterns, self.exclude_patterns)
        return self.last_result

    def is_watched(self, rel_path: str) -> bool:
        return (matches_any(rel_path, self.include_patterns)
                and not matches_any(rel_path, self.exclude_patterns))

    def handle_change(self, event: str, rel_path: str) -> Optional[RealtimeAnalysis]:
        """Fold one file event into the held result.

        Returns None for files outside the watched globs.

        Raises:
            ValueError: for an unknown event type.
            RuntimeError: when start() has not been called.
        """
        if event not in FILE_EVENTS:
            raise ValueError(f"Unknown file event '{event}'; expected one of {FILE_EVENTS}")
        if self.last_result is None:
            raise RuntimeError("RealtimeScanner.start() must run before handling changes")

        rel_path = Path(rel_path).as_posix()
        if not self.is_watched(rel_path):
            logger.debug("Ignoring %s event for %s", event, rel_path)
            return None

        previous = self.last_result.components_in(rel_path)
        previous_issues = sum(len(c.issues) for c in previous)

        if event == "unlink":
            self.scanner.remove_file(self.last_result, rel_path)
            logger.info("File removed: %s (%d component(s))", rel_path, len(previous))
            return RealtimeAnalysis(file=rel_path, event=event, fixed_issues=previous_issues)

        current = self.scanner.refresh_file(self.last_result, rel_path)
        current_issues = sum(len(c.issues) for c in current)
        error = next((e["error"] for e in self.last_result.errors if e["file"] == rel_path), None)

        analysis = RealtimeAnalysis(
            file=rel_path,
            event=event,
            components=current,
            new_issues=max(0, current_issues - previous_issues),
            fixed_issues=max(0, previous_issues - current_issues),
            suggestions=generate_suggestions(current),
            patterns=list(dict.fromkeys(tag for c in current for tag in c.patterns)),
            error=error,
        )
        logger.info(
            "%s %s: %d component(s), +%d/-%d issue(s)",
            event, rel_path, len(current), analysis.new_issues, analysis.fixed_issues,
        )
        return analysis
