"""Output formatters for an analysis run: human text, JSON, and porcelain."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from compatscan.rules.models import SEVERITIES

if TYPE_CHECKING:
    from compatscan.analysis.runner import AnalysisRun

_SEVERITY_MARK = {
    "critical": "✗",
    "high": "✗",
    "medium": "!",
    "low": "·",
    "info": "·",
}


def _range_label(run: AnalysisRun) -> str:
    parts: list[str] = []
    if run.from_version and run.to_version:
        parts.append(f"PHP {run.from_version} → {run.to_version}")
    if run.platform:
        label = run.platform
        if run.platform_from_version:
            label += f" (from {run.platform_from_version})"
        parts.append(label)
    return ", ".join(parts) or "no rules selected"


def format_rich(run: AnalysisRun) -> str:
    """Format a run as human-readable text grouped by file.

    Example::

        Range: PHP 7.4 → 8.0
        Files: 12 analysed, 0 skipped

        lib/db.php
          ✗ 12 [critical] Removed function: each()
              while (list($k, $v) = each($arr)) {
              → Use foreach

        3 issues found, estimated effort 9.0h
    """
    lines: list[str] = [
        f"Range: {_range_label(run)}",
        f"Files: {run.files_analyzed} analysed, {run.files_skipped} skipped",
    ]
    if run.cancelled:
        lines.append("Run deadline reached: results are partial")
    lines.append("")

    current_file: str | None = None
    for issue in run.issues:
        if issue.relative_path != current_file:
            if current_file is not None:
                lines.append("")
            current_file = issue.relative_path
            lines.append(current_file)
        mark = _SEVERITY_MARK.get(issue.severity, "·")
        lines.append(f"  {mark} {issue.line} [{issue.severity}] {issue.title}")
        code = issue.code_line.strip()
        if code:
            lines.append(f"      {code}")
        if issue.replacement:
            lines.append(f"      → {issue.replacement}")
        elif issue.recommendation:
            lines.append(f"      → {issue.recommendation}")

    if run.issues:
        lines.append("")
        lines.append(
            f"{len(run.issues)} issues found, estimated effort {run.effort_hours:.1f}h"
        )
    else:
        lines.append("✓ No compatibility issues found")

    return "\n".join(lines)


def format_json(run: AnalysisRun) -> str:
    """Format a run as JSON with ``issues`` and ``summary``."""
    output: dict[str, object] = {
        "from_version": run.from_version,
        "to_version": run.to_version,
        "platform": run.platform,
        "platform_from_version": run.platform_from_version,
        "issues": [issue.to_dict() for issue in run.issues],
        "summary": run.summary(),
    }
    return json.dumps(output, indent=2, ensure_ascii=False)


def format_porcelain(run: AnalysisRun) -> str:
    """One line per issue: ``relative_path:line:severity:type:rule``.

    Returns an empty string when there are no issues.
    """
    return "\n".join(
        f"{i.relative_path}:{i.line}:{i.severity}:{i.kind}:{i.rule_identifier}"
        for i in run.issues
    )


def severity_rows(run: AnalysisRun) -> list[tuple[str, int]]:
    """Severity histogram rows in severity order (for tables)."""
    return [(sev, run.severity_counts.get(sev, 0)) for sev in SEVERITIES]
