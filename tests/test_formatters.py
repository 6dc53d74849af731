"""Tests for compatscan.formatters: rich text, JSON and porcelain output."""

from __future__ import annotations

import json

from compatscan.analysis.aggregator import Issue
from compatscan.analysis.effort import DEFAULT_EFFORT_RATES
from compatscan.analysis.runner import AnalysisRun
from compatscan.formatters import format_json, format_porcelain, format_rich, severity_rows


def _issue(rel: str, line: int, severity: str, **extra: str) -> Issue:
    return Issue(
        kind="removed_function",
        category="php_compatibility",
        severity=severity,
        title="Removed function: each()",
        description="Function each() has been removed",
        file=f"/project/{rel}",
        relative_path=rel,
        line=line,
        code_line="    while (list($k, $v) = each($arr)) {",
        rule_identifier="each",
        detection="structural",
        context_snippet={line: "    while (list($k, $v) = each($arr)) {"},
        **extra,  # type: ignore[arg-type]
    )


def _run(*issues: Issue) -> AnalysisRun:
    run = AnalysisRun(files=[], from_version="7.4", to_version="8.0")
    run.issues.extend(issues)
    run.files_analyzed = 2
    run.finalize(DEFAULT_EFFORT_RATES)
    return run


class TestFormatRich:
    def test_groups_by_file(self) -> None:
        run = _run(
            _issue("lib/db.php", 12, "critical", replacement="foreach"),
            _issue("lib/db.php", 30, "medium"),
            _issue("app.php", 3, "low"),
        )
        output = format_rich(run)
        assert "Range: PHP 7.4 → 8.0" in output
        assert "Files: 2 analysed, 0 skipped" in output
        assert output.index("app.php") < output.index("lib/db.php")
        assert output.count("lib/db.php") == 1
        assert "  ✗ 12 [critical] Removed function: each()" in output
        assert "      while (list($k, $v) = each($arr)) {" in output
        assert "      → foreach" in output
        assert "3 issues found, estimated effort 5.5h" in output

    def test_no_issues(self) -> None:
        output = format_rich(_run())
        assert "✓ No compatibility issues found" in output

    def test_platform_label_and_cancelled(self) -> None:
        run = AnalysisRun(files=[], platform="moodle", platform_from_version="3.9")
        run.cancelled = True
        output = format_rich(run)
        assert "Range: moodle (from 3.9)" in output
        assert "partial" in output

    def test_recommendation_shown_without_replacement(self) -> None:
        output = format_rich(_run(_issue("a.php", 1, "medium", recommendation="Use ===")))
        assert "→ Use ===" in output


class TestFormatJson:
    def test_structure(self) -> None:
        data = json.loads(format_json(_run(_issue("a.php", 4, "critical"))))
        assert data["from_version"] == "7.4"
        assert data["issues"][0]["type"] == "removed_function"
        assert data["issues"][0]["line"] == 4
        assert data["issues"][0]["snippet"] == {"4": "    while (list($k, $v) = each($arr)) {"}
        assert data["summary"]["total_issues"] == 1
        assert data["summary"]["by_severity"]["critical"] == 1
        assert data["summary"]["effort_hours"] == 4.0


class TestFormatPorcelain:
    def test_lines(self) -> None:
        run = _run(_issue("b.php", 9, "high"), _issue("a.php", 2, "critical"))
        assert format_porcelain(run).splitlines() == [
            "a.php:2:critical:removed_function:each",
            "b.php:9:high:removed_function:each",
        ]

    def test_empty(self) -> None:
        assert format_porcelain(_run()) == ""


class TestSeverityRows:
    def test_every_severity_in_order(self) -> None:
        rows = severity_rows(_run(_issue("a.php", 1, "low")))
        assert rows == [("critical", 0), ("high", 0), ("medium", 0), ("low", 1), ("info", 0)]
