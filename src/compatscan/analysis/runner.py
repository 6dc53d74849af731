"""Analysis orchestrator: compose rules once, analyse files in parallel, fold results."""

from __future__ import annotations

import logging
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from compatscan.analysis.aggregator import Issue, IssueAggregator
from compatscan.analysis.effort import (
    DEFAULT_EFFORT_RATES,
    category_histogram,
    estimate_effort,
    severity_histogram,
)
from compatscan.analysis.extractor import extract, parse_source
from compatscan.analysis.matcher import LineIndex, match, split_lines
from compatscan.rules.models import PlatformRuleSet, VersionRuleSet

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from compatscan.infrastructure.scanner import FileEntry
    from compatscan.rules.database import RuleDatabase

logger = logging.getLogger(__name__)


@dataclass
class FileResult:
    """Outcome of analysing one file."""

    relative_path: str
    issues: list[Issue]
    constructs: int = 0
    parsed: bool = False


@dataclass
class AnalysisRun:
    """Per-run state, filled in as files complete."""

    files: list[FileEntry]
    from_version: str | None = None
    to_version: str | None = None
    platform: str | None = None
    platform_from_version: str | None = None
    version_rules: VersionRuleSet = field(default_factory=VersionRuleSet)
    platform_rules: PlatformRuleSet | None = None
    issues: list[Issue] = field(default_factory=list)
    files_analyzed: int = 0
    files_skipped: int = 0
    cancelled: bool = False
    severity_counts: dict[str, int] = field(default_factory=dict)
    category_counts: dict[str, int] = field(default_factory=dict)
    effort_hours: float = 0.0
    elapsed_ms: float = 0.0

    def add(self, result: FileResult) -> None:
        """Fold one file's issues into the run (single merge point)."""
        self.issues.extend(result.issues)
        self.files_analyzed += 1

    def finalize(self, rates: Mapping[str, float], *, sort_by_path: bool = True) -> None:
        if sort_by_path:
            # Stable: each file keeps its own line/detection order.
            self.issues.sort(key=lambda i: i.relative_path)
        self.severity_counts = severity_histogram(self.issues)
        self.category_counts = category_histogram(self.issues)
        self.effort_hours = estimate_effort(self.severity_counts, rates)

    def summary(self) -> dict[str, object]:
        return {
            "total_issues": len(self.issues),
            "by_severity": dict(self.severity_counts),
            "by_category": dict(self.category_counts),
            "files_total": len(self.files),
            "files_analyzed": self.files_analyzed,
            "files_skipped": self.files_skipped,
            "cancelled": self.cancelled,
            "effort_hours": self.effort_hours,
            "elapsed_ms": round(self.elapsed_ms, 1),
        }


def analyze_file(entry: FileEntry, aggregator: IssueAggregator) -> FileResult | None:
    """Analyse one file against shared, read-only rules.

    Returns ``None`` when the file cannot be read.
    """
    try:
        raw = entry.absolute_path.read_bytes()
    except OSError as exc:
        logger.warning("Cannot read file %s: %s", entry.relative_path, exc)
        return None

    text = raw.decode("utf-8", errors="replace")
    lines = split_lines(text)

    tree = parse_source(raw)
    constructs = extract(tree, str(entry.absolute_path))
    text_matches = match(text, aggregator.text_rules, index=LineIndex(text))

    issues = aggregator.aggregate(
        str(entry.absolute_path),
        text,
        lines,
        constructs,
        text_matches,
        relative_path=entry.relative_path,
    )
    logger.debug(
        "%s: %d constructs, %d text matches, %d issues",
        entry.relative_path,
        len(constructs),
        len(text_matches),
        len(issues),
    )
    return FileResult(
        relative_path=entry.relative_path,
        issues=issues,
        constructs=len(constructs),
        parsed=tree is not None,
    )


def _run_pool(
    run: AnalysisRun,
    aggregator: IssueAggregator,
    workers: int,
    deadline: float | None,
) -> None:
    with ThreadPoolExecutor(max_workers=max(1, workers)) as ex:
        paths: dict[Future[FileResult | None], str] = {
            ex.submit(analyze_file, entry, aggregator): entry.relative_path
            for entry in run.files
        }
        pending = set(paths)
        while pending:
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                not_started = [f for f in pending if f.cancel()]
                if not_started:
                    run.cancelled = True
                    logger.warning(
                        "Run deadline reached: %d file(s) not analysed", len(not_started)
                    )
                # Files already running finish and are kept.
                pending -= set(not_started)
                remaining = None
            done, pending = wait(pending, timeout=remaining, return_when=FIRST_COMPLETED)
            for fut in done:
                try:
                    result = fut.result()
                except Exception as exc:
                    logger.warning("Analysis of %s failed: %s", paths[fut], exc)
                    result = None
                if result is None:
                    run.files_skipped += 1
                else:
                    run.add(result)


def run_analysis(
    files: Sequence[FileEntry],
    database: RuleDatabase,
    *,
    from_version: str | None = None,
    to_version: str | None = None,
    platform: str | None = None,
    platform_from_version: str | None = None,
    rates: Mapping[str, float] | None = None,
    workers: int = 4,
    timeout: float | None = None,
    context_lines: int = 2,
    sort_by_path: bool = True,
) -> AnalysisRun:
    """Run a full analysis over *files*.

    Rules are composed once, before any file is analysed; every worker then
    shares them read-only.  *timeout* (seconds) stops scheduling of files
    not yet started; completed files keep their issues.
    """
    start = time.monotonic()
    deadline = start + timeout if timeout is not None else None
    run = AnalysisRun(
        files=list(files),
        from_version=from_version,
        to_version=to_version,
        platform=platform,
        platform_from_version=platform_from_version,
    )

    if from_version and to_version:
        run.version_rules = database.compose_version_rules(from_version, to_version)
        if run.version_rules.is_empty():
            logger.warning("No version change data found for %s -> %s", from_version, to_version)
    if platform and platform != "generic":
        run.platform_rules = database.get_platform_rules(platform)

    aggregator = IssueAggregator(
        run.version_rules,
        run.platform_rules,
        platform_from_version=platform_from_version,
        context_lines=context_lines,
    )
    logger.info(
        "Analysing %d files with %d rules (%s -> %s, platform=%s)",
        len(run.files),
        len(aggregator.text_rules),
        from_version,
        to_version,
        platform or "none",
    )

    if run.files:
        _run_pool(run, aggregator, workers, deadline)

    run.finalize(rates if rates is not None else DEFAULT_EFFORT_RATES, sort_by_path=sort_by_path)
    run.elapsed_ms = (time.monotonic() - start) * 1000
    logger.info(
        "Found %d issues in %d files (%d skipped)",
        len(run.issues),
        run.files_analyzed,
        run.files_skipped,
    )
    return run
