"""Analysis domain: structural extraction, text matching, aggregation, effort, orchestration."""

from compatscan.analysis.aggregator import (
    DETECTION_STRUCTURAL,
    DETECTION_TEXTUAL,
    Issue,
    IssueAggregator,
    applicable_platform_rules,
    build_snippet,
)
from compatscan.analysis.effort import (
    DEFAULT_EFFORT_RATES,
    category_histogram,
    estimate_effort,
    severity_histogram,
)
from compatscan.analysis.extractor import (
    CONSTRUCT_KINDS,
    CodeConstruct,
    extract,
    extract_constructs,
    parse_source,
)
from compatscan.analysis.matcher import LineIndex, TextMatch, match, split_lines
from compatscan.analysis.runner import AnalysisRun, FileResult, analyze_file, run_analysis

__all__ = [
    "CONSTRUCT_KINDS",
    "DEFAULT_EFFORT_RATES",
    "DETECTION_STRUCTURAL",
    "DETECTION_TEXTUAL",
    "AnalysisRun",
    "CodeConstruct",
    "FileResult",
    "Issue",
    "IssueAggregator",
    "LineIndex",
    "TextMatch",
    "analyze_file",
    "applicable_platform_rules",
    "build_snippet",
    "category_histogram",
    "estimate_effort",
    "extract",
    "extract_constructs",
    "match",
    "parse_source",
    "run_analysis",
    "severity_histogram",
    "split_lines",
]
