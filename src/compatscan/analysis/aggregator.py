"""Issue aggregation: fuse structural and textual detections for one file into ordered issues."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from compatscan.analysis.matcher import match
from compatscan.rules.models import (
    CATEGORY_PLATFORM,
    CATEGORY_VERSION,
    BehaviorChangeRule,
    DeprecatedFeatureRule,
    PlatformDeprecatedRule,
    PlatformRuleSet,
    RemovedFunctionRule,
    VersionRuleSet,
)
from compatscan.rules.versions import version_lt

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from compatscan.analysis.extractor import CodeConstruct
    from compatscan.analysis.matcher import TextMatch
    from compatscan.rules.models import Rule

logger = logging.getLogger(__name__)

DETECTION_STRUCTURAL = "structural"
DETECTION_TEXTUAL = "textual"

_DETECTION_ORDER = {DETECTION_STRUCTURAL: 0, DETECTION_TEXTUAL: 1}


@dataclass(frozen=True)
class Issue:
    """A single reported compatibility problem."""

    kind: str  # removed_function | deprecated_feature | behavior_change | ...
    category: str  # php_compatibility | platform_compatibility
    severity: str
    title: str
    description: str
    file: str
    relative_path: str
    line: int
    code_line: str
    rule_identifier: str
    detection: str  # structural | textual
    context_snippet: dict[int, str] = field(default_factory=dict)
    replacement: str | None = None
    example_before: str | None = None
    example_after: str | None = None
    recommendation: str | None = None
    deprecated_since: str | None = None
    removed_in: str | None = None
    platform: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "category": self.category,
            "severity": self.severity,
            "title": self.title,
            "description": self.description,
            "file": self.file,
            "relative_path": self.relative_path,
            "line": self.line,
            "code": self.code_line,
            "snippet": {str(k): v for k, v in self.context_snippet.items()},
            "rule": self.rule_identifier,
            "detection": self.detection,
            "replacement": self.replacement,
            "example_old": self.example_before,
            "example_new": self.example_after,
            "recommendation": self.recommendation,
            "deprecated_since": self.deprecated_since,
            "removed_in": self.removed_in,
            "platform": self.platform,
        }


def build_snippet(lines: Sequence[str], line: int, context: int = 2) -> dict[int, str]:
    """Return ``{line_no: text}`` for *context* lines around *line*, clamped to the file."""
    if not lines:
        return {}
    start = max(1, line - context)
    end = min(len(lines), line + context)
    return {n: lines[n - 1] for n in range(start, end + 1)}


def applicable_platform_rules(
    platform_rules: PlatformRuleSet | None, platform_from_version: str | None
) -> tuple[PlatformDeprecatedRule, ...]:
    """Drop platform rules already removed before *platform_from_version*."""
    if platform_rules is None:
        return ()
    if not platform_from_version:
        return platform_rules.functions
    kept: list[PlatformDeprecatedRule] = []
    for rule in platform_rules.functions:
        if rule.removed_in and version_lt(rule.removed_in, platform_from_version):
            logger.debug(
                "Platform rule '%s' removed in %s, before %s: skipped",
                rule.identifier,
                rule.removed_in,
                platform_from_version,
            )
            continue
        kept.append(rule)
    return tuple(kept)


class IssueAggregator:
    """Turns one file's constructs and text matches into ordered, deduplicated issues.

    Holds only the immutable rule sets, so a single instance can be shared by
    any number of worker threads.
    """

    def __init__(
        self,
        version_rules: VersionRuleSet,
        platform_rules: PlatformRuleSet | None = None,
        *,
        platform_from_version: str | None = None,
        context_lines: int = 2,
    ) -> None:
        self.version_rules = version_rules
        self.platform = platform_rules.platform if platform_rules is not None else None
        self.platform_functions = applicable_platform_rules(platform_rules, platform_from_version)
        self.context_lines = context_lines

    @property
    def text_rules(self) -> tuple[Rule, ...]:
        """All rules the textual matcher must run for this aggregator."""
        return (
            self.version_rules.removed_functions
            + self.version_rules.deprecated_features
            + self.version_rules.behavior_changes
            + self.platform_functions
        )

    # -- issue construction ----------------------------------------------------

    def _issue(
        self,
        rule: Rule,
        *,
        file: str,
        relative_path: str,
        lines: Sequence[str],
        line: int,
        detection: str,
    ) -> Issue:
        code_line = lines[line - 1] if 0 < line <= len(lines) else ""
        is_platform = isinstance(rule, PlatformDeprecatedRule)
        return Issue(
            kind=rule.kind,
            category=CATEGORY_PLATFORM if is_platform else CATEGORY_VERSION,
            severity=rule.severity,
            title=rule.title,
            description=rule.description,
            file=file,
            relative_path=relative_path,
            line=line,
            code_line=code_line,
            rule_identifier=rule.identifier,
            detection=detection,
            context_snippet=build_snippet(lines, line, self.context_lines),
            replacement=rule.replacement,
            example_before=rule.example_before,
            example_after=rule.example_after,
            recommendation=getattr(rule, "recommendation", None),
            deprecated_since=getattr(rule, "deprecated_since", None),
            removed_in=getattr(rule, "removed_in", None),
            platform=self.platform if is_platform else None,
        )

    # -- main entry point ------------------------------------------------------

    def aggregate(
        self,
        file: str,
        raw_text: str,
        lines: Sequence[str],
        constructs: Iterable[CodeConstruct],
        text_matches: Iterable[TextMatch] | None = None,
        *,
        relative_path: str | None = None,
    ) -> list[Issue]:
        """Merge detections for one file.

        Removed functions are found structurally first; a textual hit for the
        same rule on a line that already has a structural issue is dropped.
        Everything else is textual only, and each match is its own issue.
        The result is ordered by line, then structural before textual.

        When *text_matches* is ``None`` the matcher is run over *raw_text*
        with :attr:`text_rules`.
        """
        rel = relative_path if relative_path is not None else file
        if text_matches is None:
            text_matches = match(raw_text, self.text_rules)
        issues: list[Issue] = []
        # (line, lowercased name) of removed functions already reported for
        # this file, so one function listed in two hops or found by both
        # passes is reported once.  Other rules report every match.
        seen: set[tuple[int, str]] = set()

        def add(rule: Rule, line: int, detection: str) -> None:
            key = None
            if isinstance(rule, RemovedFunctionRule):
                key = (line, rule.identifier.lower())
                if key in seen:
                    return
            try:
                issues.append(
                    self._issue(
                        rule,
                        file=file,
                        relative_path=rel,
                        lines=lines,
                        line=line,
                        detection=detection,
                    )
                )
            except (TypeError, ValueError, IndexError) as exc:
                logger.warning(
                    "Cannot build issue for rule '%s' at %s:%d: %s",
                    rule.identifier,
                    rel,
                    line,
                    exc,
                )
                return
            if key is not None:
                seen.add(key)

        # Step 1: structural removed-function detections.
        by_name: dict[str, list[CodeConstruct]] = {}
        for construct in constructs:
            by_name.setdefault(construct.name.lower(), []).append(construct)
        for removed in self.version_rules.removed_functions:
            for construct in by_name.get(removed.identifier.lower(), ()):
                add(removed, construct.line, DETECTION_STRUCTURAL)

        # Steps 2-4: textual detections (platform rules already filtered).
        for m in text_matches:
            rule = m.rule
            if isinstance(rule, PlatformDeprecatedRule) and rule not in self.platform_functions:
                continue
            if not isinstance(
                rule,
                (
                    RemovedFunctionRule,
                    DeprecatedFeatureRule,
                    BehaviorChangeRule,
                    PlatformDeprecatedRule,
                ),
            ):
                logger.warning("Unknown rule type %s ignored", type(rule).__name__)
                continue
            add(rule, m.line, DETECTION_TEXTUAL)

        # Step 5: stable sort keeps rule order within the same line and detection.
        issues.sort(key=lambda i: (i.line, _DETECTION_ORDER[i.detection]))
        return issues
