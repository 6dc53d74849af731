"""Textual detection: run rule regexes over raw file text and map offsets to lines."""

from __future__ import annotations

import bisect
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from compatscan.rules.models import Rule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TextMatch:
    """One regex hit: the rule, its 1-based line and the character offset."""

    rule: Rule
    line: int
    offset: int


class LineIndex:
    """Sorted line-start offsets of a text, built once and binary-searched per lookup."""

    def __init__(self, text: str) -> None:
        starts = [0]
        pos = text.find("\n")
        while pos != -1:
            starts.append(pos + 1)
            pos = text.find("\n", pos + 1)
        self._starts = starts

    def __len__(self) -> int:
        return len(self._starts)

    def line_for(self, offset: int) -> int:
        """Return the 1-based line containing character *offset*."""
        if offset < 0:
            msg = f"offset must be non-negative, got {offset}"
            raise ValueError(msg)
        return bisect.bisect_right(self._starts, offset)


def split_lines(text: str) -> list[str]:
    """Split on ``\\n`` only, dropping a trailing ``\\r``.

    ``str.splitlines`` also breaks on form feeds and other separators, which
    would shift line numbers away from the ``\\n`` count used for offsets.
    """
    return [line[:-1] if line.endswith("\r") else line for line in text.split("\n")]


def match(text: str, rules: Iterable[Rule], *, index: LineIndex | None = None) -> list[TextMatch]:
    """Find every non-overlapping, case-insensitive match of each rule in *text*.

    Rules without a usable pattern are ignored.  An error raised while
    matching one rule is logged and only that rule is skipped.  Results are
    in ascending offset order (rule order breaks ties).
    """
    line_index = index if index is not None else LineIndex(text)
    matches: list[TextMatch] = []

    for rule in rules:
        pattern = rule.pattern
        if pattern is None:
            continue
        if not pattern.flags & re.IGNORECASE:
            pattern = re.compile(pattern.pattern, pattern.flags | re.IGNORECASE)
        try:
            found = [
                TextMatch(rule=rule, line=line_index.line_for(m.start()), offset=m.start())
                for m in pattern.finditer(text)
            ]
        except (re.error, RecursionError, MemoryError) as exc:
            logger.warning("Regex for rule '%s' failed, rule skipped: %s", rule.identifier, exc)
            continue
        matches.extend(found)

    matches.sort(key=lambda m: m.offset)
    return matches
