"""Effort estimation: severity histogram x per-severity hourly rates."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from compatscan.rules.models import SEVERITIES

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from compatscan.analysis.aggregator import Issue

DEFAULT_EFFORT_RATES: dict[str, float] = {
    "critical": 4.0,
    "high": 2.0,
    "medium": 1.0,
    "low": 0.5,
    "info": 0.1,
}

# Rate applied to a severity the rate table does not mention.
FALLBACK_RATE = 1.0


def severity_histogram(issues: Iterable[Issue]) -> dict[str, int]:
    """Count issues per severity; every known severity is present, unknown ones are ignored."""
    histogram = dict.fromkeys(SEVERITIES, 0)
    for issue in issues:
        if issue.severity in histogram:
            histogram[issue.severity] += 1
    return histogram


def category_histogram(issues: Iterable[Issue]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for issue in issues:
        counts[issue.category] = counts.get(issue.category, 0) + 1
    return counts


def estimate_effort(histogram: Mapping[str, int], rates: Mapping[str, float]) -> float:
    """Return ``sum(count * rate)`` in hours, rounded half-up to one decimal.

    >>> estimate_effort({"critical": 2, "info": 5}, {"critical": 4, "info": 0.1})
    8.5
    """
    hours = Decimal(0)
    for severity, count in histogram.items():
        rate = rates.get(severity, FALLBACK_RATE)
        hours += Decimal(count) * Decimal(str(rate))
    return float(hours.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
