"""Version string helpers: normalization and PHP-style ``version_compare`` ordering."""

from __future__ import annotations

import re

_PREFIX_RE = re.compile(r"^(?:v|php)", re.IGNORECASE)
# Boundaries between digit and non-digit runs become separators ("1.0rc1" -> "1.0.rc.1").
_BOUNDARY_RE = re.compile(r"(?<=\d)(?=[^\d.])|(?<=[^\d.])(?=\d)")
_SEPARATOR_RE = re.compile(r"[-_+.]+")

# Special forms in ascending order; a plain number ranks between "rc" and "pl".
_SPECIAL_ORDER: dict[str, int] = {
    "dev": 0,
    "alpha": 1,
    "a": 1,
    "beta": 2,
    "b": 2,
    "rc": 3,
    "#": 4,
    "pl": 5,
    "p": 5,
}
_NUMBER_RANK = _SPECIAL_ORDER["#"]


def normalize_version(version: str) -> str:
    """Strip whitespace and ``v`` / ``php`` prefixes: ``"PHP8.1"`` -> ``"8.1"``."""
    return _PREFIX_RE.sub("", version.strip().lower())


def _canonical_parts(version: str) -> list[str]:
    spaced = _BOUNDARY_RE.sub(".", version.strip())
    return [p for p in _SEPARATOR_RE.split(spaced) if p]


def _rank(part: str) -> tuple[int, int]:
    if part.isdigit():
        return (_NUMBER_RANK, int(part))
    # Unknown words sort below "dev".
    return (_SPECIAL_ORDER.get(part.lower(), -1), 0)


def compare_versions(left: str, right: str) -> int:
    """Compare two version strings the way PHP's ``version_compare`` does.

    Returns ``-1``, ``0`` or ``1``.  ``"8.0" < "8.0.1"``, ``"1.0rc1" < "1.0"``
    and ``"4.1" < "4.10"``.
    """
    a_parts = _canonical_parts(left)
    b_parts = _canonical_parts(right)

    for a, b in zip(a_parts, b_parts):
        ra, rb = _rank(a), _rank(b)
        if ra != rb:
            return -1 if ra < rb else 1

    if len(a_parts) == len(b_parts):
        return 0

    # The longer version wins when its next part is a number; a trailing
    # special form ("rc", "beta", ...) makes it older than the bare release.
    longer_is_left = len(a_parts) > len(b_parts)
    extra = (a_parts if longer_is_left else b_parts)[min(len(a_parts), len(b_parts))]
    extra_rank = _rank(extra)[0]
    if extra_rank >= _NUMBER_RANK:
        return 1 if longer_is_left else -1
    return -1 if longer_is_left else 1


def version_lt(left: str, right: str) -> bool:
    return compare_versions(left, right) < 0
