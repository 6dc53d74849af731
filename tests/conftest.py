"""Shared test fixtures for compatscan."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest

if TYPE_CHECKING:
    from pathlib import Path


def _write_hop(database: Path, from_version: str, to_version: str, data: dict[str, Any]) -> Path:
    """Write one version-transition rule file into *database*."""
    path = database / "php-changes" / f"{from_version}-to-{to_version}.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def _write_platform(database: Path, platform: str, functions: list[dict[str, Any]]) -> Path:
    """Write one platform rule file into *database*."""
    path = database / "platforms" / platform / "deprecated-functions.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"functions": functions}), encoding="utf-8")
    return path


@pytest.fixture()
def rule_db(tmp_path: Path) -> Path:
    """A four-version rule database ``A -> B -> C -> D`` using real version labels.

    Known versions are ``7.4, 8.0, 8.1, 8.2``; every hop removes one function
    and ``moodle`` has two platform rules.
    """
    database = tmp_path / "rules"
    _write_hop(
        database,
        "7.4",
        "8.0",
        {
            "removed_functions": [
                {"function": "each", "regex": r"\beach\s*\(", "severity": "critical"},
                {"function": "create_function", "regex": r"\bcreate_function\s*\("},
            ],
            "deprecated_features": [
                {
                    "feature": "real_cast",
                    "title": "(real) cast",
                    "regex": r"\(\s*real\s*\)",
                    "severity": "medium",
                }
            ],
            "behavior_changes": [],
            "new_features": [{"title": "match expression"}],
        },
    )
    _write_hop(
        database,
        "8.0",
        "8.1",
        {
            "removed_functions": [
                {"function": "mhash", "regex": r"\bmhash\s*\(", "severity": "high"},
            ],
            "deprecated_features": [],
            "behavior_changes": [
                {
                    "feature": "globals",
                    "title": "$GLOBALS write",
                    "regex": r"\$GLOBALS\s*=",
                    "recommendation": "Write single entries",
                }
            ],
        },
    )
    _write_hop(
        database,
        "8.1",
        "8.2",
        {
            "removed_functions": [
                {"function": "utf8_encode", "regex": r"\butf8_encode\s*\(", "severity": "high"},
            ],
            "deprecated_features": [
                {
                    "feature": "interpolation",
                    "title": "${} interpolation",
                    "regex": r"\$\{\w+\}",
                    "severity": "low",
                }
            ],
        },
    )
    _write_platform(
        database,
        "moodle",
        [
            {
                "function": "get_context_instance",
                "regex": r"\bget_context_instance\s*\(",
                "severity": "critical",
                "deprecated_since": "2.2",
                "removed_in": "2.9",
            },
            {
                "function": "print_error",
                "regex": r"\bprint_error\s*\(",
                "severity": "medium",
                "deprecated_since": "4.0",
            },
        ],
    )
    return database


@pytest.fixture()
def known_versions() -> tuple[str, ...]:
    """Version ordering matching :func:`rule_db`."""
    return ("7.4", "8.0", "8.1", "8.2")
