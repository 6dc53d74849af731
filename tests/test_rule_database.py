"""Tests for compatscan.rules.database: range composition, loading and validation."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest

from compatscan.rules.database import (
    DEFAULT_DATABASE_PATH,
    DEFAULT_KNOWN_VERSIONS,
    RuleDatabase,
    compile_rule_regex,
    parse_platform_rules,
    parse_version_rules,
)
from compatscan.rules.models import (
    BehaviorChangeRule,
    PlatformRuleSet,
    RemovedFunctionRule,
    VersionRuleSet,
)

if TYPE_CHECKING:
    from pathlib import Path


def _names(rules: VersionRuleSet) -> list[str]:
    return [r.identifier for r in rules.removed_functions]


# ---------------------------------------------------------------------------
# Range composition
# ---------------------------------------------------------------------------


class TestComposeVersionRules:
    def test_multi_hop_is_ordered_concatenation(
        self, rule_db: Path, known_versions: tuple[str, ...]
    ) -> None:
        db = RuleDatabase(rule_db, known_versions)
        composed = db.compose_version_rules("7.4", "8.2")
        assert _names(composed) == ["each", "create_function", "mhash", "utf8_encode"]
        assert [r.identifier for r in composed.deprecated_features] == [
            "real_cast",
            "interpolation",
        ]
        assert [r.identifier for r in composed.behavior_changes] == ["globals"]
        assert [f.title for f in composed.new_features] == ["match expression"]

    def test_single_hop(self, rule_db: Path, known_versions: tuple[str, ...]) -> None:
        db = RuleDatabase(rule_db, known_versions)
        assert _names(db.compose_version_rules("8.0", "8.1")) == ["mhash"]

    def test_two_hops_see_both_hops(self, rule_db: Path, known_versions: tuple[str, ...]) -> None:
        db = RuleDatabase(rule_db, known_versions)
        assert _names(db.compose_version_rules("8.0", "8.2")) == ["mhash", "utf8_encode"]

    def test_reverse_range_is_empty(self, rule_db: Path, known_versions: tuple[str, ...]) -> None:
        db = RuleDatabase(rule_db, known_versions)
        assert db.compose_version_rules("8.2", "7.4").is_empty()

    def test_same_version_is_empty(self, rule_db: Path, known_versions: tuple[str, ...]) -> None:
        db = RuleDatabase(rule_db, known_versions)
        assert db.compose_version_rules("7.4", "7.4").is_empty()

    def test_unknown_version_is_empty(
        self, rule_db: Path, known_versions: tuple[str, ...]
    ) -> None:
        db = RuleDatabase(rule_db, known_versions)
        assert db.compose_version_rules("5.6", "8.2").is_empty()
        assert db.compose_version_rules("7.4", "9.9").is_empty()

    def test_prefixed_versions_are_normalized(
        self, rule_db: Path, known_versions: tuple[str, ...]
    ) -> None:
        db = RuleDatabase(rule_db, known_versions)
        assert _names(db.compose_version_rules("PHP8.0", "v8.1")) == ["mhash"]

    def test_missing_hop_is_skipped(
        self,
        rule_db: Path,
        known_versions: tuple[str, ...],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        (rule_db / "php-changes" / "8.0-to-8.1.json").unlink()
        db = RuleDatabase(rule_db, known_versions)
        with caplog.at_level(logging.WARNING, logger="compatscan.rules.database"):
            composed = db.compose_version_rules("7.4", "8.2")
        assert _names(composed) == ["each", "create_function", "utf8_encode"]
        assert "8.0 -> 8.1" in caplog.text

    def test_malformed_hop_is_treated_as_missing(
        self, rule_db: Path, known_versions: tuple[str, ...]
    ) -> None:
        (rule_db / "php-changes" / "8.1-to-8.2.json").write_text("{not json", encoding="utf-8")
        db = RuleDatabase(rule_db, known_versions)
        assert _names(db.compose_version_rules("8.0", "8.2")) == ["mhash"]

    def test_range_is_cached_per_instance(
        self, rule_db: Path, known_versions: tuple[str, ...]
    ) -> None:
        db = RuleDatabase(rule_db, known_versions)
        first = db.compose_version_rules("7.4", "8.1")
        # Deleting the files does not affect an already composed range.
        for path in (rule_db / "php-changes").iterdir():
            path.unlink()
        assert db.compose_version_rules("7.4", "8.1") is first

    def test_instances_do_not_share_cache(
        self, rule_db: Path, known_versions: tuple[str, ...]
    ) -> None:
        RuleDatabase(rule_db, known_versions).compose_version_rules("7.4", "8.1")
        (rule_db / "php-changes" / "7.4-to-8.0.json").unlink()
        fresh = RuleDatabase(rule_db, known_versions)
        assert _names(fresh.compose_version_rules("7.4", "8.1")) == ["mhash"]

    def test_clear_cache_reloads(self, rule_db: Path, known_versions: tuple[str, ...]) -> None:
        db = RuleDatabase(rule_db, known_versions)
        db.compose_version_rules("7.4", "8.0")
        (rule_db / "php-changes" / "7.4-to-8.0.json").unlink()
        db.clear_cache()
        assert db.compose_version_rules("7.4", "8.0").is_empty()


class TestRangeHelpers:
    def test_is_valid_range(self, rule_db: Path, known_versions: tuple[str, ...]) -> None:
        db = RuleDatabase(rule_db, known_versions)
        assert db.is_valid_range("7.4", "8.2")
        assert not db.is_valid_range("8.2", "7.4")
        assert not db.is_valid_range("8.0", "8.0")
        assert not db.is_valid_range("5.6", "8.0")

    def test_available_transitions(self, rule_db: Path, known_versions: tuple[str, ...]) -> None:
        (rule_db / "php-changes" / "8.0-to-8.1.json").unlink()
        db = RuleDatabase(rule_db, known_versions)
        assert db.available_transitions() == [
            ("7.4", "8.0", True),
            ("8.0", "8.1", False),
            ("8.1", "8.2", True),
        ]

    def test_duplicate_known_versions_rejected(self, rule_db: Path) -> None:
        with pytest.raises(ValueError, match="unique"):
            RuleDatabase(rule_db, ["7.4", "8.0", "php8.0"])


# ---------------------------------------------------------------------------
# Platforms
# ---------------------------------------------------------------------------


class TestPlatformRules:
    def test_loads_platform(self, rule_db: Path, known_versions: tuple[str, ...]) -> None:
        db = RuleDatabase(rule_db, known_versions)
        rules = db.get_platform_rules("moodle")
        assert rules.platform == "moodle"
        assert [r.identifier for r in rules.functions] == ["get_context_instance", "print_error"]
        first = rules.functions[0]
        assert first.deprecated_since == "2.2"
        assert first.removed_in == "2.9"
        assert first.title == "Deprecated function: get_context_instance"
        assert "since version 2.2 and removed in 2.9" in first.description

    def test_platform_name_is_case_insensitive(
        self, rule_db: Path, known_versions: tuple[str, ...]
    ) -> None:
        db = RuleDatabase(rule_db, known_versions)
        assert db.get_platform_rules(" Moodle ") is db.get_platform_rules("moodle")

    def test_unknown_platform_is_empty(
        self,
        rule_db: Path,
        known_versions: tuple[str, ...],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        db = RuleDatabase(rule_db, known_versions)
        with caplog.at_level(logging.WARNING, logger="compatscan.rules.database"):
            rules = db.get_platform_rules("drupal")
        assert rules == PlatformRuleSet(platform="drupal")
        assert rules.is_empty()
        assert "drupal" in caplog.text

    def test_available_platforms(self, rule_db: Path, known_versions: tuple[str, ...]) -> None:
        (rule_db / "platforms" / "empty").mkdir()
        db = RuleDatabase(rule_db, known_versions)
        assert db.available_platforms() == ["moodle"]

    def test_available_platforms_without_directory(self, tmp_path: Path) -> None:
        assert RuleDatabase(tmp_path).available_platforms() == []


# ---------------------------------------------------------------------------
# Entry parsing and validation
# ---------------------------------------------------------------------------


class TestParseVersionRules:
    def test_removed_function_defaults(self) -> None:
        rules = parse_version_rules({"removed_functions": [{"function": "each"}]})
        rule = rules.removed_functions[0]
        assert isinstance(rule, RemovedFunctionRule)
        assert rule.severity == "critical"
        assert rule.title == "Removed function: each()"
        assert rule.description == "Function each() has been removed"
        assert rule.pattern is None

    def test_example_fields_are_mapped(self) -> None:
        rules = parse_version_rules(
            {
                "removed_functions": [
                    {
                        "function": "each",
                        "replacement": "foreach",
                        "example_old": "each($a)",
                        "example_new": "foreach ($a as $v)",
                    }
                ]
            }
        )
        rule = rules.removed_functions[0]
        assert rule.replacement == "foreach"
        assert rule.example_before == "each($a)"
        assert rule.example_after == "foreach ($a as $v)"

    def test_regex_is_compiled_case_insensitive(self) -> None:
        rules = parse_version_rules(
            {"removed_functions": [{"function": "each", "regex": r"\beach\s*\("}]}
        )
        pattern = rules.removed_functions[0].pattern
        assert pattern is not None
        assert pattern.search("EACH($arr)")

    def test_invalid_regex_keeps_rule_without_pattern(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="compatscan.rules.database"):
            rules = parse_version_rules(
                {"removed_functions": [{"function": "each", "regex": "each(("}]}
            )
        assert rules.removed_functions[0].identifier == "each"
        assert rules.removed_functions[0].pattern is None
        assert "invalid regex" in caplog.text

    def test_invalid_severity_falls_back(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="compatscan.rules.database"):
            rules = parse_version_rules(
                {"deprecated_features": [{"title": "x", "regex": "x", "severity": "urgent"}]}
            )
        assert rules.deprecated_features[0].severity == "high"
        assert "urgent" in caplog.text

    def test_severity_is_lowercased(self) -> None:
        rules = parse_version_rules(
            {"removed_functions": [{"function": "each", "severity": "HIGH"}]}
        )
        assert rules.removed_functions[0].severity == "high"

    def test_entry_without_function_is_skipped(self) -> None:
        rules = parse_version_rules(
            {"removed_functions": [{"regex": "x"}, "not a mapping", {"function": "each"}]}
        )
        assert _names(rules) == ["each"]

    def test_non_list_category_is_ignored(self) -> None:
        rules = parse_version_rules({"removed_functions": {"function": "each"}})
        assert rules.is_empty()

    def test_feature_identifier_fallbacks(self) -> None:
        rules = parse_version_rules(
            {
                "deprecated_features": [
                    {"feature": "real_cast", "title": "A", "regex": "a"},
                    {"id": "dyn_props", "title": "B", "regex": "b"},
                    {"title": "C", "regex": "c"},
                ]
            }
        )
        assert [r.identifier for r in rules.deprecated_features] == [
            "real_cast",
            "dyn_props",
            "C#2",
        ]

    def test_behavior_change_recommendation(self) -> None:
        rules = parse_version_rules(
            {
                "behavior_changes": [
                    {"title": "cmp", "regex": "==", "recommendation": "Use ==="},
                ]
            }
        )
        rule = rules.behavior_changes[0]
        assert isinstance(rule, BehaviorChangeRule)
        assert rule.severity == "medium"
        assert rule.recommendation == "Use ==="

    def test_rule_sets_add_in_order(self) -> None:
        first = parse_version_rules({"removed_functions": [{"function": "a"}]})
        second = parse_version_rules({"removed_functions": [{"function": "b"}]})
        assert _names(first + second) == ["a", "b"]
        assert (first + second).counts()["removed_functions"] == 2


class TestParsePlatformRules:
    def test_description_without_removed_in(self) -> None:
        rules = parse_platform_rules(
            "wordpress", {"functions": [{"function": "like_escape", "deprecated_since": "4.0"}]}
        )
        assert rules.functions[0].description == (
            "Function like_escape is deprecated since version 4.0"
        )
        assert rules.functions[0].removed_in is None

    def test_explicit_description_wins(self) -> None:
        rules = parse_platform_rules(
            "wordpress", {"functions": [{"function": "f", "description": "custom"}]}
        )
        assert rules.functions[0].description == "custom"


class TestCompileRuleRegex:
    def test_empty_is_none(self) -> None:
        assert compile_rule_regex(None, "ctx") is None
        assert compile_rule_regex("", "ctx") is None

    def test_invalid_is_none(self) -> None:
        assert compile_rule_regex("[unclosed", "ctx") is None


class TestBundledDatabase:
    def test_every_hop_exists(self) -> None:
        db = RuleDatabase()
        assert db.database_path == DEFAULT_DATABASE_PATH
        assert db.known_versions == DEFAULT_KNOWN_VERSIONS
        assert all(present for _, _, present in db.available_transitions())

    def test_bundled_files_are_valid_json(self) -> None:
        for path in DEFAULT_DATABASE_PATH.rglob("*.json"):
            assert isinstance(json.loads(path.read_text(encoding="utf-8")), dict), path

    def test_bundled_regexes_compile(self) -> None:
        db = RuleDatabase()
        composed = db.compose_version_rules("7.2", "8.3")
        for rule in (
            composed.removed_functions + composed.deprecated_features + composed.behavior_changes
        ):
            assert rule.regex is None or rule.pattern is not None, rule.identifier

    def test_bundled_platforms(self) -> None:
        db = RuleDatabase()
        assert db.available_platforms() == ["moodle", "wordpress"]
        for platform in db.available_platforms():
            assert all(r.pattern is not None for r in db.get_platform_rules(platform).functions)

    def test_each_removed_in_php8(self) -> None:
        composed = RuleDatabase().compose_version_rules("7.4", "8.0")
        assert "each" in _names(composed)
