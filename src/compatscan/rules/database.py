"""Rule database: load versioned JSON rule files and compose them over a version range."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from compatscan.rules.models import (
    VALID_SEVERITIES,
    BehaviorChangeRule,
    DeprecatedFeatureRule,
    NewFeature,
    PlatformDeprecatedRule,
    PlatformRuleSet,
    RemovedFunctionRule,
    VersionRuleSet,
)
from compatscan.rules.versions import normalize_version

logger = logging.getLogger(__name__)

DEFAULT_KNOWN_VERSIONS: tuple[str, ...] = ("7.2", "7.3", "7.4", "8.0", "8.1", "8.2", "8.3")
DEFAULT_DATABASE_PATH = Path(__file__).resolve().parent.parent / "data"

_VERSION_DIR = "php-changes"
_PLATFORM_DIR = "platforms"
_PLATFORM_FILE = "deprecated-functions.json"

# ---------------------------------------------------------------------------
# Entry parsing
# ---------------------------------------------------------------------------


def _opt_str(entry: dict[str, Any], key: str) -> str | None:
    value = entry.get(key)
    if value is None or value == "":
        return None
    return str(value)


def _severity(entry: dict[str, Any], default: str, context: str) -> str:
    raw = entry.get("severity")
    if raw is None:
        return default
    severity = str(raw).lower()
    if severity not in VALID_SEVERITIES:
        logger.warning(
            "%s: invalid severity '%s', using '%s' (expected one of %s)",
            context,
            raw,
            default,
            sorted(VALID_SEVERITIES),
        )
        return default
    return severity


def compile_rule_regex(regex: str | None, context: str) -> re.Pattern[str] | None:
    """Compile a rule regex case-insensitively, or return ``None`` when absent or invalid."""
    if not regex:
        return None
    try:
        return re.compile(regex, re.IGNORECASE)
    except (re.error, RecursionError, OverflowError) as exc:
        logger.warning("%s: invalid regex %r skipped: %s", context, regex, exc)
        return None


def _parse_removed_function(entry: dict[str, Any], context: str) -> RemovedFunctionRule | None:
    name = entry.get("function")
    if not isinstance(name, str) or not name.strip():
        logger.warning("%s: removed function entry without 'function' skipped", context)
        return None
    name = name.strip()
    ctx = f"{context} removed function '{name}'"
    regex = _opt_str(entry, "regex")
    return RemovedFunctionRule(
        identifier=name,
        severity=_severity(entry, "critical", ctx),
        title=_opt_str(entry, "title") or f"Removed function: {name}()",
        description=_opt_str(entry, "description") or f"Function {name}() has been removed",
        regex=regex,
        pattern=compile_rule_regex(regex, ctx),
        replacement=_opt_str(entry, "replacement"),
        example_before=_opt_str(entry, "example_old"),
        example_after=_opt_str(entry, "example_new"),
    )


def _parse_deprecated_feature(
    entry: dict[str, Any], context: str, index: int
) -> DeprecatedFeatureRule:
    title = _opt_str(entry, "title") or "Deprecated feature"
    identifier = _opt_str(entry, "feature") or _opt_str(entry, "id") or f"{title}#{index}"
    ctx = f"{context} deprecated feature '{identifier}'"
    regex = _opt_str(entry, "regex")
    if regex is None:
        logger.debug("%s: no regex, rule is inert", ctx)
    return DeprecatedFeatureRule(
        identifier=identifier,
        severity=_severity(entry, "high", ctx),
        title=title,
        description=_opt_str(entry, "description") or "",
        regex=regex,
        pattern=compile_rule_regex(regex, ctx),
        replacement=_opt_str(entry, "replacement"),
        example_before=_opt_str(entry, "example_old"),
        example_after=_opt_str(entry, "example_new"),
    )


def _parse_behavior_change(entry: dict[str, Any], context: str, index: int) -> BehaviorChangeRule:
    title = _opt_str(entry, "title") or "Behavior change"
    identifier = _opt_str(entry, "feature") or _opt_str(entry, "id") or f"{title}#{index}"
    ctx = f"{context} behavior change '{identifier}'"
    regex = _opt_str(entry, "regex")
    return BehaviorChangeRule(
        identifier=identifier,
        severity=_severity(entry, "medium", ctx),
        title=title,
        description=_opt_str(entry, "description") or "",
        regex=regex,
        pattern=compile_rule_regex(regex, ctx),
        replacement=_opt_str(entry, "replacement"),
        example_before=_opt_str(entry, "example_old"),
        example_after=_opt_str(entry, "example_new"),
        recommendation=_opt_str(entry, "recommendation"),
    )


def _parse_platform_function(
    entry: dict[str, Any], context: str
) -> PlatformDeprecatedRule | None:
    name = entry.get("function")
    if not isinstance(name, str) or not name.strip():
        logger.warning("%s: platform entry without 'function' skipped", context)
        return None
    name = name.strip()
    ctx = f"{context} function '{name}'"
    deprecated_since = _opt_str(entry, "deprecated_since")
    removed_in = _opt_str(entry, "removed_in")
    description = f"Function {name} is deprecated since version {deprecated_since or 'unknown'}"
    if removed_in is not None:
        description += f" and removed in {removed_in}"
    regex = _opt_str(entry, "regex")
    return PlatformDeprecatedRule(
        identifier=name,
        severity=_severity(entry, "high", ctx),
        title=f"Deprecated function: {name}",
        description=_opt_str(entry, "description") or description,
        regex=regex,
        pattern=compile_rule_regex(regex, ctx),
        replacement=_opt_str(entry, "replacement"),
        example_before=_opt_str(entry, "example_old"),
        example_after=_opt_str(entry, "example_new"),
        deprecated_since=deprecated_since,
        removed_in=removed_in,
    )


def _entries(data: dict[str, Any], key: str, context: str) -> list[dict[str, Any]]:
    raw = data.get(key, [])
    if not isinstance(raw, list):
        logger.warning("%s: '%s' must be a list, ignored", context, key)
        return []
    entries: list[dict[str, Any]] = []
    for idx, item in enumerate(raw):
        if not isinstance(item, dict):
            logger.warning("%s: %s[%d] must be a mapping, skipped", context, key, idx)
            continue
        entries.append(item)
    return entries


def parse_version_rules(data: dict[str, Any], context: str = "rules") -> VersionRuleSet:
    """Build a validated :class:`VersionRuleSet` from one decoded transition file."""
    removed: list[RemovedFunctionRule] = []
    for entry in _entries(data, "removed_functions", context):
        rule = _parse_removed_function(entry, context)
        if rule is not None:
            removed.append(rule)

    deprecated = [
        _parse_deprecated_feature(entry, context, idx)
        for idx, entry in enumerate(_entries(data, "deprecated_features", context))
    ]
    behavior = [
        _parse_behavior_change(entry, context, idx)
        for idx, entry in enumerate(_entries(data, "behavior_changes", context))
    ]
    new_features = [
        NewFeature(
            title=_opt_str(entry, "title") or _opt_str(entry, "feature") or "New feature",
            description=_opt_str(entry, "description") or "",
        )
        for entry in _entries(data, "new_features", context)
    ]

    return VersionRuleSet(
        removed_functions=tuple(removed),
        deprecated_features=tuple(deprecated),
        behavior_changes=tuple(behavior),
        new_features=tuple(new_features),
    )


def parse_platform_rules(
    platform: str, data: dict[str, Any], context: str = "platform"
) -> PlatformRuleSet:
    """Build a validated :class:`PlatformRuleSet` from a decoded platform file."""
    functions: list[PlatformDeprecatedRule] = []
    for entry in _entries(data, "functions", context):
        rule = _parse_platform_function(entry, context)
        if rule is not None:
            functions.append(rule)
    return PlatformRuleSet(platform=platform, functions=tuple(functions))


def _read_json(path: Path) -> dict[str, Any] | None:
    """Read a JSON object, returning ``None`` when missing, unreadable or malformed."""
    if not path.is_file():
        return None
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Cannot read rule file %s: %s", path, exc)
        return None
    if not isinstance(data, dict):
        logger.warning("Rule file %s must contain a JSON object", path)
        return None
    return data


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


class RuleDatabase:
    """Versioned rule store rooted at *database_path*.

    An instance is meant to live for one analysis run: loaded rule sets are
    memoized on the instance, never process-wide, so separate runs (and tests)
    never share state.
    """

    def __init__(
        self,
        database_path: Path | None = None,
        known_versions: tuple[str, ...] | list[str] = DEFAULT_KNOWN_VERSIONS,
    ) -> None:
        versions = tuple(normalize_version(str(v)) for v in known_versions)
        if len(set(versions)) != len(versions):
            msg = f"known versions must be unique, got {list(versions)}"
            raise ValueError(msg)
        self.database_path = database_path or DEFAULT_DATABASE_PATH
        self.known_versions = versions
        self._hop_cache: dict[tuple[str, str], VersionRuleSet | None] = {}
        self._range_cache: dict[tuple[str, str], VersionRuleSet] = {}
        self._platform_cache: dict[str, PlatformRuleSet] = {}

    # -- version transitions -------------------------------------------------

    def _index(self, version: str) -> int | None:
        try:
            return self.known_versions.index(normalize_version(version))
        except ValueError:
            return None

    def is_valid_range(self, from_version: str, to_version: str) -> bool:
        """True if both versions are known and *from_version* precedes *to_version*."""
        start = self._index(from_version)
        end = self._index(to_version)
        return start is not None and end is not None and start < end

    def hop_path(self, from_version: str, to_version: str) -> Path:
        return self.database_path / _VERSION_DIR / f"{from_version}-to-{to_version}.json"

    def load_hop(self, from_version: str, to_version: str) -> VersionRuleSet | None:
        """Load the rule set for one adjacent transition, or ``None`` if its file is missing."""
        key = (from_version, to_version)
        if key in self._hop_cache:
            return self._hop_cache[key]

        path = self.hop_path(from_version, to_version)
        data = _read_json(path)
        rules = None if data is None else parse_version_rules(data, context=path.name)
        self._hop_cache[key] = rules
        return rules

    def compose_version_rules(self, from_version: str, to_version: str) -> VersionRuleSet:
        """Concatenate every adjacent hop's rules from *from_version* to *to_version*.

        An unknown version or a non-ascending range yields an empty rule set.
        A hop whose file is missing contributes nothing; the other hops are
        still composed.
        """
        start = self._index(from_version)
        end = self._index(to_version)
        if start is None or end is None or start >= end:
            return VersionRuleSet()

        key = (self.known_versions[start], self.known_versions[end])
        cached = self._range_cache.get(key)
        if cached is not None:
            return cached

        composed = VersionRuleSet()
        for i in range(start, end):
            hop_from, hop_to = self.known_versions[i], self.known_versions[i + 1]
            hop = self.load_hop(hop_from, hop_to)
            if hop is None:
                logger.warning("No rule file for %s -> %s, hop skipped", hop_from, hop_to)
                continue
            composed = composed + hop

        self._range_cache[key] = composed
        return composed

    def available_transitions(self) -> list[tuple[str, str, bool]]:
        """List adjacent transitions as ``(from, to, has_rule_file)``."""
        return [
            (a, b, self.hop_path(a, b).is_file())
            for a, b in zip(self.known_versions, self.known_versions[1:])
        ]

    # -- platforms -----------------------------------------------------------

    def platform_path(self, platform: str) -> Path:
        return self.database_path / _PLATFORM_DIR / platform / _PLATFORM_FILE

    def get_platform_rules(self, platform: str) -> PlatformRuleSet:
        """Return the deprecated-API rules for *platform* (empty when unknown)."""
        key = platform.strip().lower()
        cached = self._platform_cache.get(key)
        if cached is not None:
            return cached

        path = self.platform_path(key)
        data = _read_json(path)
        if data is None:
            logger.warning("No deprecated function data found for platform '%s'", key)
            rules = PlatformRuleSet(platform=key)
        else:
            rules = parse_platform_rules(key, data, context=f"{key}/{_PLATFORM_FILE}")

        self._platform_cache[key] = rules
        return rules

    def available_platforms(self) -> list[str]:
        base = self.database_path / _PLATFORM_DIR
        if not base.is_dir():
            return []
        return sorted(p.name for p in base.iterdir() if (p / _PLATFORM_FILE).is_file())

    def clear_cache(self) -> None:
        """Forget all loaded rule sets."""
        self._hop_cache.clear()
        self._range_cache.clear()
        self._platform_cache.clear()
