"""Typed rule records for the compatibility rule database."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import re

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Ordered most to least severe.
SEVERITIES: tuple[str, ...] = ("critical", "high", "medium", "low", "info")
VALID_SEVERITIES: frozenset[str] = frozenset(SEVERITIES)

KIND_REMOVED_FUNCTION = "removed_function"
KIND_DEPRECATED_FEATURE = "deprecated_feature"
KIND_BEHAVIOR_CHANGE = "behavior_change"
KIND_PLATFORM_FUNCTION = "deprecated_platform_function"

CATEGORY_VERSION = "php_compatibility"
CATEGORY_PLATFORM = "platform_compatibility"

# ---------------------------------------------------------------------------
# Rule records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RemovedFunctionRule:
    """A function (or class/method) removed between two versions.

    Detected structurally by ``identifier`` and textually by ``pattern``.
    """

    identifier: str
    severity: str = "critical"
    title: str = ""
    description: str = ""
    regex: str | None = None
    pattern: re.Pattern[str] | None = None
    replacement: str | None = None
    example_before: str | None = None
    example_after: str | None = None

    kind = KIND_REMOVED_FUNCTION


@dataclass(frozen=True)
class DeprecatedFeatureRule:
    """A syntax or feature deprecated between two versions (textual only)."""

    identifier: str
    severity: str = "high"
    title: str = "Deprecated feature"
    description: str = ""
    regex: str | None = None
    pattern: re.Pattern[str] | None = None
    replacement: str | None = None
    example_before: str | None = None
    example_after: str | None = None

    kind = KIND_DEPRECATED_FEATURE


@dataclass(frozen=True)
class BehaviorChangeRule:
    """Code that keeps compiling but behaves differently on the target version."""

    identifier: str
    severity: str = "medium"
    title: str = "Behavior change"
    description: str = ""
    regex: str | None = None
    pattern: re.Pattern[str] | None = None
    replacement: str | None = None
    example_before: str | None = None
    example_after: str | None = None
    recommendation: str | None = None

    kind = KIND_BEHAVIOR_CHANGE


@dataclass(frozen=True)
class PlatformDeprecatedRule:
    """A hosting-platform API deprecated since (and possibly removed in) a release."""

    identifier: str
    severity: str = "high"
    title: str = ""
    description: str = ""
    regex: str | None = None
    pattern: re.Pattern[str] | None = None
    replacement: str | None = None
    example_before: str | None = None
    example_after: str | None = None
    deprecated_since: str | None = None
    removed_in: str | None = None

    kind = KIND_PLATFORM_FUNCTION


@dataclass(frozen=True)
class NewFeature:
    """An addition in the target version; informational, never an issue."""

    title: str
    description: str = ""


Rule = RemovedFunctionRule | DeprecatedFeatureRule | BehaviorChangeRule | PlatformDeprecatedRule

# ---------------------------------------------------------------------------
# Rule sets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VersionRuleSet:
    """Rules effective for one version range, each category in version order."""

    removed_functions: tuple[RemovedFunctionRule, ...] = ()
    deprecated_features: tuple[DeprecatedFeatureRule, ...] = ()
    behavior_changes: tuple[BehaviorChangeRule, ...] = ()
    new_features: tuple[NewFeature, ...] = ()

    def is_empty(self) -> bool:
        return not (
            self.removed_functions
            or self.deprecated_features
            or self.behavior_changes
            or self.new_features
        )

    def __add__(self, other: VersionRuleSet) -> VersionRuleSet:
        return VersionRuleSet(
            removed_functions=self.removed_functions + other.removed_functions,
            deprecated_features=self.deprecated_features + other.deprecated_features,
            behavior_changes=self.behavior_changes + other.behavior_changes,
            new_features=self.new_features + other.new_features,
        )

    def counts(self) -> dict[str, int]:
        return {
            "removed_functions": len(self.removed_functions),
            "deprecated_features": len(self.deprecated_features),
            "behavior_changes": len(self.behavior_changes),
            "new_features": len(self.new_features),
        }


@dataclass(frozen=True)
class PlatformRuleSet:
    """Deprecated-API rules for one platform (e.g. ``moodle``)."""

    platform: str
    functions: tuple[PlatformDeprecatedRule, ...] = ()

    def is_empty(self) -> bool:
        return not self.functions
