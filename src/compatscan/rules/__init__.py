"""Rules domain: typed rule records, version ordering, and the rule database."""

from compatscan.rules.database import (
    DEFAULT_DATABASE_PATH,
    DEFAULT_KNOWN_VERSIONS,
    RuleDatabase,
    compile_rule_regex,
    parse_platform_rules,
    parse_version_rules,
)
from compatscan.rules.models import (
    CATEGORY_PLATFORM,
    CATEGORY_VERSION,
    SEVERITIES,
    VALID_SEVERITIES,
    BehaviorChangeRule,
    DeprecatedFeatureRule,
    NewFeature,
    PlatformDeprecatedRule,
    PlatformRuleSet,
    RemovedFunctionRule,
    Rule,
    VersionRuleSet,
)
from compatscan.rules.versions import compare_versions, normalize_version, version_lt

__all__ = [
    "CATEGORY_PLATFORM",
    "CATEGORY_VERSION",
    "DEFAULT_DATABASE_PATH",
    "DEFAULT_KNOWN_VERSIONS",
    "SEVERITIES",
    "VALID_SEVERITIES",
    "BehaviorChangeRule",
    "DeprecatedFeatureRule",
    "NewFeature",
    "PlatformDeprecatedRule",
    "PlatformRuleSet",
    "RemovedFunctionRule",
    "Rule",
    "RuleDatabase",
    "VersionRuleSet",
    "compare_versions",
    "compile_rule_regex",
    "normalize_version",
    "parse_platform_rules",
    "parse_version_rules",
    "version_lt",
]
