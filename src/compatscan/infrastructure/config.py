"""Configuration: load ``config.yml`` into a frozen settings object with defaults."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from compatscan.analysis.effort import DEFAULT_EFFORT_RATES
from compatscan.rules.database import DEFAULT_DATABASE_PATH, DEFAULT_KNOWN_VERSIONS
from compatscan.rules.versions import normalize_version

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yml"

DEFAULT_EXCLUDE_PATTERNS: tuple[str, ...] = (
    "*/vendor/*",
    "*/node_modules/*",
    "*/.git/*",
    "*/cache/*",
    "*/temp/*",
    "*/tmp/*",
)
DEFAULT_FILE_EXTENSIONS: tuple[str, ...] = ("php", "inc", "module", "install")
DEFAULT_MAX_FILE_SIZE = 5 * 1024 * 1024


class ConfigError(ValueError):
    """Raised when configuration is present but unusable."""


@dataclass(frozen=True)
class AnalyzerConfig:
    """Settings for one analysis run.

    Configurable via ``config.yml``; every key falls back to the default here.
    """

    database_path: Path = DEFAULT_DATABASE_PATH
    known_versions: tuple[str, ...] = DEFAULT_KNOWN_VERSIONS
    effort_rates: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_EFFORT_RATES))
    workers: int = 4
    timeout: float | None = None
    context_lines: int = 2
    file_extensions: tuple[str, ...] = DEFAULT_FILE_EXTENSIONS
    exclude_patterns: tuple[str, ...] = DEFAULT_EXCLUDE_PATTERNS
    max_file_size: int = DEFAULT_MAX_FILE_SIZE

    def with_overrides(self, **overrides: Any) -> AnalyzerConfig:
        """Return a copy with every non-``None`` override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _str_tuple(value: object, key: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        msg = f"config: '{key}' must be a list"
        raise ConfigError(msg)
    return tuple(str(v) for v in value)


def _positive_int(value: object, key: str) -> int:
    try:
        number = int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError) as exc:
        msg = f"config: '{key}' must be an integer, got {value!r}"
        raise ConfigError(msg) from exc
    if number < 0:
        msg = f"config: '{key}' must not be negative, got {number}"
        raise ConfigError(msg)
    return number


def _parse_rates(value: object) -> dict[str, float]:
    if not isinstance(value, dict):
        msg = "config: 'effort_estimation' must be a mapping"
        raise ConfigError(msg)
    rates = dict(DEFAULT_EFFORT_RATES)
    for severity, rate in value.items():
        try:
            rates[str(severity).lower()] = float(rate)
        except (TypeError, ValueError) as exc:
            msg = f"config: effort rate for '{severity}' must be a number, got {rate!r}"
            raise ConfigError(msg) from exc
    return rates


def parse_config(data: dict[str, Any], base_dir: Path | None = None) -> AnalyzerConfig:
    """Build an :class:`AnalyzerConfig` from a decoded mapping.

    Raises :class:`ConfigError` for values of the wrong shape.  Unknown keys
    are ignored.
    """
    kwargs: dict[str, Any] = {}

    if "database_path" in data and data["database_path"]:
        db_path = Path(str(data["database_path"])).expanduser()
        if not db_path.is_absolute() and base_dir is not None:
            db_path = base_dir / db_path
        kwargs["database_path"] = db_path

    if "known_versions" in data:
        raw_versions = _str_tuple(data["known_versions"], "known_versions")
        versions = tuple(normalize_version(v) for v in raw_versions)
        if len(set(versions)) != len(versions):
            msg = f"config: 'known_versions' must be unique, got {list(versions)}"
            raise ConfigError(msg)
        kwargs["known_versions"] = versions

    if "effort_estimation" in data:
        kwargs["effort_rates"] = _parse_rates(data["effort_estimation"])

    analysis = data.get("analysis", {})
    if analysis is None:
        analysis = {}
    if not isinstance(analysis, dict):
        msg = "config: 'analysis' must be a mapping"
        raise ConfigError(msg)

    if "workers" in analysis:
        kwargs["workers"] = max(1, _positive_int(analysis["workers"], "analysis.workers"))
    if analysis.get("timeout") is not None:
        try:
            kwargs["timeout"] = float(analysis["timeout"])
        except (TypeError, ValueError) as exc:
            msg = f"config: 'analysis.timeout' must be a number, got {analysis['timeout']!r}"
            raise ConfigError(msg) from exc
    if "context_lines" in analysis:
        kwargs["context_lines"] = _positive_int(
            analysis["context_lines"], "analysis.context_lines"
        )
    if "file_extensions" in analysis:
        exts = _str_tuple(analysis["file_extensions"], "analysis.file_extensions")
        kwargs["file_extensions"] = tuple(e.lstrip(".").lower() for e in exts)
    if "exclude_patterns" in analysis:
        kwargs["exclude_patterns"] = _str_tuple(
            analysis["exclude_patterns"], "analysis.exclude_patterns"
        )
    if "max_file_size" in analysis:
        kwargs["max_file_size"] = _positive_int(
            analysis["max_file_size"], "analysis.max_file_size"
        )

    return AnalyzerConfig(**kwargs)


def load_config(path: Path | None = None, *, project_root: Path | None = None) -> AnalyzerConfig:
    """Load settings from *path*, or from ``<project_root>/config.yml`` when *path* is None.

    A missing or unreadable file falls back to defaults.  A readable file with
    invalid values raises :class:`ConfigError`.
    """
    if path is None:
        if project_root is None:
            return AnalyzerConfig()
        path = project_root / CONFIG_FILENAME
    if not path.is_file():
        return AnalyzerConfig()

    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError):
        logger.warning("Failed to read %s, using default settings", path)
        return AnalyzerConfig()

    if data is None:
        return AnalyzerConfig()
    if not isinstance(data, dict):
        msg = f"{path.name} must be a YAML mapping"
        raise ConfigError(msg)

    return parse_config(data, base_dir=path.parent)
