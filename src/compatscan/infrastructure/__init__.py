"""Infrastructure domain: configuration loading and source file discovery."""

from compatscan.infrastructure.config import (
    CONFIG_FILENAME,
    AnalyzerConfig,
    ConfigError,
    load_config,
    parse_config,
)
from compatscan.infrastructure.scanner import FileEntry, collect_source_files

__all__ = [
    "CONFIG_FILENAME",
    "AnalyzerConfig",
    "ConfigError",
    "FileEntry",
    "collect_source_files",
    "load_config",
    "parse_config",
]
