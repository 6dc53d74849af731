"""Source file discovery: walk a project tree into ``FileEntry`` descriptors."""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileEntry:
    """A file to analyse: absolute path plus the path shown in reports."""

    absolute_path: Path
    relative_path: str


def _is_excluded(path_str: str, patterns: Iterable[str]) -> bool:
    # Patterns like "*/vendor/*" need a leading separator to match top-level dirs.
    candidate = "/" + path_str
    return any(fnmatch.fnmatch(candidate, pattern) for pattern in patterns)


def collect_source_files(
    root: Path,
    *,
    extensions: Iterable[str],
    exclude_patterns: Iterable[str] = (),
    max_file_size: int | None = None,
) -> list[FileEntry]:
    """Collect files under *root* with one of *extensions*, sorted by relative path.

    *root* may also be a single file.  Paths matching an exclude pattern
    (``fnmatch`` against ``/<relative path>``) and files larger than
    *max_file_size* bytes are skipped.
    """
    root = root.resolve()
    exts = {e.lstrip(".").lower() for e in extensions}
    patterns = tuple(exclude_patterns)

    if root.is_file():
        return [FileEntry(absolute_path=root, relative_path=root.name)]

    entries: list[FileEntry] = []
    for path in root.rglob("*"):
        if not path.is_file() or path.suffix.lstrip(".").lower() not in exts:
            continue
        rel = path.relative_to(root).as_posix()
        if _is_excluded(rel, patterns):
            continue
        if max_file_size:
            try:
                size = path.stat().st_size
            except OSError:
                logger.warning("Cannot stat file: %s", path)
                continue
            if size > max_file_size:
                logger.debug("Skipping %s: %d bytes exceeds limit %d", rel, size, max_file_size)
                continue
        entries.append(FileEntry(absolute_path=path, relative_path=rel))

    entries.sort(key=lambda e: e.relative_path)
    logger.info("Found %d source files under %s", len(entries), root)
    return entries
