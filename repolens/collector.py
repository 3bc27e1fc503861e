"""Source file discovery for a checked-out repository."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Set

from .config import EXTRA_SKIP_DIRS, SKIP_DIRS, SOURCE_EXTENSIONS
from .errors import ScanRootError

logger = logging.getLogger(__name__)


def is_source_file(name: str, extensions: Iterable[str] = SOURCE_EXTENSIONS) -> bool:
    if name.endswith(".d.ts"):
        return False
    return os.path.splitext(name)[1] in set(extensions)


def collect_source_files(
    root: Path,
    extensions: Optional[Set[str]] = None,
    skip_dirs: Optional[Set[str]] = None,
) -> List[Path]:
    """Return source files under *root* in deterministic depth-first order.

    Entries are visited sorted by name, so a directory's files and
    subdirectories interleave alphabetically. Directories named in
    *skip_dirs* are pruned at any depth. Directory symlinks are not
    followed.

    Raises:
        ScanRootError: if *root* is missing or cannot be listed.
    """
    exts = extensions or SOURCE_EXTENSIONS
    skipped = skip_dirs if skip_dirs is not None else SKIP_DIRS | EXTRA_SKIP_DIRS
    root = Path(os.path.abspath(root))

    if not root.is_dir():
        raise ScanRootError(root, "not a directory")
    try:
        top = _sorted_entries(root)
    except OSError as exc:
        raise ScanRootError(root, str(exc)) from exc

    files: List[Path] = []
    _walk(top, exts, skipped, files)
    logger.debug("Collected %d source files under %s", len(files), root)
    return files


def _sorted_entries(directory: Path) -> List[os.DirEntry]:
    with os.scandir(directory) as it:
        return sorted(it, key=lambda e: e.name)


def _walk(entries: List[os.DirEntry], exts: Set[str], skipped: Set[str], out: List[Path]) -> None:
    for entry in entries:
        try:
            if entry.is_dir(follow_symlinks=False):
                if entry.name in skipped:
                    continue
                try:
                    children = _sorted_entries(Path(entry.path))
                except OSError as exc:
                    logger.warning("Skipping unreadable directory %s: %s", entry.path, exc)
                    continue
                _walk(children, exts, skipped, out)
            elif entry.is_file() and is_source_file(entry.name, exts):
                out.append(Path(entry.path))
        except OSError as exc:
            logger.warning("Skipping unreadable entry %s: %s", entry.path, exc)
